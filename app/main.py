"""
FastAPI application entrypoint for the TIDAL credential proxy.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.clients import CredentialNotFoundError, StorageBackendError, TokenRefreshError
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.services.tidal_api import UpstreamRequestError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def _handle_not_found(request: Request, exc: CredentialNotFoundError) -> JSONResponse:
    return _error_response(HTTPStatus.NOT_FOUND, exc)


async def _handle_server_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Request to %s failed: %s", request.url.path, exc)
    return _error_response(HTTPStatus.INTERNAL_SERVER_ERROR, exc)


async def _handle_upstream_error(request: Request, exc: UpstreamRequestError) -> JSONResponse:
    status_code = exc.status_code if exc.status_code >= 400 else HTTPStatus.BAD_GATEWAY
    return _error_response(status_code, exc)


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.title,
        version=settings.version,
        description="Proxy for TIDAL metadata backed by tiered credential storage.",
    )
    app.add_exception_handler(CredentialNotFoundError, _handle_not_found)
    app.add_exception_handler(StorageBackendError, _handle_server_error)
    app.add_exception_handler(TokenRefreshError, _handle_server_error)
    app.add_exception_handler(UpstreamRequestError, _handle_upstream_error)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
