"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from wa_gateway.api.clients import router as clients_router
from wa_gateway.app_logging import configure_logging
from wa_gateway.containers import AppContainer
from wa_gateway.domain.errors import (
    ConflictError,
    ConversionError,
    EngineError,
    GatewayError,
    InvalidInputError,
    NotFoundError,
    NotReadyError,
)

_STATUS_CODES: dict[type[GatewayError], int] = {
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    NotReadyError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    ConversionError: status.HTTP_502_BAD_GATEWAY,
    EngineError: status.HTTP_502_BAD_GATEWAY,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        try:
            failed = await state_container.session_manager.initialize()
            if failed:
                logger.warning("Clients not restored: %s", ", ".join(failed))
        except Exception:
            logger.exception("Failed to restore client sessions")
        yield
        await state_container.session_manager.shutdown()
        await state_container.webhook_dispatcher.drain()
        await state_container.close_resources()

    app = FastAPI(title="WhatsApp client gateway", lifespan=lifespan)
    app.state.container = container

    app.include_router(clients_router)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        status_code = next(
            (
                code
                for error_type, code in _STATUS_CODES.items()
                if isinstance(exc, error_type)
            ),
            status.HTTP_400_BAD_REQUEST,
        )
        logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status_code, content={"error": exc.message})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
