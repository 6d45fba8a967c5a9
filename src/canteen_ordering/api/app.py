"""FastAPI application factory."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from canteen_ordering.api.admin import router as admin_router
from canteen_ordering.api.orders import router as orders_router
from canteen_ordering.app_logging import configure_logging
from canteen_ordering.containers import AppContainer
from canteen_ordering.domain.errors import InvalidMenuSelectionError, OrderingError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    app = FastAPI(title="Canteen ordering")
    app.state.container = container

    app.include_router(orders_router)
    app.include_router(admin_router)

    @app.exception_handler(OrderingError)
    async def ordering_error(request: Request, exc: OrderingError) -> JSONResponse:
        logger.info(
            "Request failed path=%s kind=%s detail=%s",
            request.url.path,
            exc.error_kind,
            exc.detail,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def malformed_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = InvalidMenuSelectionError(_describe_validation_errors(exc))
        return await ordering_error(request, error)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def _describe_validation_errors(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(problems) or "Malformed request"
