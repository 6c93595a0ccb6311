"""Application entrypoint for the loan ledger FastAPI backend."""

from contextlib import asynccontextmanager
import sys
from pathlib import Path
from typing import AsyncIterator, Optional

_BACKEND_DIR = Path(__file__).resolve().parent
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from api.responses import error
from api.router import ServiceContainer, build_router, build_services
from core import get_logger, load_settings, setup_logging
from core.config import AppSettings
from models.exceptions import ModelError
from services import LoanSweepPoller


setup_logging()
logger = get_logger(__name__)

_HTTP_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path"))
        parts.append("{0}: {1}".format(location, item.get("msg", "invalid value")) if location else item.get("msg"))
    return "; ".join(parts) or "Invalid request"


def _register_error_handlers(app: FastAPI) -> None:
    """Render every failure in the standard error envelope."""

    @app.exception_handler(ModelError)
    async def _model_error_handler(request: Request, exc: ModelError) -> JSONResponse:
        return error(exc)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": str(exc.detail),
                "code": _HTTP_CODES.get(exc.status_code, "HTTP_ERROR"),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": _validation_message(exc), "code": "VALIDATION_ERROR"},
        )


def create_app(settings: Optional[AppSettings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    """Create and configure a FastAPI application instance."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    services = services or build_services(settings)
    poller = LoanSweepPoller(settings=settings, payment_service=services.payments, fraud_service=services.fraud)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Run the background sweep for as long as the application serves requests."""
        try:
            await poller.start()
        except Exception:
            logger.exception("Failed to start background services during startup.")
        try:
            yield
        finally:
            try:
                await poller.stop()
            except Exception:
                logger.exception("Failed to stop background services during shutdown.")

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(build_router(settings, services))
    app.state.services = services
    app.state.sweep_poller = poller

    logger.info("Application initialized: %s", settings.app_name)
    return app


app = create_app()


def run() -> None:
    """Start the ASGI server for local development."""
    settings = load_settings()
    try:
        uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
    except Exception:
        logger.exception("Failed to start uvicorn server.")
        raise


if __name__ == "__main__":
    run()
