"""
FastAPI Application Entry Point

QR Table Ordering - order lifecycle backend.
Runs against in-memory storage and a demo payment provider in development,
or SQL storage and Stripe when configured.

Endpoints:
    - POST /api/orders: Place an order (guest or customer)
    - GET /api/orders: List orders (role-scoped)
    - GET /api/orders/{id}: Order details
    - PATCH /api/orders/{id}/status: Kitchen workflow (staff)
    - PATCH /api/orders/{id}/payment: Payment override (staff)
    - POST /api/orders/{id}/cancel: Cancel (owner or staff)
    - POST /api/payments/create-intent: Payment intent for an order
    - POST /api/payments/webhook: Stripe webhook endpoint
    - GET /api/tables/qr/{qr_slug}: Resolve a scanned QR code
    - POST /api/auth/refresh: Refresh the token pair
    - GET /health: System health check

Run:
    uvicorn qrorder.main:app --reload
    python -m qrorder.main          # API_HOST / API_PORT from settings
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Windows-specific event loop policy (psycopg async needs a selector loop)
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from qrorder.core.config import Settings, get_settings, setup_logging
from qrorder.core.errors import QROrderError
from qrorder.core.security import TokenService
from qrorder.repositories import Repositories, build_repositories
from qrorder.routers import auth, orders, payments, tables
from qrorder.schemas import HealthResponse
from qrorder.seed import seed_demo_tables
from qrorder.services.orders.engine import OrderLifecycleEngine
from qrorder.services.payment import BasePaymentService, build_payment_service

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR BODIES
# =============================================================================

def _field_path(loc: tuple) -> str:
    """("body", "items", 0, "price") -> "items[0].price"."""
    path = ""
    for part in loc:
        if part in ("body", "query", "path", "header"):
            continue
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "request"


def _error_body(
    error: str,
    detail: Optional[str] = None,
    errors: Optional[list[dict[str, str]]] = None,
) -> dict[str, Any]:
    return {
        "success": False,
        "error": error,
        "detail": detail,
        "errors": errors or [],
    }


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:

    @app.exception_handler(QROrderError)
    async def app_error_handler(request: Request, exc: QROrderError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"{exc.__class__.__name__} on {request.method} {request.url.path}: "
                f"{exc.message} {exc.detail or ''}".rstrip(),
                exc_info=exc,
            )
            detail = exc.detail if settings.debug else None
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message}")
            detail = exc.detail

        errors = [e.to_dict() for e in getattr(exc, "errors", [])]
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, detail, errors),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": _field_path(tuple(e.get("loc", ()))), "message": e.get("msg", "Invalid value")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_error_body("Validation failed", errors=errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.error(f"Unhandled exception: {exc}", exc_info=exc)

        return JSONResponse(
            status_code=500,
            content=_error_body(
                "Internal Server Error",
                str(exc) if settings.debug else "An unexpected error occurred",
            ),
        )


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    repositories: Optional[Repositories] = None,
    payment_service: Optional[BasePaymentService] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators not passed in are built from settings; tests pass their
    own repositories and payment service.
    """
    settings = settings or get_settings()
    repositories = repositories or build_repositories(settings)
    payment_service = payment_service or build_payment_service(settings)
    engine = OrderLifecycleEngine.from_settings(
        settings,
        orders=repositories.orders,
        tables=repositories.tables,
        payments=payment_service,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application startup and shutdown events.
        """
        # Startup
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {settings.app_name}")
        logger.info(f"   Version: {settings.app_version}")
        logger.info(f"   Environment: {settings.env_mode.value}")
        logger.info(f"   Storage: {settings.resolved_storage_backend.value}")
        logger.info(f"   Debug: {settings.debug}")
        logger.info("=" * 60)

        await repositories.start()
        logger.info("✅ Storage initialized")

        if settings.seed_demo_tables:
            await seed_demo_tables(repositories.tables, settings.seed_demo_tables)

        logger.info(f"✅ Payment Service: {payment_service.provider_name}")
        logger.info(f"✅ Transitions: {engine.transition_policy.name}")

        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

        logger.info("=" * 60)
        logger.info("✅ Application ready!")
        logger.info("=" * 60)

        yield  # Application runs

        # Shutdown
        logger.info("Shutting down...")
        await repositories.close()
        logger.info("✅ Cleanup complete")

    app = FastAPI(
        title=settings.app_name,
        description=(
            "QR-code table ordering backend: order placement, kitchen workflow, "
            "Stripe payments and webhook reconciliation."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.repositories = repositories
    app.state.payments = payment_service
    app.state.engine = engine
    app.state.tokens = TokenService.from_settings(settings)

    register_exception_handlers(app, settings)

    for module in (orders, payments, tables, auth):
        app.include_router(module.router, prefix="/api")

    # =========================================================================
    # ROOT & HEALTH ENDPOINTS
    # =========================================================================

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """API root with navigation links."""
        return {
            "message": f"🍽️ Welcome to {settings.app_name}",
            "version": settings.app_version,
            "environment": settings.env_mode.value,
            "documentation": "/docs",
            "health": "/health",
        }

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="System Health Check",
    )
    async def health_check() -> HealthResponse:
        """Verify storage and the payment provider are operational."""
        report = await engine.health()
        overall = "operational" if all(s == "healthy" for s in report.values()) else "degraded"

        return HealthResponse(
            status=overall,
            storage=report["storage"],
            payments=report["payments"],
            payment_provider=payment_service.provider_name,
            timestamp=datetime.now(),
        )

    return app


# Initialize configuration and logging
setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("qrorder.main:app", host=settings.api_host, port=settings.api_port)
