# src/eventpass/main.py
"""Application factory for the EventPass session service."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.engine import Engine
from starlette.middleware.base import BaseHTTPMiddleware

from eventpass.api.v1 import admin_router, session_router
from eventpass.api.v1.dependencies import client_ip
from eventpass.core.errors import EventPassError, RateLimitError
from eventpass.core.settings import Settings, get_settings
from eventpass.db.session import build_engine, build_session_factory, create_tables
from eventpass.db.time import Clock, utcnow
from eventpass.services.container import AppServices, build_services
from eventpass.services.deposits import DepositVerifier

logger = logging.getLogger(__name__)

RATE_LIMIT_EXEMPT_PATHS = frozenset({"/healthz"})


def error_response(exc: EventPassError, settings: Settings) -> JSONResponse:
    """Render a typed error as the standard JSON error body."""
    detail = exc.message
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR and settings.is_production:
        detail = type(exc).default_message
    body: dict[str, object] = {"success": False, "error": exc.name, "detail": detail}
    headers: dict[str, str] = {}
    if isinstance(exc, RateLimitError):
        body["resetAt"] = exc.reset_at.isoformat()
        headers = {
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": exc.reset_at.isoformat(),
        }
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """General per-IP limit applied to every request before routing."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path in RATE_LIMIT_EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)
        services: AppServices = request.app.state.services
        try:
            decision = services.rate_limiter.check("general", client_ip(request))
        except RateLimitError as exc:
            return error_response(exc, services.settings)
        response = await call_next(request)
        for name, value in decision.headers().items():
            response.headers.setdefault(name, value)
        return response


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(EventPassError)
    async def handle_eventpass_error(request: Request, exc: EventPassError) -> JSONResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s on %s %s: %s", exc.name, request.method, request.url.path, exc)
        return error_response(exc, settings)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "ValidationError",
                "detail": "Invalid request data",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        detail = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "InternalError", "detail": detail},
        )


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    clock: Clock = utcnow,
    deposit_verifier: DepositVerifier | None = None,
) -> FastAPI:
    """Build the FastAPI application and its service graph.

    Args:
        settings: Configuration; loaded from the environment when omitted.
        engine: Database engine; built from ``DATABASE_URL`` when omitted.
        clock: Time source shared by every service.
        deposit_verifier: Overrides the verifier selected by
            ``DEPOSIT_VERIFICATION_MODE``.
    """
    settings = settings or get_settings()
    engine = engine or build_engine(settings)
    services = build_services(
        settings,
        build_session_factory(engine),
        clock=clock,
        deposit_verifier=deposit_verifier,
    )

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Wallet session and admin authentication for NFT-gated events",
        version=settings.app_version,
    )
    app.state.services = services

    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    _register_exception_handlers(app, settings)

    app.include_router(session_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")

    @app.on_event("startup")
    async def on_startup() -> None:
        create_tables(engine)
        services.credentials.bootstrap(settings.admin_email, settings.admin_password_hash)
        if settings.deposit_verification_mode == "trusted":
            logger.warning(
                "DEPOSIT_VERIFICATION_MODE=trusted: value challenges are accepted "
                "without chain confirmation"
            )
        await services.cleanup_worker.start()
        logger.info("%s started in %s mode", settings.app_name, settings.environment)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await services.cleanup_worker.stop()

    @app.get("/healthz")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {
            "status": "ok",
            "timestamp": clock().isoformat(),
            "environment": settings.environment,
        }

    return app


def main() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()
    uvicorn.run(
        "eventpass.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
