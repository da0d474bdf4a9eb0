from datetime import timedelta

from fastapi import FastAPI
from sqlalchemy import Engine

from opgl_gateway.api.admin import router as admin_router
from opgl_gateway.api.auth import router as auth_router
from opgl_gateway.api.gateway import router as gateway_router
from opgl_gateway.api.health import router as health_router
from opgl_gateway.clients.services import HttpServiceProxy, ServiceProxy
from opgl_gateway.config import Settings
from opgl_gateway.core.auth import AuthService
from opgl_gateway.core.last_used import LastUsedRecorder
from opgl_gateway.core.orchestrator import Orchestrator
from opgl_gateway.core.rate_limit import RateLimiter
from opgl_gateway.core.request_id import RequestIdMiddleware
from opgl_gateway.deps.db import build_engine, build_session_factory
from opgl_gateway.errors import register_exception_handlers
from opgl_gateway.logging import setup_logging
from opgl_gateway.stores.accounts import AccountStore
from opgl_gateway.stores.api_keys import ApiKeyStore


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    service_proxy: ServiceProxy | None = None,
) -> FastAPI:
    """
    Build the gateway app and everything it depends on.

    ``engine`` and ``service_proxy`` replace the configured database and
    downstream HTTP clients (tests use this).
    """
    settings = settings or Settings()
    logger = setup_logging(settings.log_level)

    engine = engine or build_engine(settings)
    sessions = build_session_factory(engine)

    key_store = ApiKeyStore(sessions)
    account_store = AccountStore(sessions)
    last_used = LastUsedRecorder(
        key_store, logger.getChild("last_used"), max_pending=settings.last_used_queue_size
    )

    owns_proxy = service_proxy is None
    if service_proxy is None:
        service_proxy = HttpServiceProxy(
            settings.data_service_url,
            settings.cortex_service_url,
            timeout=settings.downstream_timeout_seconds,
        )

    app = FastAPI(title="OPGL Gateway", version="0.1.0")

    app.state.settings = settings
    app.state.logger = logger
    app.state.engine = engine
    app.state.key_store = key_store
    app.state.account_store = account_store
    app.state.rate_limiter = RateLimiter(key_store, logger.getChild("rate_limit"), last_used)
    app.state.auth_service = AuthService(
        settings.jwt_secret,
        access_ttl=timedelta(seconds=settings.jwt_access_ttl_seconds),
        refresh_ttl=timedelta(seconds=settings.jwt_refresh_ttl_seconds),
        issuer=settings.jwt_issuer,
    )
    app.state.orchestrator = Orchestrator(
        service_proxy, logger.getChild("orchestrator"), match_count=settings.analysis_match_count
    )

    register_exception_handlers(app, logger)
    app.add_middleware(RequestIdMiddleware, logger=logger)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(gateway_router)
    app.include_router(admin_router)

    @app.on_event("shutdown")
    def shutdown():
        last_used.shutdown()
        if owns_proxy:
            service_proxy.close()
        engine.dispose()

    logger.info(
        "app_configured",
        extra={
            "app_env": settings.app_env,
            "data_service_url": settings.data_service_url,
            "cortex_service_url": settings.cortex_service_url,
        },
    )
    return app
