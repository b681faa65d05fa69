from contextlib import asynccontextmanager
from fastapi import FastAPI
from bazaar.api import cur_version, version_prefix
from bazaar.api.routers import admin_routers, public_routers
from bazaar.common.custom_exceptions import register_all_exceptions
from bazaar.common.logging_setup import get_logger, setup_logging, shutdown_logging
from bazaar.config.admin_config import admin_config
from bazaar.config.settings import config_settings
from bazaar.db.connection import async_engine, async_session
from bazaar.middlewares.auth_middleware import AuthenticationMiddleware
from bazaar.middlewares.request_id_middleware import RequestIdMiddleware
from metrics.custom_instrumentator import METRICS_ENDPOINT, build_instrumentator

logger = get_logger("bazaar.app")

PUBLIC_PATHS = [
    f"{version_prefix}/auth/signup",
    f"{version_prefix}/auth/login",
    f"{version_prefix}/auth/refresh",
    f"{version_prefix}/auth/password/",
    f"{version_prefix}/auth/verify-email",
    f"{version_prefix}/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    METRICS_ENDPOINT,
]

# anonymous callers allowed, a bearer token is resolved when present
MAYBE_AUTH_PATHS = [
    f"{version_prefix}/auth/csrf",
    f"{version_prefix}/products",
    f"{version_prefix}/categories",
    f"{version_prefix}/vendors",
    f"{version_prefix}/site",
]


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()
    logger.info("app.startup", extra={"env": admin_config.ENV, "admin_enabled": admin_config.ENABLE_ADMIN})
    try:
        yield
    finally:
        # at this point new requests accept has been stopped already before calling shutdown
        await async_engine.dispose()
        logger.info("app.shutdown")
        shutdown_logging()


def create_app():
    app=FastAPI(
        title="Bazaar",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    app.add_middleware(AuthenticationMiddleware, session_maker=async_session, paths=PUBLIC_PATHS,
                       maybe_auth_paths=MAYBE_AUTH_PATHS)
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    if config_settings.METRICS_ENABLED:
        build_instrumentator().instrument(app).expose(app, endpoint=METRICS_ENDPOINT, include_in_schema=False)

    return app

app=create_app()
