from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskhub.authz import AuthorizationGuard, PolicyTable, ResolverRegistry
from taskhub.db import filters as _filters  # noqa: F401  (register SQLAlchemy tenant filter)
from taskhub.db.init_db import init_db
from taskhub.db.repositories import build_repositories
from taskhub.db.session import build_engine, build_session_factory
from taskhub.errors import AppError
from taskhub.logging_config import configure_app_logging
from taskhub.routers import admin, health, me, organizations, tasks
from taskhub.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def build_guard(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> AuthorizationGuard:
    """Compose the policy table, repositories and resolvers into a guard."""
    policy = PolicyTable.from_yaml(settings.resolved_policy_path())
    resolvers = ResolverRegistry.default(build_repositories(session_factory))
    return AuthorizationGuard(policy, resolvers, platform_organization_id=settings.platform_organization_id)


def configure_app_state(app: FastAPI, settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> None:
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.guard = build_guard(settings, session_factory)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        settings: Settings = getattr(request.app.state, "settings", None) or get_settings()
        if exc.status_code >= 500:
            logger.error(
                "Internal error path=%s method=%s context=%s",
                request.url.path,
                request.method,
                exc.context,
                exc_info=exc,
            )
        else:
            logger.warning(
                "Security event %s path=%s method=%s context=%s",
                exc.error_code,
                request.url.path,
                request.method,
                exc.context,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(include_context=settings.expose_error_details),
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        app_settings = settings or get_settings()
        configure_app_logging(app_settings.log_level, app_settings.audit_log_level)
        logger.info("App startup beginning")

        engine = build_engine(app_settings.resolved_db_url())
        session_factory = build_session_factory(engine)
        await init_db(engine, session_factory)
        logger.info("Database initialized (tables ensured + seed if needed)")

        configure_app_state(app, app_settings, session_factory)
        logger.info(
            "Authorization guard ready policy=%s platform_organization_id=%s",
            app_settings.resolved_policy_path(),
            app_settings.platform_organization_id,
        )

        yield
        await engine.dispose()

    app = FastAPI(lifespan=lifespan)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(tasks.router)
    app.include_router(organizations.router)
    app.include_router(admin.router)

    return app


app = create_app()
