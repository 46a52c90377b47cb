from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from issuetracker.audit import AuditLog
from issuetracker.db.init_db import init_db
from issuetracker.db.session import Database
from issuetracker.errors import install_error_handlers
from issuetracker.identity import TokenValidator
from issuetracker.logging_config import configure_app_logging
from issuetracker.routers import bugs, comments, health, roles, test_cases, users
from issuetracker.security.config import load_security_config
from issuetracker.security.dependencies import enforce_security
from issuetracker.security.resolver import PermissionResolver, SqlRoleStore
from issuetracker.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        active = settings or get_settings()
        configure_app_logging(active.log_level)
        logger.info("App startup beginning")

        security_config = load_security_config(active.resolved_security_config_path())
        app.state.security_config = security_config
        logger.info(
            "Loaded security config: %s (provider=%s)",
            active.resolved_security_config_path(),
            security_config.auth.provider,
        )

        database = Database(active.resolved_db_url(), echo=active.db_echo)
        database.start()
        init_db(database, seed_demo_data=active.seed_demo_data)
        logger.info("Database initialized (tables ensured, roles seeded)")

        app.state.database = database
        app.state.permission_resolver = PermissionResolver(SqlRoleStore(database))
        app.state.audit_log = AuditLog(database)
        app.state.token_validator = TokenValidator() if security_config.auth.provider == "jwt" else None

        yield

        # Shutdown
        database.dispose()

    # Global dependency: every route passes through the same security gate.
    app = FastAPI(title="Issue Tracker", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    install_error_handlers(app)

    app.include_router(health.router)
    app.include_router(roles.router)
    app.include_router(users.router)
    app.include_router(bugs.router)
    app.include_router(comments.router)
    app.include_router(test_cases.router)

    return app


app = create_app()
