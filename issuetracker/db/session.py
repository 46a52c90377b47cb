from __future__ import annotations

import logging
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from issuetracker.db.base import Base

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the SQLAlchemy engine and session factory.

    Constructed explicitly and handed to whoever needs it (role store, audit
    log, request dependency). Lifecycle is `start()` at app startup and
    `dispose()` at shutdown.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self._echo = echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def started(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not started. Did app startup run?")
        return self._engine

    def start(self) -> None:
        if self._engine is not None:
            return

        kwargs: dict = {"echo": self._echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database.
                kwargs["poolclass"] = StaticPool

        self._engine = create_engine(self.url, **kwargs)
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session
        )
        logger.info("Database engine started url=%s", self._engine.url.render_as_string(hide_password=True))

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database not started. Did app startup run?")
        return self._session_factory()

    def dispose(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")


def get_database(request: Request) -> Database:
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database not configured. Did app startup run?")
    return database


def get_db(request: Request) -> Generator[Session, None, None]:
    """Request-scoped session bound to the app's Database."""

    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
