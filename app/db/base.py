from __future__ import annotations

import threading

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.core.config import Settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _build_engine(
    database_url: str,
    *,
    pool_mode: str = "queue",
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    pool_mode = (pool_mode or "queue").lower()
    db_url = make_url(database_url)

    # SQLite engines don't accept queue-pool kwargs like max_overflow/pool_size.
    if db_url.get_backend_name() == "sqlite":
        engine_kwargs = {
            "pool_pre_ping": True,
            "connect_args": {"check_same_thread": False},
        }
        if db_url.database in {None, "", ":memory:"}:
            engine_kwargs["poolclass"] = StaticPool

        return create_engine(database_url, **engine_kwargs)

    if pool_mode == "null":
        return create_engine(database_url, poolclass=NullPool, pool_pre_ping=True)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )


class Database:
    """Process-wide handle on the listings database.

    Constructed explicitly (see ``app.main.create_app``) and handed to request
    handlers through FastAPI dependencies. The engine and its connection pool
    are created lazily on first use, exactly once: concurrent first callers
    serialize on a lock, the winner pays the connection cost and everybody
    after reuses the same pool. There is no teardown beyond :meth:`dispose`.
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_mode: str = "queue",
        pool_size: int = 10,
        max_overflow: int = 10,
    ) -> None:
        self.database_url = database_url
        self._pool_mode = pool_mode
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._lock = threading.Lock()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @classmethod
    def from_settings(cls, config: Settings) -> Database:
        return cls(
            config.database_url,
            pool_mode=config.db_pool,
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
        )

    @property
    def initialized(self) -> bool:
        return self._session_factory is not None

    def _initialize(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            with self._lock:
                if self._session_factory is None:
                    engine = _build_engine(
                        self.database_url,
                        pool_mode=self._pool_mode,
                        pool_size=self._pool_size,
                        max_overflow=self._max_overflow,
                    )
                    self._engine = engine
                    self._session_factory = sessionmaker(
                        bind=engine,
                        autoflush=False,
                        autocommit=False,
                        expire_on_commit=False,
                    )
                    logger.info(
                        "db.engine.initialized",
                        extra={"backend": engine.url.get_backend_name(), "pool": type(engine.pool).__name__},
                    )
        return self._session_factory

    @property
    def engine(self) -> Engine:
        self._initialize()
        assert self._engine is not None
        return self._engine

    def session(self) -> Session:
        return self._initialize()()

    def create_all(self) -> None:
        from app.db.models import Base

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None
