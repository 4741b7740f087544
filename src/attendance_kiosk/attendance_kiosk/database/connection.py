from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base


@dataclass
class DBConfig:
    url: str = "sqlite:///kiosk_cache.db"
    echo: bool = False


class LocalDatabase:
    """Engine + session factory for the kiosk's embedded SQLite mirror."""

    def __init__(self, config: DBConfig):
        self._config = config
        kwargs: dict = {"echo": config.echo}
        if config.url.startswith("sqlite"):
            # One kiosk process touches the file from several threads.
            kwargs["connect_args"] = {"check_same_thread": False}
            if config.url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        self.engine = create_engine(config.url, **kwargs)
        if config.url.startswith("sqlite"):
            event.listen(self.engine, "connect", _sqlite_pragmas)

        self.session_factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine)

    @property
    def url(self) -> str:
        return self._config.url

    def init_schema(self) -> None:
        """Create all tables (idempotent)."""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def _sqlite_pragmas(dbapi_conn, _record) -> None:
    cur = dbapi_conn.cursor()
    try:
        cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA synchronous=NORMAL")
    finally:
        cur.close()
