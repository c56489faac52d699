from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlalchemy import func, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import QueuePool
from sqlmodel import Session, SQLModel, create_engine, select

from files_manager.config import DB_URL
from files_manager.models import File, User

logger = logging.getLogger("files_manager.db")


class DBClient:
    """Handle on the metadata store.

    Constructed once per process and passed to whoever needs it. ``connect``
    creates the tables, ``is_alive`` is a cheap health probe and ``close``
    disposes of the connection pool on shutdown.
    """

    def __init__(self, url: str = DB_URL, connect_args: dict | None = None) -> None:
        if connect_args is None:
            connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.url = url
        self.engine = create_engine(
            url,
            connect_args=connect_args,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=3600,
            echo=False,
        )

    def connect(self) -> "DBClient":
        SQLModel.metadata.create_all(self.engine)
        logger.info("event=db_connected url=%s", self.engine.url.render_as_string(hide_password=True))
        return self

    def is_alive(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except OperationalError:
            return False

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        with Session(self.engine) as session:
            yield session

    def nb_users(self) -> int:
        with self.session_scope() as session:
            return int(session.exec(select(func.count(User.id))).one() or 0)

    def nb_files(self) -> int:
        with self.session_scope() as session:
            return int(session.exec(select(func.count(File.id))).one() or 0)
