import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings
from errors import StoreUnavailable

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs) -> Engine:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    eng = create_engine(database_url, connect_args=connect_args, **kwargs)
    if database_url.startswith("sqlite"):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def storage_guard(
    session: Session, operation: str, entry_id: Optional[int] = None
) -> Iterator[None]:
    """Roll back and re-raise driver failures as StoreUnavailable."""
    try:
        yield
    except DBAPIError as exc:
        session.rollback()
        logger.exception(
            f"storage_failure: operation={operation} entry_id={entry_id}"
        )
        raise StoreUnavailable(operation, entry_id) from exc
