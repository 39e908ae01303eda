import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.types import TypeDecorator

from accounts.shared.config import settings
from accounts.shared.errors import StorageError

log = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """
    SQLite keeps no offset, so values go in as naive UTC and come back
    as aware UTC. Comparisons against utcnow() stay aware on both sides.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def make_engine(url: str) -> Engine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)
    if parsed.database and parsed.database != ":memory:":
        # Local SQLite file (directory created if missing)
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args={"check_same_thread": False})


def make_session_factory(url: str) -> sessionmaker:
    return sessionmaker(bind=make_engine(url), autoflush=False, autocommit=False, expire_on_commit=False)


def init_store(sessions: sessionmaker) -> None:
    # import models so they register with Base.metadata
    from accounts.users import models  # noqa: F401
    Base.metadata.create_all(bind=sessions.kw["bind"])


@contextmanager
def session_scope(sessions: SessionFactory, op: str) -> Iterator[Session]:
    """
    One short-lived session per operation: opened here, always closed here.

    IntegrityError is re-raised untouched so callers can tell a uniqueness
    race apart from an outage; any other SQLAlchemy failure becomes
    StorageError.
    """
    db = sessions()
    try:
        yield db
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        log.error("storage failure during %s: %s", op, e.__class__.__name__)
        raise StorageError() from e
    finally:
        db.close()


SessionLocal = make_session_factory(settings.DATABASE_URL)


# FastAPI dep
def get_sessions() -> sessionmaker:
    return SessionLocal


def get_clock() -> Callable[[], datetime]:
    return utcnow
