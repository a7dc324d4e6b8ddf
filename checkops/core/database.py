from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from checkops.core.config import Settings, get_settings
from checkops.models.orm import Base
import logging

logger = logging.getLogger(__name__)


def create_db_engine(
    url: Optional[str] = None, echo: Optional[bool] = None, settings: Optional[Settings] = None
) -> Engine:
    settings = settings or get_settings()
    url = url or settings.DATABASE_URL
    echo = settings.DATABASE_ECHO if echo is None else echo
    kwargs = {"future": True, "pool_pre_ping": True, "echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create tables that don't exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ready")


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
