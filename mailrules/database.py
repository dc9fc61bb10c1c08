from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from mailrules.config import get_settings

_settings = get_settings()

# Create Base class
Base = declarative_base()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with the given URL and options.

    Args:
        db_url: Database connection URL
        **kwargs: Additional arguments for create_engine

    Returns:
        A SQLAlchemy Engine instance
    """
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        if "check_same_thread" not in connect_args:
            connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    return create_engine(db_url, connect_args=connect_args, **kwargs)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    ``expire_on_commit=False`` keeps vault rows readable after the commit that
    persisted a refreshed token.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def _resolve_db_url() -> str:
    if _settings.database_url:
        return _settings.database_url
    return "sqlite:///:memory:" if _settings.testing else "sqlite:///./mailrules.db"


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# both via ``mailrules.database.default_session_factory = …``.
default_engine = make_engine(_resolve_db_url())
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the session factory currently installed on this module."""
    return default_session_factory


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def initialize_database(engine: Engine = None) -> None:
    """Create all tables on *engine* (defaults to :data:`default_engine`)."""
    # Register models with Base before create_all.
    from mailrules.models.models import Job  # noqa: F401
    from mailrules.models.models import OAuthToken  # noqa: F401

    Base.metadata.create_all(bind=engine or default_engine)
