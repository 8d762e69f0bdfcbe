# groupmatch/infrastructure/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from groupmatch.config.settings import settings

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # recompute workers share the engine across threads
        connect_args["check_same_thread"] = False
    engine = create_engine(url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args)
    if url.startswith("sqlite"):
        # SQLite ignores ON DELETE CASCADE unless enabled per connection
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, expire_on_commit=False, autoflush=False)


def init_db(bind: Engine) -> None:
    """Create missing tables. Does not drop existing ones."""
    import groupmatch.infrastructure.models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=bind)


engine = make_engine(settings.DATABASE_URL)
