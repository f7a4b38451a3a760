from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config


def engine_options(database_url: str, echo: bool = False) -> dict:
    """
    Keyword arguments for ``create_engine`` per backend.

    SQLite connections are shared across the request threads of the app
    server, and an in-memory database has to live on a single connection.
    Server databases get a liveness check before a pooled connection is
    handed out.
    """
    url = make_url(database_url)
    options = {"echo": echo}
    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(Config.DATABASE_URL, **engine_options(Config.DATABASE_URL, Config.SQL_ECHO))

# records are returned after commit, so loaded attributes must stay readable
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
