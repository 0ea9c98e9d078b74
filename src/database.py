# src/database.py
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from src.config import Config

# Single declarative base shared by every model
Base = declarative_base()


def build_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    url = database_url or Config.DATABASE_URL
    engine_kwargs = {
        "echo": Config.SQL_ECHO if echo is None else echo,
        "future": True,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        database = make_url(url).database
        if not database or database == ":memory:":
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_kwargs["pool_size"] = Config.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = Config.DB_MAX_OVERFLOW

    return create_engine(url, **engine_kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def init_schema(engine: Engine) -> None:
    """Create missing tables. Importing models registers them on Base."""
    import src.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
