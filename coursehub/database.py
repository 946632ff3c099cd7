import logging
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .db import models  # noqa: F401  registers tables on SQLModel.metadata

logger = logging.getLogger(__name__)


def create_db_engine(db_url: str, echo: bool = False) -> Engine:
    """Choose engine options based on database scheme"""
    engine_kwargs = {}

    if db_url.startswith("sqlite"):
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
    else:
        # Better resiliency for managed Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_engine(db_url, echo=echo, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ensured")


def session_scope(engine: Engine):
    with Session(engine) as session:
        yield session
