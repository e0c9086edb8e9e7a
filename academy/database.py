# academy/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def _engine_options(database_url: str) -> dict:
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    # in-memory sqlite must share one connection or every session sees an empty db
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


def init_db(database_url: str):
    """Bind SessionLocal to ``database_url`` and create missing tables."""
    global engine
    if engine is not None and str(engine.url) == database_url:
        return engine
    engine = create_engine(database_url, **_engine_options(database_url))
    SessionLocal.configure(bind=engine)

    from academy import models  # noqa: F401  registers tables on Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    return engine
