"""
Database connector — SQLAlchemy engine factory and catalog construction.
Supports SQLite and PostgreSQL.
"""
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from integrations.sqlalchemy_catalog import SqlAlchemyCatalog
from models.connection import ConnectionRequest

logger = logging.getLogger(__name__)


def create_engine_from_request(req: ConnectionRequest) -> Engine:
    """Build and test a SQLAlchemy engine from a ConnectionRequest."""
    url = req.get_sqlalchemy_url()
    engine = create_engine(url, pool_pre_ping=True)
    # Validate the connection immediately
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as e:
        engine.dispose()
        raise ValueError(f"Could not connect to database: {e}") from e
    logger.debug("Connected to %s (%s)", req.service_name, req.db_type)
    return engine


def catalog_from_request(req: ConnectionRequest) -> tuple[Engine, SqlAlchemyCatalog]:
    """Return a validated engine and a catalog reading through it. Caller disposes the engine."""
    engine = create_engine_from_request(req)
    return engine, SqlAlchemyCatalog(engine)
