"""Database initialization utilities."""
import logging
from typing import Optional

from sqlalchemy.engine import Engine

from roomlink.db.base import Base, import_models
from roomlink.db.session import get_engine

logger = logging.getLogger(__name__)


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Create any missing tables.

    Suitable for development and tests; production schemas are managed
    with migrations.
    """
    import_models()
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
