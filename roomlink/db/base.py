"""SQLAlchemy declarative base shared by every model."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def import_models() -> None:
    """Import all models so they register on ``Base.metadata``."""
    import roomlink.models  # noqa: F401
