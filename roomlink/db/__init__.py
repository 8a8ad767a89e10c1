from roomlink.db.base import Base
from roomlink.db.session import get_db

__all__ = ["Base", "get_db"]
