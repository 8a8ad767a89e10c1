"""
Base repository with CRUD helpers, row locking and pagination.
"""

from dataclasses import dataclass
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from roomlink.core.pagination import PaginationParams
from roomlink.models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


@dataclass
class PaginatedResult(Generic[ModelType]):
    items: List[ModelType]
    total_items: int
    params: PaginationParams


class BaseRepository(Generic[ModelType]):
    """Query access for one model. Commits are owned by the caller."""

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    # ==================== CRUD ====================

    def add(self, entity: ModelType) -> ModelType:
        """Stage a new entity and flush so its id is assigned."""
        self.db.add(entity)
        self.db.flush()
        return entity

    def get_by_id(self, entity_id: str) -> Optional[ModelType]:
        return self.db.get(self.model, entity_id)

    def get_for_update(self, entity_id: str) -> Optional[ModelType]:
        """Fetch a row with ``SELECT ... FOR UPDATE`` (no-op on SQLite)."""
        query = (
            select(self.model)
            .where(self.model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(query).scalar_one_or_none()

    def delete(self, entity: ModelType) -> None:
        self.db.delete(entity)
        self.db.flush()

    # ==================== Queries ====================

    def count(self, query: Select) -> int:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        return self.db.execute(count_query).scalar_one()

    def paginate(self, query: Select, params: PaginationParams) -> PaginatedResult[ModelType]:
        total = self.count(query)
        items = self.db.execute(
            query.offset(params.offset).limit(params.page_size)
        ).scalars().all()
        return PaginatedResult(items=list(items), total_items=total, params=params)
