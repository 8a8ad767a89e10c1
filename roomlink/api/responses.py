"""Helpers that wrap service results in the response envelopes."""

from typing import Any, Callable, List, Optional, Type, TypeVar

from fastapi import Response
from pydantic import BaseModel

from roomlink.core.pagination import pagination_meta
from roomlink.repositories.base import PaginatedResult
from roomlink.schemas.common import PaginatedResponse, PaginationMeta, SuccessResponse

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def ok(data: Any = None, message: Optional[str] = None) -> SuccessResponse:
    return SuccessResponse.create(data=data, message=message)


def paginated(
    result: PaginatedResult,
    schema: Type[SchemaT],
    convert: Optional[Callable[[Any], SchemaT]] = None,
) -> PaginatedResponse:
    convert = convert or schema.model_validate
    items: List[SchemaT] = [convert(item) for item in result.items]
    return PaginatedResponse[schema](
        data=items,
        pagination=PaginationMeta(**pagination_meta(result.total_items, result.params)),
    )


def attachment(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

