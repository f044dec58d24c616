"""Page-number pagination for list endpoints: `?page=&page_size=` in, `{count, next, previous, results}` out."""

from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

from fastapi import Query, Request
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000


class PaginationParams(BaseModel):
    page: int = Field(1, ge=1, description="1-based page number")
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def pagination_params(
    page: int = Query(1, ge=1, description="1-based page number"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


class Page(BaseModel, Generic[T]):
    """One page of a list plus links to its neighbours (None at either end)."""

    count: int = Field(..., ge=0, description="Total number of items matching the filters")
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[T]


async def paginate(
    db: AsyncSession,
    stmt: Select,
    pagination: Optional[PaginationParams] = None,
) -> Tuple[int, Sequence]:
    """Run an ordered ORM select; return (total count, rows of the requested page).

    Without `pagination` every row is returned.
    """
    if pagination is None:
        rows = (await db.execute(stmt)).scalars().all()
        return len(rows), rows
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    count = (await db.execute(count_stmt)).scalar() or 0
    result = await db.execute(stmt.offset(pagination.offset).limit(pagination.page_size))
    return count, result.scalars().all()


def build_page(request: Request, pagination: PaginationParams, count: int, results: list) -> Page:
    next_url = None
    if pagination.page * pagination.page_size < count:
        next_url = str(request.url.include_query_params(page=pagination.page + 1))
    previous_url = None
    if pagination.page > 1:
        previous_url = str(request.url.include_query_params(page=pagination.page - 1))
    return Page(count=count, next=next_url, previous=previous_url, results=results)
