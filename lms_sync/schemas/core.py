"""
Core schemas shared by services and stores.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


Item = dict[str, Any]


class PaginationMeta(BaseModel):
    """Pagination envelope a service returns alongside a page of items."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(default=1, ge=1, alias="currentPage")
    total_pages: int = Field(default=1, ge=0, alias="totalPages")
    total: int = Field(default=0, ge=0)
    per_page: int | None = Field(default=None, alias="perPage")


class ListResult(BaseModel):
    """Result of a collection ``get_all`` call."""

    data: list[Item] = Field(default_factory=list)
    pagination: PaginationMeta = Field(default_factory=PaginationMeta)


class Pagination(BaseModel):
    """Pagination state held by a store.

    ``has_more`` is only ever produced by :meth:`from_meta` or
    :meth:`empty`, so it always equals ``current_page < total_pages`` after a
    fetch settles.
    """

    model_config = ConfigDict(frozen=True)

    current_page: int = 1
    total_pages: int = 1
    total: int = 0
    per_page: int = 20
    has_more: bool = False

    @classmethod
    def empty(cls, per_page: int) -> "Pagination":
        return cls(current_page=1, total_pages=1, total=0, per_page=per_page, has_more=False)

    @classmethod
    def from_meta(cls, meta: PaginationMeta, page: int, per_page: int) -> "Pagination":
        total_pages = meta.total_pages or 1
        return cls(
            current_page=page,
            total_pages=total_pages,
            total=meta.total,
            per_page=per_page,
            has_more=page < total_pages,
        )
