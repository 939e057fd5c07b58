from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from .pagination import page_count


class UserRow(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    email: str | None = None
    age: int | None = None


class UsersPage(BaseModel):
    """Body of ``GET /users``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    data: list[UserRow]
    total_count: int = Field(alias="totalCount", ge=0)
    count: int | None = Field(default=None, ge=0)


@dataclass(frozen=True)
class QueryResult:
    rows: list[UserRow]
    total_count: int
    page_size: int
    query_string: str = ""
    generation: int = 0

    @property
    def page_count(self) -> int:
        return page_count(self.total_count, self.page_size)
