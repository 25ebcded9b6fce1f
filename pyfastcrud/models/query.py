"""列表查询参数模型。"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from ..config import LIST_DEFAULT_LIMIT, LIST_DEFAULT_SORT_FIELD

QueryFilterOperator = Literal[
    "=",
    "!=",
    ">",
    ">=",
    "<",
    "<=",
    "in",
    "!in",
    "contains",
    "!contains",
    "between",
    "!between",
    "null",
    "!null",
]

FilterScalar = str | int | float | bool | datetime | None


class QueryFilter(BaseModel):
    """单个过滤条件。"""

    field: str = Field(..., min_length=1)
    op: QueryFilterOperator = "="
    value: FilterScalar | list[FilterScalar] = None


class QueryRange(BaseModel):
    """分页区间（offset + limit）。"""

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=LIST_DEFAULT_LIMIT, ge=1)


class QuerySort(BaseModel):
    """排序条件。"""

    field: str = Field(default=LIST_DEFAULT_SORT_FIELD, min_length=1)
    direction: Literal["ASC", "DESC"] = "ASC"


class QueryParam(BaseModel):
    """数据模型 list 能力接收的统一查询参数。"""

    resource: str = ""
    filter: list[QueryFilter] = Field(default_factory=list)
    range: QueryRange = Field(default_factory=QueryRange)
    sort: list[QuerySort] = Field(default_factory=lambda: [QuerySort()])


class QueryListResults(BaseModel):
    """数据模型 list 能力的返回值。"""

    total: int = Field(default=0, ge=0)
    rows: list[dict[str, Any]] = Field(default_factory=list)
