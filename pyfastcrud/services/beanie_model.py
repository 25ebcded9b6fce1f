"""基于 Beanie Document 的数据模型实现（get/create/update/replace/delete/list）。"""

from __future__ import annotations

import re
from typing import Any

from beanie import Document, PydanticObjectId
from bson import ObjectId
import pymongo

from pyfastcrud.errors import NotFoundError, ValidationError
from pyfastcrud.models import QueryFilter, QueryListResults, QueryParam, QuerySort

_COMPARISON_OPERATORS: dict[str, str] = {
    "!=": "$ne",
    ">": "$gt",
    ">=": "$gte",
    "<": "$lt",
    "<=": "$lte",
    "in": "$in",
    "!in": "$nin",
}


def _mongo_field(field: str) -> str:
    return "_id" if field == "id" else field


def _mongo_value(field: str, value: Any) -> Any:
    """id 字段的字符串值转换为 ObjectId。"""

    if field != "id":
        return value
    if isinstance(value, list):
        return [_mongo_value(field, item) for item in value]
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _invalid_filter(item: QueryFilter, message: str) -> ValidationError:
    return ValidationError(
        "Invalid query parameter filter",
        [{"field": item.field, "type": "filter_unsupported", "message": message}],
    )


def build_filter_condition(item: QueryFilter) -> dict[str, Any]:
    """单个过滤条件 → MongoDB 条件。"""

    field = _mongo_field(item.field)
    value = _mongo_value(item.field, item.value)

    if item.op == "=":
        return {field: value}
    if item.op in _COMPARISON_OPERATORS:
        if item.op in {"in", "!in"} and not isinstance(value, list):
            value = [value]
        return {field: {_COMPARISON_OPERATORS[item.op]: value}}
    if item.op == "contains":
        return {field: {"$regex": re.escape(str(value)), "$options": "i"}}
    if item.op == "!contains":
        return {field: {"$not": {"$regex": re.escape(str(value)), "$options": "i"}}}
    if item.op in {"between", "!between"}:
        if not isinstance(value, list) or len(value) != 2:
            raise _invalid_filter(item, f"{item.op} 需要两个边界值")
        if item.op == "between":
            return {field: {"$gte": value[0], "$lte": value[1]}}
        return {"$or": [{field: {"$lt": value[0]}}, {field: {"$gt": value[1]}}]}
    if item.op == "null":
        return {field: None}
    if item.op == "!null":
        return {field: {"$ne": None}}
    raise _invalid_filter(item, f"不支持的过滤操作: {item.op}")


def build_mongo_filter(filters: list[QueryFilter]) -> dict[str, Any]:
    conditions = [build_filter_condition(item) for item in filters]
    if not conditions:
        return {}
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def build_mongo_sort(sort: list[QuerySort]) -> list[tuple[str, int]]:
    return [
        (_mongo_field(item.field), pymongo.DESCENDING if item.direction == "DESC" else pymongo.ASCENDING)
        for item in sort
    ]


def _dump(document: Document) -> dict[str, Any]:
    return document.model_dump(mode="json")


class BeanieModel:
    """将 Beanie Document 适配为资源编排所需的数据模型能力。"""

    def __init__(self, document_model: type[Document]) -> None:
        self.document_model = document_model

    async def _find(self, record_id: Any) -> Document | None:
        if not ObjectId.is_valid(str(record_id)):
            return None
        return await self.document_model.get(PydanticObjectId(str(record_id)))

    async def get(self, record_id: Any) -> dict[str, Any] | None:
        document = await self._find(record_id)
        return _dump(document) if document else None

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        document = self.document_model.model_validate(data)
        await document.insert()
        return _dump(document)

    async def update(self, record_id: Any, patch: dict[str, Any]) -> dict[str, Any]:
        document = await self._find(record_id)
        if not document:
            raise NotFoundError(f"Record not found {self.document_model.__name__}.{record_id}")
        for key, value in patch.items():
            setattr(document, key, value)
        await document.save()
        return _dump(document)

    async def replace(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        existing = await self._find(record_id)
        if not existing:
            raise NotFoundError(f"Record not found {self.document_model.__name__}.{record_id}")
        document = self.document_model.model_validate({**data, "id": existing.id})
        await document.replace()
        return _dump(document)

    async def delete(self, record_id: Any) -> int:
        document = await self._find(record_id)
        if not document:
            return 0
        await document.delete()
        return 1

    async def list(self, query: QueryParam) -> QueryListResults:
        criteria = build_mongo_filter(query.filter)
        total = await self.document_model.find(criteria).count()
        cursor = (
            self.document_model.find(criteria)
            .sort(build_mongo_sort(query.sort))
            .skip(query.range.offset)
            .limit(query.range.limit)
        )
        documents = await cursor.to_list()
        return QueryListResults(total=total, rows=[_dump(item) for item in documents])
