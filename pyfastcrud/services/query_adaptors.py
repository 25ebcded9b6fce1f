"""列表查询适配器：把不同前端约定的 query string 解析为统一的 QueryParam。"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Callable, Mapping

from pydantic import ValidationError as PydanticValidationError

from pyfastcrud.config import LIST_DEFAULT_LIMIT, LIST_DEFAULT_SORT_FIELD, LIST_MAX_LIMIT
from pyfastcrud.errors import ValidationError
from pyfastcrud.models import QueryFilter, QueryListResults, QueryParam, QueryRange, QuerySort

QueryParser = Callable[[str, Mapping[str, Any]], QueryParam]
QueryResponder = Callable[[QueryListResults, QueryParam, str], dict[str, Any]]


@dataclass(frozen=True, slots=True)
class QueryAdaptor:
    """一种前端查询约定：解析器 + 响应构造 + 参与的查询参数名。"""

    key: str
    parser: QueryParser
    response: QueryResponder
    params: tuple[str, ...]


def _load_json(name: str, value: Any) -> Any:
    """参数可能是 JSON 字符串，也可能已经是结构化对象。"""

    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"Invalid query parameter {name}",
            [{"field": name, "type": "json_invalid", "message": str(exc)}],
        ) from exc


def _unsupported_filter(field: str, value: Any) -> ValidationError:
    message = f"Filter not support '{field}': {json.dumps(value, default=str)}"
    return ValidationError(message, [{"field": field, "type": "filter_unsupported", "message": message}])


def _build_range(offset: Any, limit: Any) -> QueryRange:
    try:
        parsed_offset = max(int(offset), 0)
        parsed_limit = int(limit)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Invalid query parameter range",
            [{"field": "range", "type": "int_parsing", "message": str(exc)}],
        ) from exc
    # limit 小于 1 时使用默认值
    if parsed_limit < 1:
        parsed_limit = LIST_DEFAULT_LIMIT
    return QueryRange(offset=parsed_offset, limit=min(parsed_limit, LIST_MAX_LIMIT))


def _build_sort(field: Any, direction: Any) -> QuerySort:
    normalized = str(direction or "ASC").strip().upper()
    if normalized not in {"ASC", "DESC"}:
        raise ValidationError(
            "Invalid query parameter sort",
            [{"field": "sort", "type": "literal_error", "message": normalized}],
        )
    return QuerySort(field=str(field or LIST_DEFAULT_SORT_FIELD), direction=normalized)


def _build_query(resource: str, filters: list[dict[str, Any]], query_range: QueryRange, sort: QuerySort) -> QueryParam:
    try:
        return QueryParam(
            resource=resource,
            filter=[QueryFilter.model_validate(item) for item in filters],
            range=query_range,
            sort=[sort],
        )
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in item["loc"]),
                "type": item["type"],
                "message": item["msg"],
            }
            for item in exc.errors(include_url=False)
        ]
        raise ValidationError("Invalid query parameter filter", errors) from exc


def _content_range(name: str, results: QueryListResults, query: QueryParam) -> str:
    start = query.range.offset
    end = query.range.offset + query.range.limit
    return f"{name} {start}-{end}/{results.total}"


# --- 默认约定 --------------------------------------------------------------
# filter=[{"field","op","value"}] range={"offset","limit"} sort={"field","direction"}


def parse_default_query(resource: str, query: Mapping[str, Any]) -> QueryParam:
    filters = _load_json("filter", query.get("filter") or [])
    if isinstance(filters, dict):
        filters = [filters]
    if not isinstance(filters, list):
        raise _unsupported_filter("filter", filters)

    raw_range = _load_json("range", query.get("range") or {})
    raw_sort = _load_json("sort", query.get("sort") or {})
    if not isinstance(raw_range, dict) or not isinstance(raw_sort, dict):
        raise ValidationError("Invalid query parameter range/sort")

    return _build_query(
        resource,
        filters,
        _build_range(raw_range.get("offset", 0), raw_range.get("limit", LIST_DEFAULT_LIMIT)),
        _build_sort(raw_sort.get("field"), raw_sort.get("direction")),
    )


def default_list_response(results: QueryListResults, query: QueryParam, name: str) -> dict[str, Any]:
    return {
        "headers": {"Content-Range": _content_range(name, results, query)},
        "body": results.rows,
    }


# --- react-admin 约定 ------------------------------------------------------
# filter={"field": value | [values] | {"min","max",...}} range=[offset, limit] sort=[field, direction]

_RANGE_LOWER_KEYS = ("min", "begin", "since")
_RANGE_UPPER_KEYS = ("max", "end", "until")


def _first_present(value: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if value.get(key) not in (None, ""):
            return value[key]
    return None


def _parse_react_admin_filter(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, dict):
        raise _unsupported_filter("filter", raw)

    filters: list[dict[str, Any]] = []
    for field, value in raw.items():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            filters.append({"field": field, "op": "=", "value": value})
            continue
        if isinstance(value, list):
            filters.append({"field": field, "op": "in", "value": value})
            continue
        if isinstance(value, dict):
            handled = False
            lower = _first_present(value, _RANGE_LOWER_KEYS)
            if lower is not None:
                handled = True
                filters.append({"field": field, "op": ">=", "value": lower})
            upper = _first_present(value, _RANGE_UPPER_KEYS)
            if upper is not None:
                handled = True
                filters.append({"field": field, "op": "<=", "value": upper})
            if value.get("after") not in (None, ""):
                handled = True
                filters.append({"field": field, "op": ">", "value": value["after"]})
            if value.get("before") not in (None, ""):
                handled = True
                filters.append({"field": field, "op": "<", "value": value["before"]})
            if handled:
                continue
        raise _unsupported_filter(field, value)
    return filters


def parse_react_admin_query(resource: str, query: Mapping[str, Any]) -> QueryParam:
    filters = _parse_react_admin_filter(_load_json("filter", query.get("filter") or {}))
    raw_range = _load_json("range", query.get("range") or [0, LIST_DEFAULT_LIMIT])
    raw_sort = _load_json("sort", query.get("sort") or [LIST_DEFAULT_SORT_FIELD, "ASC"])
    if not isinstance(raw_range, list) or len(raw_range) < 2:
        raise ValidationError("Invalid query parameter range")
    if not isinstance(raw_sort, list) or not raw_sort:
        raise ValidationError("Invalid query parameter sort")

    return _build_query(
        resource,
        filters,
        _build_range(raw_range[0], raw_range[1]),
        _build_sort(raw_sort[0], raw_sort[1] if len(raw_sort) > 1 else "ASC"),
    )


def react_admin_list_response(results: QueryListResults, query: QueryParam, name: str) -> dict[str, Any]:
    return {
        "headers": {"Content-Range": _content_range(query.resource or name, results, query)},
        "body": results.rows,
    }


# --- refine 约定 -----------------------------------------------------------
# filters=[{"field","operator","value"}] pagination={"current","pageSize"} sort={"field","order"}

REFINE_OPERATORS: dict[str, str] = {
    "eq": "=",
    "ne": "!=",
    "lt": "<",
    "gt": ">",
    "lte": "<=",
    "gte": ">=",
    "in": "in",
    "nin": "!in",
    "contains": "contains",
    "ncontains": "!contains",
}


def _parse_refine_filters(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, dict):
        raw = [raw] if raw else []
    if not isinstance(raw, list):
        raise _unsupported_filter("filters", raw)

    filters: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            raise _unsupported_filter("filters", item)
        field = str(item.get("field") or "")
        operator = str(item.get("operator") or "")
        value = item.get("value")

        if operator in REFINE_OPERATORS:
            filters.append({"field": field, "op": REFINE_OPERATORS[operator], "value": value})
            continue
        if operator in {"between", "nbetween"} and isinstance(value, list) and len(value) == 2:
            # nbetween: <= 下界, >= 上界
            lower_op, upper_op = (">=", "<=") if operator == "between" else ("<=", ">=")
            filters.append({"field": field, "op": lower_op, "value": value[0]})
            filters.append({"field": field, "op": upper_op, "value": value[1]})
            continue
        raise _unsupported_filter(field, value)
    return filters


def parse_refine_query(resource: str, query: Mapping[str, Any]) -> QueryParam:
    filters = _parse_refine_filters(_load_json("filters", query.get("filters") or []))
    pagination = _load_json("pagination", query.get("pagination") or {})
    raw_sort = _load_json("sort", query.get("sort") or {})
    if not isinstance(pagination, dict) or not isinstance(raw_sort, dict):
        raise ValidationError("Invalid query parameter pagination/sort")

    try:
        current = max(int(pagination.get("current", 1)), 1)
        page_size = int(pagination.get("pageSize", LIST_DEFAULT_LIMIT))
        if page_size < 1:
            page_size = LIST_DEFAULT_LIMIT
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid query parameter pagination") from exc

    return _build_query(
        resource,
        filters,
        _build_range((current - 1) * page_size, page_size),
        _build_sort(raw_sort.get("field"), raw_sort.get("order")),
    )


def refine_list_response(results: QueryListResults, _query: QueryParam, _name: str) -> dict[str, Any]:
    return {
        "headers": {"x-total-count": str(results.total)},
        "body": results.rows,
    }


DEFAULT_ADAPTOR = QueryAdaptor(
    key="default",
    parser=parse_default_query,
    response=default_list_response,
    params=("filter", "range", "sort"),
)

REACT_ADMIN_ADAPTOR = QueryAdaptor(
    key="react_admin",
    parser=parse_react_admin_query,
    response=react_admin_list_response,
    params=("filter", "range", "sort"),
)

REFINE_ADAPTOR = QueryAdaptor(
    key="refine",
    parser=parse_refine_query,
    response=refine_list_response,
    params=("filters", "pagination", "sort"),
)

QUERY_ADAPTORS: dict[str, QueryAdaptor] = {
    item.key: item for item in (DEFAULT_ADAPTOR, REACT_ADMIN_ADAPTOR, REFINE_ADAPTOR)
}


def get_query_adaptor(key: str) -> QueryAdaptor:
    """按名称获取适配器，未知名称抛出 ValueError。"""

    adaptor = QUERY_ADAPTORS.get(str(key).strip().lower())
    if adaptor is None:
        raise ValueError(f"未知的查询适配器: {key}")
    return adaptor


def query_params_schema(adaptor: QueryAdaptor) -> dict[str, Any]:
    """生成 list 端点的 query string schema（参数均为字符串）。"""

    return {
        "type": "object",
        "properties": {name: {"type": "string"} for name in adaptor.params},
    }
