"""端点编译：把资源的 CRUD 动作转换为 HTTP 层可注册的声明式端点。"""

from __future__ import annotations

from typing import Any

from pyfastcrud.config import API_PREFIX
from pyfastcrud.errors import NotFoundError
from pyfastcrud.models import HandlerRequest, HandlerResponse, QueryListResults, ResourceEndpoint
from pyfastcrud.models.endpoint import RESOURCE_ACTIONS, ResourceAction, ResourceHandler
from pyfastcrud.services.query_adaptors import DEFAULT_ADAPTOR, QueryAdaptor, query_params_schema
from pyfastcrud.services.resource_service import Resource

ID_PARAMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"id": {"type": "string"}},
    "required": ["id"],
}

ACTION_DESCRIPTIONS: dict[ResourceAction, str] = {
    "create": "Create {name}",
    "get": "Get {name} by id",
    "list": "List {name}",
    "replace": "Replace {name} by id",
    "update": "Update {name} by id",
    "delete": "Delete {name} by id",
}

_ID_ACTIONS = {"get", "replace", "update", "delete"}


def build_resource_path(resource_name: str, action: ResourceAction, prefix: str = API_PREFIX) -> str:
    """list/create 使用集合路径，其余动作带 {id}。"""

    base = f"{prefix.rstrip('/')}/{resource_name}"
    if action in _ID_ACTIONS:
        return f"{base}/{{id}}"
    return base


def _record_id(request: HandlerRequest) -> str:
    return str((request.params or {}).get("id", ""))


def _body(request: HandlerRequest) -> Any:
    return request.body if request.body is not None else {}


def _build_handler(resource: Resource, action: ResourceAction, adaptor: QueryAdaptor) -> ResourceHandler:
    """handler 闭包持有资源方法，负责请求 → 调用 → 响应的封送。"""

    if action == "list":

        async def list_handler(request: HandlerRequest) -> HandlerResponse:
            query = adaptor.parser(resource.resource_name, request.query or {})
            result = await resource.list(request.actor, query)
            response = adaptor.response(
                QueryListResults(total=result["total"], rows=result["data"]),
                query,
                resource.resource_name,
            )
            return HandlerResponse(
                status_code=200,
                headers=dict(response.get("headers") or {}),
                body=response.get("body"),
            )

        return list_handler

    if action == "get":

        async def get_handler(request: HandlerRequest) -> HandlerResponse:
            record_id = _record_id(request)
            record = await resource.get(request.actor, record_id)
            if record is None:
                raise NotFoundError(f"Record not found {resource.resource_name}.{record_id}")
            return HandlerResponse(body=record)

        return get_handler

    if action == "create":

        async def create_handler(request: HandlerRequest) -> HandlerResponse:
            return HandlerResponse(status_code=201, body=await resource.create(request.actor, _body(request)))

        return create_handler

    if action == "replace":

        async def replace_handler(request: HandlerRequest) -> HandlerResponse:
            return HandlerResponse(body=await resource.replace(request.actor, _record_id(request), _body(request)))

        return replace_handler

    if action == "update":

        async def update_handler(request: HandlerRequest) -> HandlerResponse:
            return HandlerResponse(body=await resource.update(request.actor, _record_id(request), _body(request)))

        return update_handler

    async def delete_handler(request: HandlerRequest) -> HandlerResponse:
        return HandlerResponse(body=await resource.delete(request.actor, _record_id(request)))

    return delete_handler


def compile_endpoints(
    resource: Resource,
    *,
    query_adaptor: QueryAdaptor = DEFAULT_ADAPTOR,
    prefix: str = API_PREFIX,
) -> list[ResourceEndpoint]:
    """为已启用且配置了 HTTP 方法的动作生成端点（配置阶段调用一次）。"""

    schema = resource.schema
    view_schema = schema.derive_action_schema("view")
    methods = resource.methods
    endpoints: list[ResourceEndpoint] = []

    for action in RESOURCE_ACTIONS:
        method = methods.get(action)
        if not method:
            continue

        body_schema = None
        if action in {"create", "replace", "update"}:
            body_schema = schema.derive_action_schema(action)

        if action == "list":
            response_schema: dict[str, Any] | None = {"type": "array", "items": view_schema}
        elif action == "delete":
            response_schema = {"type": "integer"}
        else:
            response_schema = view_schema

        endpoints.append(
            ResourceEndpoint(
                path=build_resource_path(resource.resource_name, action, prefix),
                method=method,
                action=action,
                handler=_build_handler(resource, action, query_adaptor),
                status_code=201 if action == "create" else 200,
                tags=resource.tags,
                description=ACTION_DESCRIPTIONS[action].format(name=resource.resource_name),
                query_schema=query_params_schema(query_adaptor) if action == "list" else None,
                params_schema=ID_PARAMS_SCHEMA if action in _ID_ACTIONS else None,
                body_schema=body_schema,
                response_schema=response_schema,
            )
        )

    return endpoints
