"""FastAPI 绑定：把编译后的资源端点注册为路由。"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Iterable

from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from pyfastcrud.config import API_PREFIX
from pyfastcrud.errors import ResourceError, ValidationError
from pyfastcrud.middleware.actor import error_response
from pyfastcrud.models import ANONYMOUS, HandlerRequest, ResourceEndpoint
from pyfastcrud.services.endpoint_service import compile_endpoints
from pyfastcrud.services.query_adaptors import DEFAULT_ADAPTOR, QueryAdaptor
from pyfastcrud.services.resource_service import Resource

logger = logging.getLogger(__name__)


async def read_json_body(request: Request) -> Any:
    """读取 JSON 请求体；空请求体返回 None。"""

    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(
            "Validate failed",
            [{"field": "", "type": "json_invalid", "message": str(exc)}],
        ) from exc


def build_openapi_extra(endpoint: ResourceEndpoint) -> dict[str, Any]:
    """把端点上的 schema 暴露到 OpenAPI 文档。"""

    extra: dict[str, Any] = {}
    parameters: list[dict[str, Any]] = []
    for name, schema in ((endpoint.params_schema or {}).get("properties") or {}).items():
        parameters.append({"name": name, "in": "path", "required": True, "schema": schema})
    for name, schema in ((endpoint.query_schema or {}).get("properties") or {}).items():
        parameters.append({"name": name, "in": "query", "required": False, "schema": schema})
    if parameters:
        extra["parameters"] = parameters

    if endpoint.body_schema is not None:
        extra["requestBody"] = {
            "required": True,
            "content": {"application/json": {"schema": endpoint.body_schema}},
        }
    if endpoint.response_schema is not None:
        extra["responses"] = {
            str(endpoint.status_code): {
                "description": "Successful Response",
                "content": {"application/json": {"schema": endpoint.response_schema}},
            }
        }
    return extra


def build_route(endpoint: ResourceEndpoint) -> Callable[[Request], Awaitable[Response]]:
    """生成 FastAPI 路由函数：HTTP 请求 → HandlerRequest → JSON 响应。"""

    async def route(request: Request) -> Response:
        body = await read_json_body(request) if endpoint.body_schema is not None else None
        handler_request = HandlerRequest(
            method=request.method,
            path=request.url.path,
            actor=getattr(request.state, "actor", ANONYMOUS),
            query=dict(request.query_params),
            params={key: str(value) for key, value in request.path_params.items()},
            body=body,
            headers=dict(request.headers),
        )
        result = await endpoint.handler(handler_request)
        return JSONResponse(
            content=jsonable_encoder(result.body),
            status_code=result.status_code,
            headers=result.headers or None,
        )

    route.__name__ = f"{endpoint.action}_handler"
    return route


def build_router(
    resources: Iterable[Resource],
    *,
    query_adaptor: QueryAdaptor = DEFAULT_ADAPTOR,
    prefix: str = API_PREFIX,
) -> APIRouter:
    """为一组资源构建路由。"""

    router = APIRouter()
    seen: set[str] = set()
    for resource in resources:
        if resource.resource_name in seen:
            raise ValueError(f"资源已注册: {resource.resource_name}")
        seen.add(resource.resource_name)

        for endpoint in compile_endpoints(resource, query_adaptor=query_adaptor, prefix=prefix):
            router.add_api_route(
                endpoint.path,
                build_route(endpoint),
                methods=[endpoint.method],
                status_code=endpoint.status_code,
                tags=list(endpoint.tags),
                description=endpoint.description,
                name=f"{resource.resource_name}.{endpoint.action}",
                openapi_extra=build_openapi_extra(endpoint),
            )
            logger.debug("注册端点: %s %s", endpoint.method, endpoint.path)
    return router


async def resource_error_handler(_request: Request, exc: Exception) -> Response:
    if not isinstance(exc, ResourceError):
        raise exc
    return error_response(exc)


def register_error_handlers(app: FastAPI) -> None:
    """将 ResourceError 统一翻译为 JSON 响应。"""

    app.add_exception_handler(ResourceError, resource_error_handler)
