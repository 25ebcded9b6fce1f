"""HTTP 层消费的端点描述结构。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

ResourceAction = Literal["create", "get", "update", "replace", "delete", "list"]
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

RESOURCE_ACTIONS: tuple[ResourceAction, ...] = ("create", "get", "update", "replace", "delete", "list")


@dataclass(slots=True)
class HandlerRequest:
    """传给端点 handler 的请求载体。"""

    method: str
    path: str
    actor: Any = None
    query: dict[str, Any] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class HandlerResponse:
    """端点 handler 的返回载体。"""

    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


ResourceHandler = Callable[[HandlerRequest], Awaitable[HandlerResponse]]


@dataclass(frozen=True, slots=True)
class ResourceEndpoint:
    """编译后的声明式端点。"""

    path: str
    method: HttpMethod
    action: ResourceAction
    handler: ResourceHandler
    status_code: int = 200
    tags: tuple[str, ...] = ()
    description: str = ""
    query_schema: dict[str, Any] | None = None
    params_schema: dict[str, Any] | None = None
    body_schema: dict[str, Any] | None = None
    response_schema: dict[str, Any] | None = None
