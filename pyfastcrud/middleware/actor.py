"""请求主体解析中间件。"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pyfastcrud.errors import ResourceError
from pyfastcrud.models import ANONYMOUS

logger = logging.getLogger(__name__)

ActorResolver = Callable[[Request], Any | Awaitable[Any]]


def anonymous_resolver(_request: Request) -> Any:
    """默认解析器：无权限 actor（所有校验均失败）。"""

    return ANONYMOUS


def error_response(exc: ResourceError) -> JSONResponse:
    """返回统一的错误 JSON 响应。"""

    return JSONResponse(content=exc.body, status_code=exc.status_code, headers=exc.headers or None)


class ActorMiddleware(BaseHTTPMiddleware):
    """每个请求解析一次 actor 并写入 request.state.actor。"""

    def __init__(self, app, resolver: ActorResolver | None = None, exempt_paths: set[str] | None = None):
        super().__init__(app)
        self.resolver = resolver or anonymous_resolver
        self.exempt_paths = exempt_paths or set()

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in self.exempt_paths:
            request.state.actor = ANONYMOUS
            return await call_next(request)

        try:
            actor = self.resolver(request)
            if inspect.isawaitable(actor):
                actor = await actor
        except ResourceError as exc:
            logger.info("actor 解析失败: path=%s status=%d", request.url.path, exc.status_code)
            return error_response(exc)

        request.state.actor = actor if actor is not None else ANONYMOUS
        return await call_next(request)
