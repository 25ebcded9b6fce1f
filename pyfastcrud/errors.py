"""资源引擎异常体系（携带 HTTP 状态码与响应体）。"""

from __future__ import annotations

from typing import Any


class ResourceError(Exception):
    """可直接翻译为 HTTP 响应的异常基类。"""

    status_code = 500
    default_body_message = "Internal server error!"

    def __init__(
        self,
        message: str,
        *,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.body = body if body is not None else {"message": self.default_body_message}
        self.headers = dict(headers or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class ValidationError(ResourceError):
    """输入结构不符合派生 schema。"""

    status_code = 400

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message, body={"message": "Invalid input", "errors": self.errors})


class PermissionDeniedError(ResourceError):
    """资源级权限校验失败。"""

    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__(message, body={"message": "Permission denied"})


class FieldForbiddenError(ResourceError):
    """字段在当前动作下不允许写入。"""

    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__(message, body={"message": message})


class FieldPermissionError(ResourceError):
    """当前 actor 缺少字段级权限。"""

    status_code = 403

    def __init__(self, message: str) -> None:
        super().__init__(message, body={"message": message})


class UnknownFieldError(ResourceError):
    """输入包含 schema 未声明的字段。"""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message, body={"message": message})


class NotFoundError(ResourceError):
    """数据模型缺少对应能力或记录不存在。"""

    status_code = 404

    def __init__(self, message: str) -> None:
        super().__init__(message, body={"message": "Not found."})
