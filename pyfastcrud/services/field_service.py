"""字段声明：动作策略、类型约束与校验注解构建。"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Callable, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import AfterValidator, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from pyfastcrud.config import STRING_MAX_LENGTH

FieldType = Literal["string", "integer", "number", "boolean", "date-time", "enum"]
WriteAction = Literal["create", "replace", "update"]
SchemaAction = Literal["create", "replace", "update", "view"]

SCHEMA_ACTIONS: tuple[SchemaAction, ...] = ("create", "replace", "update", "view")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


@dataclass(frozen=True, slots=True)
class Always:
    """字段在该动作下无条件参与。"""


@dataclass(frozen=True, slots=True)
class Never:
    """字段在该动作下被排除。"""


@dataclass(frozen=True, slots=True)
class RequiresPermission:
    """actor 持有指定令牌时字段才参与。"""

    token: str


@dataclass(frozen=True, slots=True)
class Transform:
    """仅用于 view：输出值由回调计算。"""

    fn: Callable[[Any, Any, dict[str, Any]], Any]


ActionPolicy = Union[Always, Never, RequiresPermission, Transform]

ALWAYS = Always()
NEVER = Never()


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """单个字段的类型约束与各动作策略。"""

    field_type: FieldType
    name: str = ""
    create: ActionPolicy = ALWAYS
    replace: ActionPolicy = ALWAYS
    update: ActionPolicy = ALWAYS
    view: ActionPolicy = ALWAYS
    required: bool = False
    virtual: bool = False
    allow_empty: bool = False
    min_length: int | None = None
    max_length: int | None = None
    format: Literal["email", "uri"] | None = None
    enum_values: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None
    description: str = ""

    def __post_init__(self) -> None:
        for action in ("create", "replace", "update"):
            policy = getattr(self, action)
            if isinstance(policy, Transform):
                raise ValueError(f"字段 {self.name or '<unnamed>'} 的 {action} 策略不支持 Transform")
            if not isinstance(policy, (Always, Never, RequiresPermission)):
                raise ValueError(f"字段 {self.name or '<unnamed>'} 的 {action} 策略不合法: {policy!r}")
        if not isinstance(self.view, (Always, Never, RequiresPermission, Transform)):
            raise ValueError(f"字段 {self.name or '<unnamed>'} 的 view 策略不合法: {self.view!r}")
        if self.field_type == "enum" and not self.enum_values:
            raise ValueError(f"枚举字段 {self.name or '<unnamed>'} 必须声明 enum_values")

    def policy(self, action: SchemaAction) -> ActionPolicy:
        return getattr(self, action)

    def bind(self, name: str) -> FieldDescriptor:
        """返回绑定了字段名的副本。"""

        return dataclasses.replace(self, name=name)


def _validate_date_time(value: str) -> str:
    candidate = value.strip()
    if "T" not in candidate and " " not in candidate:
        raise ValueError("需要包含日期与时间的 ISO 8601 字符串")
    try:
        datetime.fromisoformat(candidate.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError("日期时间格式不合法") from exc
    return value


def _validate_uri(value: str) -> str:
    parsed = urlparse(value)
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        raise ValueError("URI 格式不合法")
    return value


def build_annotation(field: FieldDescriptor) -> Any:
    """将字段声明转换为 pydantic 严格类型注解（不做类型转换）。"""

    if field.field_type == "string":
        constraints: dict[str, Any] = {"min_length": field.min_length, "max_length": field.max_length}
        if field.format == "email":
            constraints["pattern"] = EMAIL_PATTERN
            annotation: Any = Annotated[StrictStr, Field(json_schema_extra={"format": "email"}, **constraints)]
        elif field.format == "uri":
            annotation = Annotated[
                StrictStr,
                Field(json_schema_extra={"format": "uri"}, **constraints),
                AfterValidator(_validate_uri),
            ]
        else:
            annotation = Annotated[StrictStr, Field(**constraints)]
    elif field.field_type == "date-time":
        annotation = Annotated[
            StrictStr,
            Field(json_schema_extra={"format": "date-time"}),
            AfterValidator(_validate_date_time),
        ]
    elif field.field_type == "integer":
        annotation = Annotated[StrictInt, Field(ge=field.minimum, le=field.maximum)]
    elif field.field_type == "number":
        annotation = Annotated[StrictFloat, Field(ge=field.minimum, le=field.maximum)]
    elif field.field_type == "boolean":
        annotation = StrictBool
    elif field.field_type == "enum":
        annotation = Literal[field.enum_values]
    else:
        raise ValueError(f"不支持的字段类型: {field.field_type}")

    if field.allow_empty:
        return Optional[Union[annotation, Literal[""]]]
    return annotation


# --- 常用字段声明 -----------------------------------------------------------


def string(*, max_length: int | None = STRING_MAX_LENGTH, **options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="string", max_length=max_length, **options)


def text(**options: Any) -> FieldDescriptor:
    """不限长度的字符串。"""

    return FieldDescriptor(field_type="string", **options)


def integer(**options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="integer", **options)


def number(**options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="number", **options)


def boolean(**options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="boolean", **options)


def date_time(**options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="date-time", **options)


def email(**options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="string", format="email", **options)


def url(**options: Any) -> FieldDescriptor:
    return FieldDescriptor(field_type="string", format="uri", **options)


uri = url


def enum(values: list[str] | tuple[str, ...], **options: Any) -> FieldDescriptor:
    """限定取值集合的字符串字段。"""

    normalized = tuple(dict.fromkeys(str(item) for item in values))
    return FieldDescriptor(field_type="enum", enum_values=normalized, **options)
