"""资源 schema：派生各动作输入结构、校验输入、执行字段策略与视图投影。

一个 ``ResourceSchema`` 在进程配置阶段构建一次，之后只读：

* 字段声明按声明顺序保存，派生 schema 与视图投影都遵循该顺序；
* create / replace / update / view 各自编译一个 pydantic 校验模型；
* 生命周期钩子通过 ``SchemaHooks`` 在构造时一次性传入，请求处理期间不可替换。
"""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import logging
from typing import Any, Awaitable, Callable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, create_model

from pyfastcrud.errors import (
    FieldForbiddenError,
    FieldPermissionError,
    PermissionDeniedError,
    UnknownFieldError,
    ValidationError,
)
from pyfastcrud.services.field_service import (
    SCHEMA_ACTIONS,
    FieldDescriptor,
    Never,
    RequiresPermission,
    SchemaAction,
    Transform,
    build_annotation,
)
from pyfastcrud.services.permission_service import mayi, permission_token, read_actor_value

logger = logging.getLogger(__name__)

ValidateAction = Literal["create", "replace", "update", "view", "delete"]
Record = dict[str, Any]


@dataclass(frozen=True, slots=True)
class HookParams:
    """传给生命周期钩子的上下文。"""

    resource_name: str
    action: str
    actor: Any
    raw: Mapping[str, Any]
    id: Any = None


SchemaHook = Callable[[Record, HookParams], Record | Awaitable[Record]]


@dataclass(frozen=True, slots=True)
class SchemaHooks:
    """schema 级钩子（持久化之前 / 视图之后）。"""

    before_create: SchemaHook | None = None
    before_replace: SchemaHook | None = None
    before_update: SchemaHook | None = None
    before_delete: SchemaHook | None = None
    after_view: SchemaHook | None = None


async def run_hook(hook: Callable[..., Any] | None, record: Any, params: HookParams) -> Any:
    """执行钩子，兼容同步与异步实现；未注册时原样返回。"""

    if hook is None:
        return record
    result = hook(record, params)
    if inspect.isawaitable(result):
        result = await result
    return result


def _pascal(name: str) -> str:
    parts = [part for part in str(name).replace("-", "_").split("_") if part]
    return "".join(part[:1].upper() + part[1:] for part in parts) or "Resource"


def _format_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    """将 pydantic 错误转换为可 JSON 序列化的字段错误列表。"""

    errors: list[dict[str, Any]] = []
    for item in exc.errors(include_url=False):
        loc = [str(part) for part in item.get("loc", ())]
        errors.append(
            {
                "field": ".".join(loc),
                "type": item.get("type", ""),
                "message": item.get("msg", ""),
            }
        )
    return errors


class ResourceSchema:
    """字段级策略驱动的资源 schema。"""

    def __init__(
        self,
        resource_name: str,
        fields: Mapping[str, FieldDescriptor],
        *,
        permission_name: str | None = None,
        hooks: SchemaHooks | None = None,
        scope_field: str | None = None,
    ) -> None:
        normalized_name = str(resource_name).strip()
        if not normalized_name:
            raise ValueError("resource_name 不能为空")
        if not fields:
            raise ValueError(f"资源 {normalized_name} 至少需要声明一个字段")

        bound: dict[str, FieldDescriptor] = {}
        for name, descriptor in fields.items():
            key = str(name).strip()
            if not key:
                raise ValueError(f"资源 {normalized_name} 存在空字段名")
            if not isinstance(descriptor, FieldDescriptor):
                raise ValueError(f"字段 {key} 必须是 FieldDescriptor")
            bound[key] = descriptor.bind(key)

        if scope_field is not None and scope_field not in bound:
            raise ValueError(f"scope 字段 {scope_field} 未在资源 {normalized_name} 中声明")
        if scope_field is not None and bound[scope_field].required:
            raise ValueError(f"scope 字段 {scope_field} 由 actor 写入，不能声明为 required")

        self._resource_name = normalized_name
        self._permission_name = (permission_name or "").strip() or normalized_name
        self._fields = bound
        self._hooks = hooks or SchemaHooks()
        self._scope_field = scope_field
        self._validators: dict[SchemaAction, type[BaseModel]] = {
            action: self._compile_validator(action) for action in SCHEMA_ACTIONS
        }

    # --- 只读配置 -----------------------------------------------------------

    @property
    def resource_name(self) -> str:
        return self._resource_name

    @property
    def permission_name(self) -> str:
        return self._permission_name

    @property
    def fields(self) -> Mapping[str, FieldDescriptor]:
        return dict(self._fields)

    @property
    def hooks(self) -> SchemaHooks:
        return self._hooks

    @property
    def scope_field(self) -> str | None:
        return self._scope_field

    def with_permission_name(self, permission_name: str) -> ResourceSchema:
        """返回权限名不同、其余配置共享的副本。"""

        return ResourceSchema(
            self._resource_name,
            self._fields,
            permission_name=permission_name,
            hooks=self._hooks,
            scope_field=self._scope_field,
        )

    # --- schema 派生 --------------------------------------------------------

    def action_fields(self, action: SchemaAction) -> list[FieldDescriptor]:
        """该动作下参与的字段（策略不为 Never），保持声明顺序。"""

        return [field for field in self._fields.values() if not isinstance(field.policy(action), Never)]

    def required_fields(self, action: SchemaAction) -> list[str]:
        if action not in {"create", "replace"}:
            return []
        return [field.name for field in self.action_fields(action) if field.required]

    def _compile_validator(self, action: SchemaAction) -> type[BaseModel]:
        required = set(self.required_fields(action))
        definitions: dict[str, Any] = {}
        for index, field in enumerate(self.action_fields(action)):
            extra: dict[str, Any] = {"alias": field.name}
            if field.description:
                extra["description"] = field.description
            if field.name in required:
                definitions[f"f{index}"] = (build_annotation(field), Field(**extra))
            else:
                definitions[f"f{index}"] = (build_annotation(field), Field(default=None, **extra))

        return create_model(
            f"{_pascal(self._resource_name)}{action.capitalize()}Schema",
            __config__=ConfigDict(extra="forbid", strict=True),
            **definitions,
        )

    def derive_action_schema(self, action: SchemaAction) -> dict[str, Any]:
        """派生该动作的 JSON Schema（additionalProperties: false）。"""

        if action not in SCHEMA_ACTIONS:
            raise ValueError(f"不支持的 schema 动作: {action}")

        schema = self._validators[action].model_json_schema(by_alias=True)
        schema["additionalProperties"] = False
        required = self.required_fields(action)
        if required:
            schema["required"] = required
        else:
            schema.pop("required", None)
        return schema

    # --- 输入校验 -----------------------------------------------------------

    def _check_structure(self, action: SchemaAction, data: Any) -> None:
        if not isinstance(data, Mapping):
            raise ValidationError(
                "Validate failed",
                [{"field": "", "type": "dict_type", "message": "Input should be an object"}],
            )
        try:
            self._validators[action].model_validate(dict(data))
        except PydanticValidationError as exc:
            raise ValidationError("Validate failed", _format_errors(exc)) from exc

    def _check_field(self, action: SchemaAction, name: str, actor: Any) -> FieldDescriptor:
        field = self._fields.get(name)
        if field is None:
            raise UnknownFieldError(f"Unknown field {name}")

        policy = field.policy(action)
        if isinstance(policy, Never) or (name == self._scope_field and action != "view"):
            raise FieldForbiddenError(f"Field {name} not allowed to {action}.")
        if isinstance(policy, RequiresPermission) and not mayi(actor, policy.token):
            raise FieldPermissionError(f'Permission denied to {action} "{name}".')
        return field

    async def validate(
        self,
        action: ValidateAction,
        data: Mapping[str, Any] | None,
        actor: Any,
        record_id: Any = None,
    ) -> Record:
        """校验原始输入并返回净化后的记录（持久化由调用方负责）。"""

        if action == "delete":
            await run_hook(
                self._hooks.before_delete,
                {},
                HookParams(resource_name=self._resource_name, action="delete", actor=actor, raw={}, id=record_id),
            )
            return {}

        if action not in SCHEMA_ACTIONS:
            raise ValueError(f"不支持的校验动作: {action}")

        raw = data if data is not None else {}
        self._check_structure(action, raw)

        token = permission_token(action, self._permission_name)
        if not mayi(actor, token):
            logger.debug("权限不足: resource=%s token=%s", self._resource_name, token)
            raise PermissionDeniedError("Permission denied")

        output: Record = {}
        for name, value in raw.items():
            field = self._check_field(action, name, actor)
            if field.virtual:
                continue
            output[name] = value

        if action == "create" and self._scope_field is not None:
            scope = read_actor_value(actor, "scope")
            if scope is not None:
                output[self._scope_field] = scope

        hook = {
            "create": self._hooks.before_create,
            "replace": self._hooks.before_replace,
            "update": self._hooks.before_update,
        }.get(action)
        return await run_hook(
            hook,
            output,
            HookParams(resource_name=self._resource_name, action=action, actor=actor, raw=raw, id=record_id),
        )

    # --- 视图投影 -----------------------------------------------------------

    def project(self, record: Mapping[str, Any], actor: Any) -> Record:
        """按声明顺序生成权限过滤后的投影（不执行 after_view 钩子）。"""

        output: Record = {}
        for name, field in self._fields.items():
            policy = field.view
            if isinstance(policy, Never) or field.virtual:
                continue
            if isinstance(policy, Transform):
                output[name] = policy.fn(record.get(name), actor, dict(record))
                continue
            if isinstance(policy, RequiresPermission) and not mayi(actor, policy.token):
                continue
            if name in record:
                output[name] = record[name]
        return output

    async def view_as(self, record: Mapping[str, Any] | None, actor: Any) -> Record | None:
        """以 actor 视角投影记录；记录为空时原样返回。"""

        if record is None:
            return record

        token = permission_token("view", self._permission_name)
        if not mayi(actor, token):
            logger.debug("权限不足: resource=%s token=%s", self._resource_name, token)
            raise PermissionDeniedError("Permission denied")

        projection = self.project(record, actor)
        return await run_hook(
            self._hooks.after_view,
            projection,
            HookParams(resource_name=self._resource_name, action="view", actor=actor, raw=record),
        )

    def __repr__(self) -> str:
        return f"ResourceSchema(resource_name={self._resource_name!r}, fields={list(self._fields)!r})"
