"""资源编排：权限闸门 → 校验 → 持久化 → 后置钩子 → 视图投影。"""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import logging
from typing import Any, Callable, Iterable, Mapping

from pyfastcrud.errors import NotFoundError, PermissionDeniedError
from pyfastcrud.models import QueryListResults, QueryParam
from pyfastcrud.models.endpoint import RESOURCE_ACTIONS, HttpMethod, ResourceAction
from pyfastcrud.services.permission_service import mayi, permission_token
from pyfastcrud.services.schema_service import HookParams, Record, ResourceSchema, SchemaHook, run_hook

logger = logging.getLogger(__name__)

DatabaseModelGetter = Callable[[str, str], Any]

DEFAULT_METHODS: dict[ResourceAction, HttpMethod | None] = {
    "create": "POST",
    "get": "GET",
    "list": "GET",
    "replace": "PUT",
    "update": "PATCH",
    "delete": "DELETE",
}


@dataclass(frozen=True, slots=True)
class ResourceHooks:
    """持久化之后的钩子（返回值被忽略）。"""

    after_create: SchemaHook | None = None
    after_replace: SchemaHook | None = None
    after_update: SchemaHook | None = None
    after_delete: SchemaHook | None = None


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _normalize_methods(
    methods: Mapping[str, HttpMethod | None] | None,
    available_actions: Iterable[str] | None,
) -> dict[ResourceAction, HttpMethod | None]:
    """合并动作开关与 HTTP 方法映射，得到只读的配置表。"""

    table: dict[ResourceAction, HttpMethod | None] = dict(DEFAULT_METHODS)
    for action, method in (methods or {}).items():
        if action not in table:
            raise ValueError(f"未知的资源动作: {action}")
        table[action] = str(method).upper() if method else None

    if available_actions is not None:
        enabled = {str(item).strip() for item in available_actions}
        unknown = enabled - set(RESOURCE_ACTIONS)
        if unknown:
            raise ValueError(f"未知的资源动作: {', '.join(sorted(unknown))}")
        for action in RESOURCE_ACTIONS:
            if action not in enabled:
                table[action] = None
    return table


class Resource:
    """包装 ResourceSchema 与数据模型，对外提供 CRUD 动作。"""

    def __init__(
        self,
        schema: ResourceSchema,
        *,
        model: Any = None,
        model_getter: DatabaseModelGetter | None = None,
        permission_name: str | None = None,
        hooks: ResourceHooks | None = None,
        methods: Mapping[str, HttpMethod | None] | None = None,
        available_actions: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> None:
        if model is not None and model_getter is not None:
            raise ValueError("model 与 model_getter 只能二选一")

        if permission_name and permission_name.strip() != schema.permission_name:
            schema = schema.with_permission_name(permission_name)

        self._schema = schema
        self._hooks = hooks or ResourceHooks()
        self._methods = _normalize_methods(methods, available_actions)
        self._model = model
        self._model_getter = model_getter
        raw_tags = [str(item).strip() for item in (tags or [schema.resource_name])]
        self._tags = tuple(dict.fromkeys(item for item in raw_tags if item))

    # --- 只读配置 -----------------------------------------------------------

    @property
    def resource_name(self) -> str:
        return self._schema.resource_name

    @property
    def permission_name(self) -> str:
        return self._schema.permission_name

    @property
    def schema(self) -> ResourceSchema:
        return self._schema

    @property
    def hooks(self) -> ResourceHooks:
        return self._hooks

    @property
    def tags(self) -> tuple[str, ...]:
        return self._tags

    @property
    def methods(self) -> dict[ResourceAction, HttpMethod | None]:
        return dict(self._methods)

    @property
    def available_actions(self) -> set[ResourceAction]:
        return {action for action, method in self._methods.items() if method}

    def attach_model(self, model: Any = None, *, model_getter: DatabaseModelGetter | None = None) -> None:
        """绑定数据模型（仅允许一次）。"""

        if self._model is not None or self._model_getter is not None:
            raise ValueError(f"资源 {self.resource_name} 已绑定数据模型")
        if (model is None) == (model_getter is None):
            raise ValueError("必须且只能提供 model 或 model_getter 之一")
        self._model = model
        self._model_getter = model_getter

    # --- 数据模型访问 -------------------------------------------------------

    def _resolve_model(self, action: ResourceAction) -> Any:
        if self._model_getter is not None:
            return self._model_getter(self.resource_name, action)
        return self._model

    def _model_method(self, action: ResourceAction) -> Callable[..., Any]:
        """取出数据模型对应能力，缺失时抛出 404。"""

        model = self._resolve_model(action)
        if isinstance(model, Mapping):
            method = model.get(action)
        else:
            method = getattr(model, action, None)
        if model is None or not callable(method):
            logger.info("数据模型缺少能力: %s.%s", self.resource_name, action)
            raise NotFoundError(f"Model not defined {self.resource_name}.{action}")
        return method

    def _gate(self, action: str, actor: Any) -> None:
        token = permission_token(action, self.permission_name)
        if not mayi(actor, token):
            logger.debug("权限不足: resource=%s token=%s", self.resource_name, token)
            raise PermissionDeniedError(f"Permission denied {token}")

    # --- CRUD 动作 ----------------------------------------------------------

    async def get(self, actor: Any, record_id: Any) -> Record | None:
        method = self._model_method("get")
        self._gate("view", actor)
        record = await _call(method, record_id)
        return await self._schema.view_as(record, actor)

    async def list(self, actor: Any, query: QueryParam | None = None) -> dict[str, Any]:
        method = self._model_method("list")
        self._gate("view", actor)
        params = query or QueryParam(resource=self.resource_name)
        results = _coerce_list_results(await _call(method, params))
        data = [await self._schema.view_as(row, actor) for row in results.rows]
        return {"total": results.total, "data": data}

    async def create(self, actor: Any, payload: Mapping[str, Any] | None) -> Record | None:
        method = self._model_method("create")
        self._gate("create", actor)
        sanitized = await self._schema.validate("create", payload, actor)
        persisted = await _call(method, sanitized)
        await run_hook(self._hooks.after_create, persisted, self._hook_params("create", actor, sanitized, persisted))
        return await self._schema.view_as(persisted, actor)

    async def replace(self, actor: Any, record_id: Any, payload: Mapping[str, Any] | None) -> Record | None:
        method = self._model_method("replace")
        self._gate("replace", actor)
        sanitized = await self._schema.validate("replace", payload, actor, record_id)
        persisted = await _call(method, record_id, sanitized)
        await run_hook(self._hooks.after_replace, persisted, self._hook_params("replace", actor, sanitized, persisted))
        return await self._schema.view_as(persisted, actor)

    async def update(self, actor: Any, record_id: Any, payload: Mapping[str, Any] | None) -> Record | None:
        method = self._model_method("update")
        self._gate("update", actor)
        sanitized = await self._schema.validate("update", payload, actor, record_id)
        persisted = await _call(method, record_id, sanitized)
        await run_hook(self._hooks.after_update, persisted, self._hook_params("update", actor, sanitized, persisted))
        return await self._schema.view_as(persisted, actor)

    async def delete(self, actor: Any, record_id: Any) -> Any:
        """删除记录，返回数据模型的原始结果（不做视图投影）。"""

        method = self._model_method("delete")
        self._gate("delete", actor)
        await self._schema.validate("delete", {}, actor, record_id)
        result = await _call(method, record_id)
        await run_hook(
            self._hooks.after_delete,
            {"id": record_id},
            HookParams(
                resource_name=self.resource_name,
                action="delete",
                actor=actor,
                raw={"id": record_id},
                id=record_id,
            ),
        )
        return result

    def _hook_params(self, action: str, actor: Any, sanitized: Record, persisted: Any) -> HookParams:
        persisted_id = persisted.get("id") if isinstance(persisted, Mapping) else getattr(persisted, "id", None)
        return HookParams(
            resource_name=self.resource_name,
            action=action,
            actor=actor,
            raw=sanitized,
            id=persisted_id,
        )

    def __repr__(self) -> str:
        return f"Resource(resource_name={self.resource_name!r}, permission_name={self.permission_name!r})"


def _coerce_list_results(value: Any) -> QueryListResults:
    """兼容 dict / 模型两种 list 返回形态（rows 或 data）。"""

    if isinstance(value, QueryListResults):
        return value
    if isinstance(value, Mapping):
        rows = value.get("rows")
        if rows is None:
            rows = value.get("data", [])
        return QueryListResults(total=int(value.get("total", 0)), rows=list(rows))
    total = getattr(value, "total", 0)
    rows = getattr(value, "rows", None)
    if rows is None:
        rows = getattr(value, "data", [])
    return QueryListResults(total=int(total), rows=list(rows))
