from __future__ import annotations

import pytest

from pyfastcrud.errors import (
    FieldForbiddenError,
    FieldPermissionError,
    PermissionDeniedError,
    UnknownFieldError,
    ValidationError,
)
from pyfastcrud.models import Actor
from pyfastcrud.services import field_service
from pyfastcrud.services.field_service import NEVER, RequiresPermission, Transform
from pyfastcrud.services.schema_service import HookParams, ResourceSchema, SchemaHooks


def _actor(*tokens: str, scope: str | None = None) -> Actor:
    return Actor(permissions=frozenset(tokens), scope=scope)


def _user_schema(**kwargs) -> ResourceSchema:
    return ResourceSchema(
        "users",
        {
            "name": field_service.string(required=True),
            "age": field_service.integer(minimum=0),
            "email": field_service.email(update=RequiresPermission("update.users.email")),
            "role": field_service.enum(["admin", "member"], create=NEVER, replace=NEVER),
            "password": field_service.string(virtual=True, update=NEVER, replace=NEVER),
        },
        **kwargs,
    )


@pytest.mark.unit
def test_schema_construction_validates_configuration() -> None:
    with pytest.raises(ValueError):
        ResourceSchema("", {"name": field_service.string()})
    with pytest.raises(ValueError):
        ResourceSchema("users", {})
    with pytest.raises(ValueError):
        ResourceSchema("users", {"name": "string"})
    with pytest.raises(ValueError):
        ResourceSchema("users", {"name": field_service.string()}, scope_field="tenant")


@pytest.mark.unit
def test_permission_name_defaults_to_resource_name() -> None:
    schema = _user_schema()
    renamed = schema.with_permission_name("accounts")

    assert schema.permission_name == "users"
    assert renamed.permission_name == "accounts"
    assert renamed.resource_name == "users"
    assert list(renamed.fields) == list(schema.fields)


@pytest.mark.unit
def test_derive_action_schema_keeps_declaration_order_and_required() -> None:
    schema = _user_schema()

    create = schema.derive_action_schema("create")
    update = schema.derive_action_schema("update")
    view = schema.derive_action_schema("view")

    assert list(create["properties"]) == ["name", "age", "email", "password"]
    assert create["required"] == ["name"]
    assert create["additionalProperties"] is False
    assert list(update["properties"]) == ["name", "age", "email", "role"]
    assert "required" not in update
    assert list(view["properties"]) == ["name", "age", "email", "role", "password"]
    assert create["properties"]["email"]["format"] == "email"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validate_rejects_missing_required_field() -> None:
    schema = _user_schema()

    with pytest.raises(ValidationError) as exc_info:
        await schema.validate("create", {"age": 3}, _actor("create.users"))

    assert exc_info.value.status_code == 400
    assert exc_info.value.errors[0]["field"] == "name"
    assert exc_info.value.body["message"] == "Invalid input"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validate_rejects_undeclared_and_excluded_keys() -> None:
    schema = _user_schema()
    actor = _actor("create.users")

    with pytest.raises(ValidationError) as exc_info:
        await schema.validate("create", {"name": "a", "nickname": "b"}, actor)
    assert exc_info.value.errors[0]["field"] == "nickname"

    with pytest.raises(ValidationError):
        await schema.validate("create", {"name": "a", "role": "admin"}, actor)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validate_does_not_coerce_types() -> None:
    schema = _user_schema()

    with pytest.raises(ValidationError):
        await schema.validate("create", {"name": "a", "age": "3"}, _actor("create.users"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_field_error_when_structure_allows_key(monkeypatch) -> None:
    schema = _user_schema()
    monkeypatch.setattr(schema, "_check_structure", lambda action, data: None)

    with pytest.raises(UnknownFieldError) as exc_info:
        await schema.validate("update", {"nickname": "b"}, _actor("update.users"))

    assert exc_info.value.status_code == 400


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validate_checks_resource_gate_before_fields() -> None:
    schema = _user_schema()

    with pytest.raises(PermissionDeniedError) as exc_info:
        await schema.validate("update", {"email": "a@b.co"}, _actor("view.users"))

    assert exc_info.value.status_code == 403
    assert exc_info.value.body == {"message": "Permission denied"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validate_field_permission() -> None:
    schema = _user_schema()

    with pytest.raises(FieldPermissionError) as exc_info:
        await schema.validate("update", {"email": "a@b.co"}, _actor("update.users"))
    assert exc_info.value.message == 'Permission denied to update "email".'

    result = await schema.validate("update", {"email": "a@b.co"}, _actor("update.users", "update.users.email"))
    assert result == {"email": "a@b.co"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_virtual_field_is_visible_to_hook_but_not_output() -> None:
    seen: list[HookParams] = []

    def before_create(record, params: HookParams):
        seen.append(params)
        return record

    schema = _user_schema(hooks=SchemaHooks(before_create=before_create))
    result = await schema.validate("create", {"name": "a", "password": "secret"}, _actor("create.users"))

    assert result == {"name": "a"}
    assert seen[0].raw["password"] == "secret"
    assert seen[0].action == "create"
    assert seen[0].resource_name == "users"
    assert seen[0].id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_async_hook_result_becomes_final_record() -> None:
    async def before_update(record, params: HookParams):
        return {**record, "updated_by": params.id}

    schema = _user_schema(hooks=SchemaHooks(before_update=before_update))
    result = await schema.validate("update", {"age": 4}, _actor("update.users"), "u1")

    assert result == {"age": 4, "updated_by": "u1"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_only_runs_before_delete_hook() -> None:
    calls: list[HookParams] = []

    def before_delete(record, params: HookParams):
        calls.append(params)
        return record

    schema = _user_schema(hooks=SchemaHooks(before_delete=before_delete))
    result = await schema.validate("delete", {"anything": "ignored"}, None, "u9")

    assert result == {}
    assert calls[0].id == "u9"
    assert calls[0].action == "delete"
    assert dict(calls[0].raw) == {}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_view_as_concrete_scenario() -> None:
    schema = ResourceSchema(
        "res",
        {
            "name": field_service.string(),
            "secret": field_service.string(view=NEVER),
            "restricted": field_service.string(view=RequiresPermission("view.res.restricted")),
        },
    )
    record = {"name": "a", "secret": "s", "restricted": "r"}

    assert await schema.view_as(record, _actor("view.res")) == {"name": "a"}
    assert await schema.view_as(record, _actor("view.res", "view.res.restricted")) == {
        "name": "a",
        "restricted": "r",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_view_as_gate_null_passthrough_and_order() -> None:
    schema = _user_schema()

    assert await schema.view_as(None, _actor()) is None
    with pytest.raises(PermissionDeniedError):
        await schema.view_as({"name": "a"}, _actor("view.accounts"))

    projected = await schema.view_as(
        {"role": "admin", "name": "a", "password": "x", "extra": 1},
        _actor("view.users"),
    )
    assert list(projected) == ["name", "role"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_view_as_transform_and_after_view_hook() -> None:
    async def after_view(projection, params: HookParams):
        return {**projection, "source": params.raw["id"]}

    schema = ResourceSchema(
        "posts",
        {
            "id": field_service.string(),
            "title": field_service.string(view=Transform(lambda value, actor, record: str(value).upper())),
            "summary": field_service.string(view=Transform(lambda value, actor, record: record["title"][:2])),
        },
        hooks=SchemaHooks(after_view=after_view),
    )

    projected = await schema.view_as({"id": "p1", "title": "hello"}, _actor("view.posts"))

    assert projected == {"id": "p1", "title": "HELLO", "summary": "he", "source": "p1"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_then_view_is_idempotent_without_hooks() -> None:
    schema = _user_schema()
    actor = _actor("create.users", "view.users")
    payload = {"name": "a", "age": 3, "email": "a@b.co", "password": "secret"}

    sanitized = await schema.validate("create", payload, actor)
    projected = await schema.view_as(sanitized, actor)

    assert projected == {"name": "a", "age": 3, "email": "a@b.co"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scope_field_is_stamped_on_create_and_never_client_supplied() -> None:
    schema = ResourceSchema(
        "orders",
        {"title": field_service.string(), "tenant": field_service.string()},
        scope_field="tenant",
    )
    actor = _actor("create.orders", "update.orders", scope="t-1")

    assert await schema.validate("create", {"title": "x"}, actor) == {"title": "x", "tenant": "t-1"}
    with pytest.raises(FieldForbiddenError) as exc_info:
        await schema.validate("update", {"tenant": "t-2"}, actor)
    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Field tenant not allowed to update."


@pytest.mark.unit
def test_scope_field_cannot_be_required() -> None:
    with pytest.raises(ValueError):
        ResourceSchema(
            "orders",
            {"title": field_service.string(), "tenant": field_service.string(required=True)},
            scope_field="tenant",
        )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_replace_requires_required_fields() -> None:
    schema = _user_schema()

    with pytest.raises(ValidationError) as exc_info:
        await schema.validate("replace", {"age": 3}, _actor("replace.users"), "u1")
    assert exc_info.value.errors[0]["field"] == "name"

    assert await schema.validate("replace", {"name": "b", "age": 3}, _actor("replace.users"), "u1") == {
        "name": "b",
        "age": 3,
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validate_view_action() -> None:
    schema = _user_schema()
    actor = _actor("view.users")

    result = await schema.validate("view", {"name": "a", "role": "admin", "password": "x"}, actor)

    assert result == {"name": "a", "role": "admin"}
    with pytest.raises(ValidationError):
        await schema.validate("view", {"name": "a", "nickname": "b"}, actor)
    with pytest.raises(PermissionDeniedError):
        await schema.validate("view", {"name": "a"}, _actor("create.users"))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_virtual_field_with_transform_is_never_projected() -> None:
    schema = ResourceSchema(
        "accounts",
        {
            "name": field_service.string(),
            "password": field_service.string(virtual=True, view=Transform(lambda value, actor, record: "***")),
        },
    )

    projected = await schema.view_as({"name": "a", "password": "secret"}, _actor("view.accounts"))

    assert projected == {"name": "a"}
