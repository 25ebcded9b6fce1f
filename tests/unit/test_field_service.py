from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from pyfastcrud.services import field_service
from pyfastcrud.services.field_service import (
    ALWAYS,
    NEVER,
    FieldDescriptor,
    RequiresPermission,
    Transform,
    build_annotation,
)


def _accepts(descriptor: FieldDescriptor, value) -> bool:
    adapter = TypeAdapter(build_annotation(descriptor), config={"strict": True})
    try:
        adapter.validate_python(value)
    except PydanticValidationError:
        return False
    return True


@pytest.mark.unit
def test_descriptor_defaults_and_bind() -> None:
    descriptor = field_service.string()

    assert descriptor.max_length == 255
    assert descriptor.policy("create") is ALWAYS
    assert descriptor.policy("view") is ALWAYS
    assert descriptor.bind("name").name == "name"
    assert descriptor.name == ""


@pytest.mark.unit
def test_transform_is_rejected_for_write_actions() -> None:
    with pytest.raises(ValueError):
        field_service.string(update=Transform(lambda value, actor, record: value))

    with pytest.raises(ValueError):
        field_service.string(create="always")

    descriptor = field_service.string(view=Transform(lambda value, actor, record: str(value).upper()))
    assert isinstance(descriptor.view, Transform)


@pytest.mark.unit
def test_enum_requires_values_and_dedupes() -> None:
    with pytest.raises(ValueError):
        field_service.enum([])

    descriptor = field_service.enum(["draft", "published", "draft"])

    assert descriptor.enum_values == ("draft", "published")
    assert _accepts(descriptor, "draft") is True
    assert _accepts(descriptor, "archived") is False


@pytest.mark.unit
def test_string_annotations_are_strict() -> None:
    descriptor = field_service.string(max_length=3)

    assert _accepts(descriptor, "abc") is True
    assert _accepts(descriptor, "abcd") is False
    assert _accepts(descriptor, 12) is False
    assert _accepts(descriptor, None) is False


@pytest.mark.unit
def test_numeric_and_boolean_annotations() -> None:
    assert _accepts(field_service.integer(), 3) is True
    assert _accepts(field_service.integer(), "3") is False
    assert _accepts(field_service.integer(), 3.5) is False
    assert _accepts(field_service.integer(minimum=0), -1) is False
    assert _accepts(field_service.number(), 3.5) is True
    assert _accepts(field_service.number(), 3) is True
    assert _accepts(field_service.number(maximum=10), 10.5) is False
    assert _accepts(field_service.boolean(), True) is True
    assert _accepts(field_service.boolean(), "true") is False


@pytest.mark.unit
def test_format_annotations() -> None:
    assert _accepts(field_service.email(), "someone@example.com") is True
    assert _accepts(field_service.email(), "not-an-email") is False
    assert _accepts(field_service.url(), "https://example.com/a") is True
    assert _accepts(field_service.url(), "example") is False
    assert _accepts(field_service.date_time(), "2024-01-02T03:04:05Z") is True
    assert _accepts(field_service.date_time(), "2024-01-02 03:04:05") is True
    assert _accepts(field_service.date_time(), "2024-01-02") is False
    assert _accepts(field_service.date_time(), "yesterday at noon") is False


@pytest.mark.unit
def test_allow_empty_accepts_null_and_empty_string() -> None:
    descriptor = field_service.integer(allow_empty=True)

    assert _accepts(descriptor, None) is True
    assert _accepts(descriptor, "") is True
    assert _accepts(descriptor, 7) is True
    assert _accepts(descriptor, "7") is False


@pytest.mark.unit
def test_policy_variants_compare_by_value() -> None:
    assert RequiresPermission("view.users.email") == RequiresPermission("view.users.email")
    assert field_service.string(view=NEVER).policy("view") is NEVER
