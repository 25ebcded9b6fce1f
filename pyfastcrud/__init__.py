"""声明式 CRUD 资源引擎。"""

from .errors import (
    FieldForbiddenError,
    FieldPermissionError,
    NotFoundError,
    PermissionDeniedError,
    ResourceError,
    UnknownFieldError,
    ValidationError,
)
from .models import ANONYMOUS, Actor, QueryFilter, QueryListResults, QueryParam, QueryRange, QuerySort
from .services.field_service import (
    ALWAYS,
    NEVER,
    Always,
    FieldDescriptor,
    Never,
    RequiresPermission,
    Transform,
    boolean,
    date_time,
    email,
    enum,
    integer,
    number,
    string,
    text,
    uri,
    url,
)
from .services.permission_service import mayi, unrestricted_actor
from .services.query_adaptors import DEFAULT_ADAPTOR, REACT_ADMIN_ADAPTOR, REFINE_ADAPTOR, get_query_adaptor
from .services.resource_service import Resource, ResourceHooks
from .services.schema_service import HookParams, ResourceSchema, SchemaHooks

__all__ = [
    "ALWAYS",
    "ANONYMOUS",
    "Actor",
    "Always",
    "DEFAULT_ADAPTOR",
    "FieldDescriptor",
    "FieldForbiddenError",
    "FieldPermissionError",
    "HookParams",
    "NEVER",
    "Never",
    "NotFoundError",
    "PermissionDeniedError",
    "QueryFilter",
    "QueryListResults",
    "QueryParam",
    "QueryRange",
    "QuerySort",
    "REACT_ADMIN_ADAPTOR",
    "REFINE_ADAPTOR",
    "RequiresPermission",
    "Resource",
    "ResourceError",
    "ResourceHooks",
    "ResourceSchema",
    "SchemaHooks",
    "Transform",
    "UnknownFieldError",
    "ValidationError",
    "boolean",
    "date_time",
    "email",
    "enum",
    "get_query_adaptor",
    "integer",
    "mayi",
    "number",
    "string",
    "text",
    "unrestricted_actor",
    "uri",
    "url",
]
