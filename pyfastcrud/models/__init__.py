"""模型集合。"""

from .actor import ANONYMOUS, Actor
from .endpoint import HandlerRequest, HandlerResponse, ResourceEndpoint
from .query import QueryFilter, QueryListResults, QueryParam, QueryRange, QuerySort

__all__ = [
    "ANONYMOUS",
    "Actor",
    "HandlerRequest",
    "HandlerResponse",
    "ResourceEndpoint",
    "QueryFilter",
    "QueryListResults",
    "QueryParam",
    "QueryRange",
    "QuerySort",
]
