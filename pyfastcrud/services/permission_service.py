"""权限判定服务（纯集合成员判断）。"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pyfastcrud.config import NO_SECURITY_PHRASE
from pyfastcrud.models import Actor

logger = logging.getLogger(__name__)


def read_actor_value(actor: Any, key: str) -> Any:
    """兼容模型对象与 dict 两种 actor 形态读取属性。"""

    if actor is None:
        return None
    if isinstance(actor, dict):
        return actor.get(key)
    return getattr(actor, key, None)


def _permission_set(actor: Any) -> frozenset[str]:
    permissions = read_actor_value(actor, "permissions")
    if not permissions or isinstance(permissions, str):
        return frozenset()
    if isinstance(permissions, frozenset):
        return permissions
    return frozenset(str(item) for item in permissions)


def mayi(actor: Any, tokens: str | Iterable[str]) -> bool:
    """判断 actor 是否持有令牌；传入多个令牌时任一命中即通过。"""

    if actor is None:
        return False
    if isinstance(actor, Actor) and actor.unrestricted:
        return True

    granted = _permission_set(actor)
    if not granted:
        return False

    if isinstance(tokens, str):
        return tokens in granted
    return any(token in granted for token in tokens)


def permission_token(action: str, permission_name: str) -> str:
    """拼接资源级权限令牌，如 create.users。"""

    return f"{action}.{permission_name}"


def unrestricted_actor(confirmation: str) -> Actor:
    """构建跳过全部校验的 actor，需逐字确认短语。"""

    if confirmation != NO_SECURITY_PHRASE:
        raise ValueError("无鉴权 actor 确认短语不匹配")
    logger.warning("已启用无鉴权 actor，所有权限校验将被跳过")
    return Actor(permissions=frozenset(), unrestricted=True)
