"""请求主体（actor）模型。"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Actor(BaseModel):
    """已认证的请求主体，携带权限令牌集合。"""

    model_config = ConfigDict(frozen=True)

    # None 表示未携带权限集，任何校验都失败
    permissions: frozenset[str] | None = None
    scope: str | None = None
    unrestricted: bool = Field(default=False, description="跳过全部权限校验（仅限无鉴权模式）")


ANONYMOUS = Actor()
