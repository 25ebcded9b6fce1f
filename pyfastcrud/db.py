"""数据库初始化与连接管理。"""

from __future__ import annotations

from typing import Any, Sequence, cast

from beanie import Document, init_beanie
from pymongo import AsyncMongoClient

from .config import MONGO_DB, MONGO_URL

_mongo_client: AsyncMongoClient | None = None


async def init_db(document_models: Sequence[type[Document]]) -> None:
    """初始化 Beanie，并保留客户端用于关闭。"""
    global _mongo_client
    _mongo_client = AsyncMongoClient(MONGO_URL)
    await init_beanie(
        database=cast(Any, _mongo_client[MONGO_DB]),
        document_models=list(document_models),
    )


async def close_db() -> None:
    """关闭 Mongo 连接。"""
    global _mongo_client
    if _mongo_client is not None:
        await _mongo_client.close()
    _mongo_client = None
