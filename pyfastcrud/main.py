"""FastAPI 应用工厂。"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Iterable, Sequence

from beanie import Document
from fastapi import FastAPI

from .apps.api.router import build_router, register_error_handlers
from .config import API_PREFIX, APP_NAME, ENABLE_DOCS, LOG_LEVEL
from .db import close_db, init_db
from .middleware.actor import ActorMiddleware, ActorResolver
from .services.query_adaptors import DEFAULT_ADAPTOR, QueryAdaptor
from .services.resource_service import Resource

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def create_app(
    resources: Iterable[Resource],
    *,
    query_adaptor: QueryAdaptor = DEFAULT_ADAPTOR,
    actor_resolver: ActorResolver | None = None,
    document_models: Sequence[type[Document]] | None = None,
    prefix: str = API_PREFIX,
    exempt_paths: set[str] | None = None,
) -> FastAPI:
    """构建挂载全部资源端点的应用；传入 document_models 时在生命周期内初始化 Beanie。"""

    resource_list = list(resources)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if document_models:
            await init_db(document_models)
        logger.info("已加载资源: %s", ", ".join(item.resource_name for item in resource_list) or "-")
        try:
            yield
        finally:
            if document_models:
                await close_db()

    docs_kwargs = {} if ENABLE_DOCS else {"docs_url": None, "redoc_url": None, "openapi_url": None}
    app = FastAPI(title=APP_NAME, lifespan=lifespan, **docs_kwargs)
    register_error_handlers(app)
    app.add_middleware(ActorMiddleware, resolver=actor_resolver, exempt_paths=exempt_paths)
    app.include_router(build_router(resource_list, query_adaptor=query_adaptor, prefix=prefix))
    return app
