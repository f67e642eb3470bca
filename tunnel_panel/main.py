"""
Tunnel Panel - Main Application

路由:
- routers/topology.py: 拓扑校验 / 规范化
- routers/diagnosis.py: 诊断分组
- routers/order.py: 列表排序
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .core.bg_tasks import drain_background_tasks
from .core.logging_setup import setup_logging
from .core.settings import Settings, load_settings
from .db import SqliteOrderStore
from .routers import diagnosis_router, order_router, topology_router
from .services.ordering import OrderStore

APP_TITLE = "Tunnel Panel"

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, order_store: Optional[OrderStore] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("tunnel panel starting version=%s", __version__)
        yield
        await drain_background_tasks()

    app = FastAPI(title=APP_TITLE, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.order_store = order_store or SqliteOrderStore(settings.order_db)

    app.include_router(topology_router)
    app.include_router(diagnosis_router)
    app.include_router(order_router)

    @app.get("/api/health")
    async def health():
        return {"ok": True, "version": __version__}

    return app


app = create_app()
