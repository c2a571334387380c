"""
FastAPI 应用入口

托管数据访问层：启动时初始化数据库与自动注册，关闭时释放连接。
业务路由由调用方通过 create_app(routers=...) 挂载。
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

from fastapi import APIRouter, FastAPI

from core.config import DataAccessSettings
from api.dependencies import init_globals, close_globals
from utils.logger import get_logger

logger = get_logger("DataAccess")


def create_app(
    settings: Optional[DataAccessSettings] = None,
    routers: Iterable[APIRouter] = (),
) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        settings: 数据访问层配置，为空时使用全局配置
        routers: 需要挂载的业务路由
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting data access layer...")
        await init_globals(settings)
        yield
        logger.info("Shutting down data access layer...")
        await close_globals()

    app = FastAPI(title="Data Access Layer", lifespan=lifespan)

    for router in routers:
        app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app
