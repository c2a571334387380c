"""
FastAPI 依赖注入

把自动注册的 DAL / BLL 暴露为请求级依赖。

依赖注入链路：
    HTTP Request
        │
        ▼
    get_db_session()        # 每个请求独立的 AsyncSession
        │
        ▼
    get_data_context()      # 绑定到该 session 的 DataContext
        │
        ▼
    get_service_scope()     # 每个请求一个服务作用域
        │
        └──► provide(UserDal) / provide(IUserService) ...

并发安全保证：
    - DatabaseManager / ServiceCollection: 全局单例
    - AsyncSession / DataContext / ServiceScope: 请求独立
"""

from typing import AsyncGenerator, Callable, Optional, Type, TypeVar

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import DataAccessSettings
from db.context import DataContext
from db.database import DatabaseManager
from di.container import ServiceCollection, ServiceScope
from di.registrar import register_dals
from utils.logger import get_logger

logger = get_logger("DataAccess")

T = TypeVar("T")


# ============================================================
# 全局单例（跨请求共享）
# ============================================================

_db_manager: Optional[DatabaseManager] = None
_services: Optional[ServiceCollection] = None
_settings: Optional[DataAccessSettings] = None


async def init_globals(settings: Optional[DataAccessSettings] = None) -> None:
    """
    应用启动时初始化全局单例

    在 FastAPI lifespan 中调用。
    """
    global _db_manager, _services, _settings

    if settings is None:
        from core.config import settings as default_settings
        settings = default_settings
    _settings = settings

    _db_manager = DatabaseManager(settings.DATABASE_URL, echo=settings.ECHO)
    await _db_manager.initialize()
    logger.info("Database manager initialized")

    _services = register_dals(ServiceCollection(), settings)
    logger.info(f"Service collection initialized with {len(_services)} service(s)")


async def close_globals() -> None:
    """应用关闭时清理全局单例"""
    global _db_manager, _services, _settings

    if _db_manager:
        await _db_manager.close()
        logger.info("Database manager closed")

    _db_manager = None
    _services = None
    _settings = None


def get_db_manager() -> DatabaseManager:
    if _db_manager is None:
        raise RuntimeError("DatabaseManager not initialized. Call init_globals() first.")
    return _db_manager


def get_service_collection() -> ServiceCollection:
    if _services is None:
        raise RuntimeError("ServiceCollection not initialized. Call init_globals() first.")
    return _services


# ============================================================
# 请求级别依赖（每个请求独立）
# ============================================================

async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    每个请求获得独立的数据库 session

    请求成功 → 自动 commit
    请求失败 → 自动 rollback
    """
    db_manager = get_db_manager()
    async with db_manager.session() as session:
        yield session


async def get_data_context(
    session: AsyncSession = Depends(get_db_session),
) -> DataContext:
    timeout = _settings.COMMAND_TIMEOUT if _settings else None
    return DataContext(session, command_timeout=timeout)


async def get_service_scope(
    context: DataContext = Depends(get_data_context),
    services: ServiceCollection = Depends(get_service_collection),
) -> ServiceScope:
    return services.create_scope(context)


def provide(service_type: Type[T]) -> Callable[..., T]:
    """
    生成解析指定服务的依赖函数

    使用方式：
        @router.get("/users/{user_id}")
        async def get_user(user_id: str, users: UserDal = Depends(provide(UserDal))):
            ...
    """
    async def dependency(scope: ServiceScope = Depends(get_service_scope)) -> T:
        return scope.resolve(service_type)

    dependency.__name__ = f"provide_{service_type.__name__}"
    return dependency
