"""
数据库管理器
职责：
- 管理数据库连接（异步）
- 提供 session 上下文管理器（成功提交 / 失败回滚）
- 初始化数据库 schema
- SQLite 下配置 WAL 与外键约束
"""

from pathlib import Path
from typing import Optional, AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

from utils.logger import get_logger

logger = get_logger("DataAccess")


class DatabaseManager:
    """
    数据库管理器

    使用方式：
        db_manager = DatabaseManager("sqlite+aiosqlite:///data/app.db")
        await db_manager.initialize()

        async with db_manager.session() as session:
            context = DataContext(session)
            ...
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: bool = False,
        metadata: Optional[MetaData] = None,
    ):
        """
        初始化数据库管理器

        Args:
            database_url: 数据库连接 URL，默认为 data/ 下的 SQLite 文件
            echo: 是否打印 SQL 语句（调试用）
            metadata: 需要建表的元数据，默认为 db.models.Base.metadata
        """
        if database_url is None:
            data_dir = Path("data")
            data_dir.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite+aiosqlite:///{data_dir}/dataaccess.db"

        self.database_url = database_url
        self.echo = echo
        self._metadata = metadata
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._initialized = False

        logger.info(f"DatabaseManager created with URL: {self._mask_url(database_url)}")

    def _mask_url(self, url: str) -> str:
        """隐藏 URL 中的敏感信息"""
        if ":///" in url:
            return url
        if "@" in url:
            return f"***@{url.split('@')[-1]}"
        return url

    def _is_sqlite(self) -> bool:
        return "sqlite" in self.database_url.lower()

    @property
    def metadata(self) -> MetaData:
        if self._metadata is None:
            from db.models import Base
            self._metadata = Base.metadata
        return self._metadata

    async def initialize(self) -> None:
        """
        初始化数据库
        - 创建引擎和 session 工厂
        - 配置 SQLite pragma
        - 创建所有表
        """
        if self._initialized:
            logger.debug("Database already initialized")
            return

        engine_kwargs = {"echo": self.echo}

        if self._is_sqlite():
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.database_url:
                # 内存库必须单连接，否则每个连接都是一个新库
                engine_kwargs["poolclass"] = StaticPool

        self._engine = create_async_engine(self.database_url, **engine_kwargs)

        if self._is_sqlite():
            await self._configure_sqlite()

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        await self._create_tables()

        self._initialized = True
        logger.info("Database initialized successfully")

    async def _configure_sqlite(self) -> None:
        async with self._engine.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA synchronous=NORMAL"))
            await conn.execute(text("PRAGMA foreign_keys=ON"))

        logger.info("SQLite pragmas configured")

    async def _create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(self.metadata.create_all)

        logger.info(f"Database tables created: {len(self.metadata.tables)}")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        获取数据库 session 的上下文管理器

        正常退出 → commit；异常 → rollback 后继续抛出

        Yields:
            AsyncSession: 数据库会话
        """
        if not self._initialized:
            await self.initialize()

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def close(self) -> None:
        """关闭数据库连接"""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False
            logger.info("Database connection closed")

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._initialized


def create_test_database_manager(metadata: Optional[MetaData] = None) -> DatabaseManager:
    """
    创建用于测试的内存数据库管理器

    Returns:
        使用内存数据库的 DatabaseManager
    """
    return DatabaseManager(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False,
        metadata=metadata,
    )
