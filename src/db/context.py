"""
数据库上下文

对 AsyncSession 的一层薄封装（工作单元）：
- 实体集查询入口
- 基于原生 SQL 的实体 / 行查询
- 原生 SQL 执行（可确保事务、可设置超时）
- 分离实体、提交事务
- 生成建表脚本
"""

import asyncio
import inspect
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar

from sqlalchemy import MetaData, select
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.schema import CreateIndex, CreateTable
from sqlalchemy.sql import Select

from db import raw_sql
from db.raw_sql import SqlLike
from db.sql_query import as_query
from utils.logger import get_logger

logger = get_logger("DataAccess")

T = TypeVar("T")


class DataContext:
    """
    数据库上下文

    使用方式：
        async with db_manager.session() as session:
            context = DataContext(session)
            users = await context.entity_from_sql(User, "SELECT * FROM users WHERE role = {0}", "admin")
    """

    def __init__(
        self,
        session: AsyncSession,
        metadata: Optional[MetaData] = None,
        command_timeout: Optional[float] = None,
    ):
        """
        Args:
            session: SQLAlchemy 异步 Session（由依赖注入提供）
            metadata: 生成建表脚本所用的元数据，默认为 db.models.Base.metadata
            command_timeout: 原生 SQL 的默认超时（秒）
        """
        self._session = session
        self._metadata = metadata
        self.command_timeout = command_timeout

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def database(self) -> AsyncSession:
        """原生 SQL 辅助函数所需的数据库会话"""
        return self._session

    @property
    def metadata(self) -> MetaData:
        if self._metadata is None:
            from db.models import Base
            self._metadata = Base.metadata
        return self._metadata

    # ========================================
    # 查询
    # ========================================

    def set(self, model_class: Type[T]) -> Select:
        """创建可用于查询该实体的 select 语句"""
        return select(model_class)

    def generate_create_script(self) -> str:
        """
        生成为当前模型创建所有表的脚本

        Returns:
            按依赖顺序排列的 CREATE TABLE / CREATE INDEX 语句
        """
        dialect = self._session.get_bind().dialect
        statements = []
        for table in self.metadata.sorted_tables:
            statements.append(str(CreateTable(table).compile(dialect=dialect)).strip())
            for index in sorted(table.indexes, key=lambda ix: ix.name or ""):
                statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip())
        return ";\n\n".join(statements) + (";\n" if statements else "")

    async def query_from_sql(
        self,
        sql: SqlLike,
        *parameters: Any,
        row_type: Optional[Callable[..., T]] = None,
    ) -> List[Any]:
        """
        基于原生 SQL 查询非实体行

        Args:
            sql: SQL（可含 {n} 占位）或 DynamicSqlQuery
            parameters: 占位参数
            row_type: 行类型（dataclass / pydantic 模型等），按列名构造；为空时返回 dict

        Returns:
            行列表
        """
        result = await self._execute(sql, *parameters)
        rows = result.mappings().all()
        if row_type is None:
            return [dict(row) for row in rows]
        return [row_type(**row) for row in rows]

    async def entity_from_sql(self, model_class: Type[T], sql: SqlLike, *parameters: Any) -> List[T]:
        """
        基于原生 SQL 查询实体

        查询结果需包含实体映射的全部列，实体会被当前 Session 跟踪。
        """
        statement = select(model_class).from_statement(as_query(sql, *parameters).to_statement())
        result = await self._session.execute(statement)
        return list(result.scalars().all())

    # ========================================
    # 执行
    # ========================================

    async def execute_sql_command(
        self,
        sql: SqlLike,
        *parameters: Any,
        do_not_ensure_transaction: bool = False,
        timeout: Optional[float] = None,
    ) -> int:
        """
        对数据库执行给定的 SQL

        Args:
            sql: SQL（可含 {n} 占位）或 DynamicSqlQuery
            parameters: 占位参数
            do_not_ensure_transaction: True 时不确保事务；False 时若当前没有事务则在新事务中执行并提交
            timeout: 本次执行的超时（秒），为空时使用 command_timeout

        Returns:
            受影响的行数
        """
        statement = as_query(sql, *parameters).to_statement()
        timeout = timeout if timeout is not None else self.command_timeout

        if do_not_ensure_transaction or self._session.in_transaction():
            result = await self._with_timeout(self._session.execute(statement), timeout)
        else:
            async with self._session.begin():
                result = await self._with_timeout(self._session.execute(statement), timeout)

        logger.debug(f"SQL command affected {result.rowcount} row(s)")
        return result.rowcount

    async def execute_sql(self, sql: SqlLike, *parameters: Any) -> int:
        return await raw_sql.execute_sql(self._session, as_query(sql, *parameters))

    async def query_scalar(
        self,
        sql: SqlLike,
        *parameters: Any,
        type_: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        return await raw_sql.query_scalar(self._session, as_query(sql, *parameters), type_)

    async def query_column(
        self,
        sql: SqlLike,
        *parameters: Any,
        type_: Optional[Callable[[Any], Any]] = None,
    ) -> List[Any]:
        return await raw_sql.query_column(self._session, as_query(sql, *parameters), type_)

    async def query_string_list(self, sql: SqlLike, *parameters: Any) -> List[Optional[str]]:
        return await raw_sql.query_string_list(self._session, as_query(sql, *parameters))

    async def query_decimal_single(self, sql: SqlLike, *parameters: Any) -> Optional[Decimal]:
        return await raw_sql.query_decimal_single(self._session, as_query(sql, *parameters))

    async def query_string_single(self, sql: SqlLike, *parameters: Any) -> Optional[str]:
        return await raw_sql.query_string_single(self._session, as_query(sql, *parameters))

    async def query_int_single(self, sql: SqlLike, *parameters: Any) -> Optional[int]:
        return await raw_sql.query_int_single(self._session, as_query(sql, *parameters))

    # ========================================
    # 实体跟踪与事务
    # ========================================

    def detach(self, entity: Any) -> None:
        """
        从上下文中分离一个实体

        Raises:
            ValueError: entity 为 None
        """
        if entity is None:
            raise ValueError("entity must not be None")

        if entity in self._session:
            self._session.expunge(entity)

    async def commit(self, action: Optional[Callable[[], Any]] = None) -> bool:
        """
        提交事务

        在当前事务中执行 action（同步或异步函数均可），成功则提交；
        任何异常都会先回滚再原样抛出。

        Returns:
            True
        """
        try:
            if action is not None:
                outcome = action()
                if inspect.isawaitable(outcome):
                    await outcome
            await self._session.commit()
            return True
        except Exception:
            logger.warning("Transaction failed, rolling back")
            await self._session.rollback()
            raise

    # ========================================
    # 辅助方法
    # ========================================

    async def _execute(self, sql: SqlLike, *parameters: Any) -> Result:
        return await self._session.execute(as_query(sql, *parameters).to_statement())

    @staticmethod
    async def _with_timeout(awaitable: Awaitable[Result], timeout: Optional[float]) -> Result:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)
