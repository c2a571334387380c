"""
原生 SQL 执行辅助函数

在 AsyncSession 上执行 DynamicSqlQuery（或普通 SQL 字符串）并返回物化结果，
调用方拿到的都是列表或单值，不会持有未关闭的游标。
不够用时自己再扩。
"""

from decimal import Decimal
from typing import Any, Callable, List, Optional, Union

from sqlalchemy.engine import Result
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from db.sql_query import DynamicSqlQuery, as_query
from utils.logger import get_logger

logger = get_logger("DataAccess")

SqlLike = Union[str, DynamicSqlQuery]


async def _execute(session: AsyncSession, sql: SqlLike) -> Result:
    query = as_query(sql)
    logger.debug(f"Executing SQL with {len(query.parameters)} parameter(s): {query.sql}")
    return await session.execute(query.to_statement())


def _convert(value: Any, type_: Optional[Callable[[Any], Any]]) -> Any:
    if value is None or type_ is None:
        return value
    if type_ is Decimal and isinstance(value, float):
        # 避免二进制浮点误差带入 Decimal
        return Decimal(str(value))
    return type_(value)


async def execute_sql(session: AsyncSession, sql: SqlLike) -> int:
    """
    执行 SQL 返回受影响的行数

    Args:
        session: 数据库会话
        sql: DynamicSqlQuery 或 SQL 字符串

    Returns:
        受影响的行数
    """
    result = await _execute(session, sql)
    return result.rowcount


async def query_string_list(session: AsyncSession, sql: SqlLike) -> List[Optional[str]]:
    """查询每一行的第一列，转换为字符串列表"""
    result = await _execute(session, sql)
    return [_convert(value, str) for value in result.scalars().all()]


async def query_column(
    session: AsyncSession,
    sql: SqlLike,
    type_: Optional[Callable[[Any], Any]] = None,
) -> List[Any]:
    """查询每一行的第一列，可选按 type_ 转换"""
    result = await _execute(session, sql)
    return [_convert(value, type_) for value in result.scalars().all()]


async def query_scalar(
    session: AsyncSession,
    sql: SqlLike,
    type_: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """
    查询第一行第一列

    Raises:
        NoResultFound: 查询没有返回任何行
    """
    query = as_query(sql)
    result = await _execute(session, query)
    row = result.first()
    if row is None:
        raise NoResultFound(f"Scalar query returned no rows: {query.sql}")
    return _convert(row[0], type_)


async def query_decimal_single(session: AsyncSession, sql: SqlLike) -> Optional[Decimal]:
    return await query_scalar(session, sql, Decimal)


async def query_string_single(session: AsyncSession, sql: SqlLike) -> Optional[str]:
    return await query_scalar(session, sql, str)


async def query_int_single(session: AsyncSession, sql: SqlLike) -> Optional[int]:
    return await query_scalar(session, sql, int)
