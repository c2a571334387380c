"""
数据库层模块
提供连接管理、数据库上下文、动态 SQL 拼接与原生 SQL 执行
"""

from db.models import Base
from db.database import DatabaseManager, create_test_database_manager
from db.sql_query import DynamicSqlQuery, QueryFrozenError
from db.context import DataContext

__all__ = [
    "Base",
    "DatabaseManager",
    "create_test_database_manager",
    "DynamicSqlQuery",
    "QueryFrozenError",
    "DataContext",
]
