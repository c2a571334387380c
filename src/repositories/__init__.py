"""
数据访问层模块 (Repository Layer)

提供泛型仓储，具体 DAL 继承 Repository 并由 di.registrar 按模块路径自动注册。
"""

from repositories.base import Repository, RepositoryError, NotFoundError

__all__ = [
    "Repository",
    "RepositoryError",
    "NotFoundError",
]
