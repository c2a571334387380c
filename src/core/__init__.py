"""
Core模块
提供数据访问层配置
"""

from core.config import DataAccessSettings, settings

__all__ = [
    "DataAccessSettings",
    "settings",
]
