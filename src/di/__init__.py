"""
依赖注入模块
提供作用域服务注册表，以及按模块路径约定自动注册 DAL / BLL
"""

from di.container import ServiceCollection, ServiceScope, DependencyResolutionError
from di.registrar import register_dals, get_all_dals, get_all_business

__all__ = [
    "ServiceCollection",
    "ServiceScope",
    "DependencyResolutionError",
    "register_dals",
    "get_all_dals",
    "get_all_business",
]
