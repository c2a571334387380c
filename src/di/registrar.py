"""
DAL / BLL 自动注册

按模块路径约定扫描已加载的模块并注册到 ServiceCollection：
- DAL：模块路径包含 DALS 的模块中定义的顶层具体类，以 cls(context) 创建
- BLL：INTERFACE_BLLS 包中的抽象类（接口）与 MODULE_NAME 包中、
  模块路径包含 BLLS 的实现类配对；实现类需继承接口，且接口名包含实现类名
  （如 IUserService ← UserService）

请勿轻易修改 dal 和 business 的模块路径，否则无法注册。
"""

import importlib
import inspect
import pkgutil
import sys
from types import ModuleType
from typing import Callable, Dict, Iterable, List, Optional

from core.config import DataAccessSettings
from di.container import ServiceCollection, ServiceScope
from utils.logger import get_logger

logger = get_logger("DataAccess")


def register_dals(
    services: ServiceCollection,
    settings: Optional[DataAccessSettings] = None,
) -> ServiceCollection:
    """
    注册所有 DAL 和 BLL

    Args:
        services: 服务注册表
        settings: 配置，为空时使用全局配置

    Returns:
        同一个 services，便于链式调用
    """
    if settings is None:
        from core.config import settings as default_settings
        settings = default_settings

    import_packages(settings.SCAN_PACKAGES)

    dals = get_all_dals(settings)
    for dal in dals:
        services.add_scoped(dal, _dal_factory(dal))

    blls = get_all_business(settings)
    for interface, implementation in blls.items():
        services.add_scoped(interface, implementation)

    logger.info(f"Registered {len(dals)} DAL(s) and {len(blls)} BLL(s)")
    return services


def get_all_dals(settings: DataAccessSettings) -> List[type]:
    """模块路径包含 DALS 的模块中定义的所有顶层具体类"""
    if not settings.DALS:
        logger.warning("DALS is not configured, skipping DAL registration")
        return []

    return [
        cls
        for module in _loaded_modules()
        if settings.DALS in module.__name__
        for cls in _module_classes(module)
        if not _is_interface(cls)
    ]


def get_all_business(settings: DataAccessSettings) -> Dict[type, type]:
    """
    BLL 接口 → 实现

    Returns:
        接口到实现类的映射；找不到任何接口时返回空字典
    """
    if not (settings.BLLS and settings.MODULE_NAME and settings.INTERFACE_BLLS):
        logger.warning("BLLS / MODULE_NAME / INTERFACE_BLLS not fully configured, skipping BLL registration")
        return {}

    interfaces = [
        cls
        for module in _package_modules(settings.INTERFACE_BLLS)
        for cls in _module_classes(module)
        if _is_interface(cls)
    ]
    if not interfaces:
        return {}

    blls = [
        cls
        for module in _package_modules(settings.MODULE_NAME)
        if settings.BLLS in module.__name__
        for cls in _module_classes(module)
        if not _is_interface(cls)
    ]

    result: Dict[type, type] = {}
    for interface in interfaces:
        for bll in blls:
            if interface in bll.__mro__ and bll.__name__ in interface.__name__:
                result[interface] = bll
    return result


def import_packages(packages: Iterable[str]) -> None:
    """递归导入给定的包，使其中的模块可以被扫描到"""
    for package_name in packages:
        package = importlib.import_module(package_name)
        if not hasattr(package, "__path__"):
            continue
        for module_info in pkgutil.walk_packages(package.__path__, prefix=f"{package_name}."):
            importlib.import_module(module_info.name)
        logger.debug(f"Imported package for scanning: {package_name}")


# ========================================
# 辅助方法
# ========================================

def _dal_factory(dal: type) -> Callable[[ServiceScope], object]:
    return lambda scope: dal(scope.context)


def _loaded_modules() -> List[ModuleType]:
    modules = [module for module in list(sys.modules.values()) if isinstance(module, ModuleType)]
    return sorted(modules, key=lambda module: module.__name__)


def _package_modules(package_name: str) -> List[ModuleType]:
    return [
        module
        for module in _loaded_modules()
        if module.__name__ == package_name or module.__name__.startswith(f"{package_name}.")
    ]


def _module_classes(module: ModuleType) -> List[type]:
    """模块中定义的顶层类（不含导入的类和嵌套类）"""
    return [
        obj
        for obj in vars(module).values()
        if inspect.isclass(obj)
        and obj.__module__ == module.__name__
        and obj.__qualname__ == obj.__name__
    ]


def _is_interface(cls: type) -> bool:
    return inspect.isabstract(cls) or getattr(cls, "_is_protocol", False)
