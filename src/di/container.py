"""
服务注册与作用域解析

只实现自动注册所需的最小语义：
- ServiceCollection 保存作用域（scoped）注册：服务类型 → 实现类 / 工厂函数
- ServiceScope 绑定一个 DataContext（通常即一个 Session / 一次请求），
  同一作用域内每个服务类型只创建一次
- 实现类按 __init__ 的类型注解做构造函数注入
"""

import inspect
from typing import Any, Callable, Dict, Type, TypeVar, Union, get_type_hints

from db.context import DataContext
from utils.logger import get_logger

logger = get_logger("DataAccess")

T = TypeVar("T")

Factory = Callable[["ServiceScope"], Any]


def _type_name(service_type: Any) -> str:
    return getattr(service_type, "__name__", repr(service_type))


class DependencyResolutionError(Exception):
    """服务无法解析或创建失败"""
    pass


class ServiceCollection:
    """
    服务注册表

    使用方式：
        services = ServiceCollection()
        services.add_scoped(UserDal, lambda scope: UserDal(scope.context))
        services.add_scoped(IUserService, UserService)

        scope = services.create_scope(DataContext(session))
        service = scope.resolve(IUserService)
    """

    def __init__(self):
        self._registrations: Dict[type, Union[type, Factory]] = {}

    def add_scoped(self, service_type: type, implementation: Union[type, Factory, None] = None) -> "ServiceCollection":
        """
        注册作用域服务

        Args:
            service_type: 服务类型（接口或具体类）
            implementation: 实现类或 factory(scope) 函数，为空时使用 service_type 本身
        """
        if service_type in self._registrations:
            logger.warning(f"Registration for {service_type.__name__} is being overridden")

        self._registrations[service_type] = implementation or service_type
        logger.debug(f"Registered scoped service {service_type.__name__}")
        return self

    def is_registered(self, service_type: type) -> bool:
        return service_type in self._registrations

    def get_registration(self, service_type: type) -> Union[type, Factory]:
        if service_type not in self._registrations:
            raise DependencyResolutionError(f"No registration found for {_type_name(service_type)}")
        return self._registrations[service_type]

    @property
    def service_types(self) -> list:
        return list(self._registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, service_type: type) -> bool:
        return self.is_registered(service_type)

    def create_scope(self, context: DataContext) -> "ServiceScope":
        """创建绑定到 context 的作用域"""
        return ServiceScope(self, context)


class ServiceScope:
    """
    服务作用域

    DataContext 总是可以在作用域内解析。
    """

    def __init__(self, services: ServiceCollection, context: DataContext):
        self._services = services
        self._context = context
        self._instances: Dict[type, Any] = {DataContext: context}

    @property
    def context(self) -> DataContext:
        return self._context

    def resolve(self, service_type: Type[T]) -> T:
        """
        解析服务

        Raises:
            DependencyResolutionError: 未注册或创建失败
        """
        if service_type in self._instances:
            return self._instances[service_type]

        implementation = self._services.get_registration(service_type)
        try:
            if isinstance(implementation, type):
                instance = self._create_instance(implementation)
            else:
                instance = implementation(self)
        except DependencyResolutionError:
            raise
        except Exception as e:
            raise DependencyResolutionError(
                f"Failed to create scoped instance of {_type_name(service_type)}: {e}"
            ) from e

        self._instances[service_type] = instance
        return instance

    def _create_instance(self, implementation_type: type) -> Any:
        """按构造函数类型注解注入依赖"""
        if implementation_type.__init__ is object.__init__:
            return implementation_type()

        parameters = list(inspect.signature(implementation_type.__init__).parameters.items())[1:]
        type_hints = get_type_hints(implementation_type.__init__)

        kwargs = {}
        for name, parameter in parameters:
            if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            if parameter.default is not inspect.Parameter.empty:
                continue
            if name not in type_hints:
                raise DependencyResolutionError(
                    f"Cannot create {implementation_type.__name__}: "
                    f"missing type hint for parameter '{name}'"
                )
            kwargs[name] = self.resolve(type_hints[name])

        return implementation_type(**kwargs)
