"""
Repository 基类

泛型仓储：对 ORM 实体集的 CRUD 封装。
- 写操作在当前事务内 flush，由 Session 上下文或 commit() 统一提交
- 数据库更新失败时重置未提交的实体更改，记录完整错误后包装抛出
"""

from collections.abc import Iterable
from contextlib import asynccontextmanager
from typing import TypeVar, Generic, Optional, List, Any, Type, Sequence, Union, Callable, AsyncIterator

from sqlalchemy import select, func, update as sa_update, inspect as sa_inspect
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import Select

from db.context import DataContext
from utils.logger import get_logger

logger = get_logger("DataAccess")


# 泛型类型变量：实体类型、主键类型
T = TypeVar("T")
K = TypeVar("K")

PropertyRef = Union[str, InstrumentedAttribute]


class Repository(Generic[T, K]):
    """
    泛型 Repository

    职责：
    - 封装实体的增删改查
    - 统一处理数据库更新失败（重置更改 + 包装异常）
    - 暴露数据库上下文，便于执行原生 SQL

    使用方式：
        class UserDal(Repository[User, str]):
            def __init__(self, context: DataContext):
                super().__init__(context, User)
    """

    def __init__(self, context: DataContext, model_class: Type[T]):
        """
        初始化 Repository

        Args:
            context: 数据库上下文（由依赖注入提供）
            model_class: ORM 模型类
        """
        self._context = context
        self._model_class = model_class

    @property
    def db_context(self) -> DataContext:
        return self._context

    @property
    def session(self) -> AsyncSession:
        return self._context.session

    @property
    def model_class(self) -> Type[T]:
        return self._model_class

    @property
    def table(self) -> Select:
        """实体集查询语句，可继续 where / order_by"""
        return select(self._model_class)

    # ========================================
    # 查询
    # ========================================

    async def load(self, key: K) -> Optional[T]:
        """根据主键获取实体，不存在则返回 None"""
        return await self.session.get(self._model_class, key)

    async def first_or_default(self, *criteria: Any) -> Optional[T]:
        """返回第一个满足条件的实体，没有则返回 None"""
        result = await self.session.execute(self.table.where(*criteria).limit(1))
        return result.scalars().first()

    async def find(self, *criteria: Any) -> List[T]:
        """返回所有满足条件的实体"""
        result = await self.session.execute(self.table.where(*criteria))
        return list(result.scalars().all())

    async def find_all(self) -> List[T]:
        result = await self.session.execute(self.table)
        return list(result.scalars().all())

    async def count(self, *criteria: Any) -> int:
        query = select(func.count()).select_from(self._model_class).where(*criteria)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def exists(self, *criteria: Any) -> bool:
        """是否存在满足条件的实体"""
        return await self.count(*criteria) > 0

    # ========================================
    # 新增
    # ========================================

    async def insert(self, entity: Union[T, Iterable]) -> Union[T, List[T]]:
        """
        添加实体（单个或批量）

        Returns:
            添加后的实体（含数据库生成的字段）

        Raises:
            ValueError: entity 为 None
            RepositoryError: 数据库更新失败
        """
        entities, many = self._as_list(entity, "entity")

        async with self._saving():
            self.session.add_all(entities)
            await self.session.flush()
            for item in entities:
                await self.session.refresh(item)

        return entities if many else entities[0]

    # ========================================
    # 修改
    # ========================================

    async def update(
        self,
        entity: Union[T, Iterable],
        include_properties: Optional[Sequence[PropertyRef]] = None,
    ) -> Union[T, List[T]]:
        """
        修改实体（单个或批量）

        Args:
            entity: 实体或实体列表，可以是已分离的实体
            include_properties: 只更新这些属性（属性名或映射属性，如 User.name）；
                为空时更新实体的全部更改

        Returns:
            修改后的实体（与当前 Session 关联的实例）

        Raises:
            ValueError: entity 为 None 或属性名无效
            NotFoundError: 主键对应的行不存在
            RepositoryError: 数据库更新失败
        """
        entities, many = self._as_list(entity, "entity")

        if include_properties is not None:
            names = self._property_names(include_properties)
            async with self._saving():
                for item in entities:
                    await self._update_properties(item, names)
            return entities if many else entities[0]

        # 先确认行存在，merge 不能把更新变成插入
        await self._ensure_rows_exist(entities)

        async with self._saving():
            merged = [await self.session.merge(item) for item in entities]
            await self.session.flush()

        return merged if many else merged[0]

    async def _update_properties(self, entity: T, names: List[str]) -> None:
        mapper = sa_inspect(self._model_class)
        key = self._primary_key(entity)

        # 用映射属性而非表列做条件，Session 内的同一实体可按条件同步
        key_attributes = [
            getattr(self._model_class, mapper.get_property_by_column(column).key)
            for column in mapper.primary_key
        ]
        statement = (
            sa_update(self._model_class)
            .where(*(attribute == value for attribute, value in zip(key_attributes, key)))
            .values({getattr(self._model_class, name): getattr(entity, name) for name in names})
        )
        result = await self.session.execute(statement)
        if result.rowcount == 0:
            raise NotFoundError(self._model_class.__name__, self._identity(key))

    # ========================================
    # 删除
    # ========================================

    async def delete(self, entity: Union[T, Iterable]) -> None:
        """
        删除实体（单个或批量），已分离的实体会先附加到当前 Session

        Raises:
            ValueError: entity 为 None
            NotFoundError: 已分离的实体在数据库中没有对应的行
            RepositoryError: 数据库更新失败
        """
        entities, _ = self._as_list(entity, "entity")
        await self._ensure_rows_exist(entities)

        async with self._saving():
            for item in entities:
                if not (item in self.session and sa_inspect(item).persistent):
                    item = await self.session.merge(item)
                await self.session.delete(item)
            await self.session.flush()

    async def delete_by_key(self, key: K) -> bool:
        """
        根据主键删除实体

        Returns:
            是否成功删除
        """
        async with self._saving():
            entity = await self.load(key)
            if entity is None:
                return False
            await self.session.delete(entity)
            await self.session.flush()
        return True

    async def delete_where(self, *criteria: Any) -> int:
        """
        删除所有满足条件的实体

        Returns:
            删除的实体数

        Raises:
            ValueError: 未给出条件
        """
        if not criteria:
            raise ValueError("delete_where requires at least one criterion")

        async with self._saving():
            entities = await self.find(*criteria)
            for item in entities:
                await self.session.delete(item)
            await self.session.flush()
        return len(entities)

    # ========================================
    # 事务
    # ========================================

    async def commit(self, action: Optional[Callable[[], Any]] = None) -> bool:
        """
        提交事务

        action 抛出的异常回滚后原样抛出；数据库更新失败包装为 RepositoryError。
        """
        async with self._saving():
            return await self._context.commit(action)

    # ========================================
    # 辅助方法
    # ========================================

    @asynccontextmanager
    async def _saving(self) -> AsyncIterator[None]:
        try:
            yield
        except DBAPIError as exception:
            # 确保详细错误写入日志
            message = await self.rollback_entity_changes(exception)
            raise RepositoryError(message, exception) from exception

    async def rollback_entity_changes(self, exception: DBAPIError) -> str:
        """
        重置所有未提交的实体更改并返回完整的错误信息

        Args:
            exception: 数据库更新异常

        Returns:
            错误信息
        """
        if self.session.in_transaction():
            await self.session.rollback()

        message = (
            f"Failed to save {self._model_class.__name__} changes: "
            f"{type(exception).__name__}: {exception}"
        )
        logger.error(message)
        return message

    async def _ensure_rows_exist(self, entities: List[T]) -> None:
        """未被当前 Session 跟踪的实体，必须能按主键在数据库中找到对应的行"""
        for item in entities:
            if item in self.session and sa_inspect(item).persistent:
                continue
            key = self._identity(self._primary_key(item))
            if await self.session.get(self._model_class, key) is None:
                raise NotFoundError(self._model_class.__name__, key)

    def _primary_key(self, entity: T) -> tuple:
        key = tuple(sa_inspect(self._model_class).primary_key_from_instance(entity))
        if any(value is None for value in key):
            raise ValueError(f"{self._model_class.__name__} primary key is not set")
        return key

    @staticmethod
    def _identity(key: tuple) -> Any:
        return key[0] if len(key) == 1 else key

    def _as_list(self, value: Any, name: str):
        if value is None:
            raise ValueError(f"{name} must not be None")
        if sa_inspect(value, raiseerr=False) is None and isinstance(value, Iterable):
            items = list(value)
            if any(item is None for item in items):
                raise ValueError(f"{name} must not contain None")
            return items, True
        return [value], False

    def _property_names(self, properties: Sequence[PropertyRef]) -> List[str]:
        if isinstance(properties, (str, InstrumentedAttribute)):
            properties = [properties]

        mapped = set(sa_inspect(self._model_class).column_attrs.keys())
        names = [prop if isinstance(prop, str) else prop.key for prop in properties]
        unknown = [name for name in names if name not in mapped]
        if not names or unknown:
            raise ValueError(
                f"Invalid properties for {self._model_class.__name__}: {unknown or names}"
            )
        return names


class RepositoryError(Exception):
    """
    数据库更新失败异常

    原始异常保存在 original_exception 中，同时作为 __cause__ 链接。
    """
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        self.original_exception = original_exception
        super().__init__(message)


class NotFoundError(Exception):
    """
    实体不存在异常
    """
    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")
