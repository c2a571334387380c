"""抽象 DAL，不应被自动注册"""

from abc import ABC, abstractmethod

from repositories.base import Repository, T, K


class ReadOnlyDal(Repository[T, K], ABC):

    @abstractmethod
    def describe(self) -> str:
        ...
