"""用户 DAL"""

from typing import List, Optional, Sequence

from db.context import DataContext
from db.sql_query import DynamicSqlQuery
from repositories.base import Repository
from sample_app.models import User


class UserDal(Repository[User, str]):

    def __init__(self, context: DataContext):
        super().__init__(context, User)

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self.first_or_default(User.username == username)

    async def search(
        self,
        role: Optional[str] = None,
        name_like: Optional[str] = None,
        ids: Optional[Sequence[str]] = None,
    ) -> List[User]:
        """按可选条件拼接 SQL 查询用户"""
        query = (
            DynamicSqlQuery.create_line("SELECT * FROM users WHERE 1 = 1")
            .append_line_not_empty(role, "AND role = {0}")
            .append_line_not_empty(name_like, "AND username LIKE {0}")
            .append_line_in(ids, "AND id IN ({0})")
            .append("ORDER BY username")
        )
        return await self.db_context.entity_from_sql(User, query)
