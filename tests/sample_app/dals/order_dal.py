"""订单 DAL"""

from decimal import Decimal
from typing import Optional

from db.context import DataContext
from repositories.base import Repository
from sample_app.models import Order


class OrderDal(Repository[Order, int]):

    def __init__(self, context: DataContext):
        super().__init__(context, Order)

    async def total_for_user(self, user_id: str) -> Optional[Decimal]:
        return await self.db_context.query_decimal_single(
            "SELECT COALESCE(SUM(amount), 0) FROM orders WHERE user_id = {0}", user_id
        )
