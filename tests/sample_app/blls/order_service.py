from decimal import Decimal

from repositories.base import NotFoundError
from sample_app.dals.order_dal import OrderDal
from sample_app.interfaces.order_service import IOrderService
from sample_app.interfaces.user_service import IUserService
from sample_app.models import Order


class OrderService(IOrderService):

    def __init__(self, orders: OrderDal, users: IUserService):
        self.orders = orders
        self.users = users

    async def place(self, username: str, amount: Decimal) -> Order:
        user = await self.users.find_by_username(username)
        if user is None:
            raise NotFoundError("User", username)
        return await self.orders.insert(Order(user_id=user.id, amount=amount))
