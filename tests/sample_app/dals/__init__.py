from sample_app.dals.user_dal import UserDal
from sample_app.dals.order_dal import OrderDal

__all__ = ["UserDal", "OrderDal"]
