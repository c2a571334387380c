"""
Tests for convention-based DAL / BLL registration against tests/sample_app.
"""

from decimal import Decimal
from typing import Protocol

from core.config import DataAccessSettings
from db.context import DataContext
from di.container import ServiceCollection
from di.registrar import register_dals, get_all_dals, get_all_business, import_packages, _is_interface
from sample_app.blls.order_service import OrderService
from sample_app.blls.user_service import UserService
from sample_app.dals.base import ReadOnlyDal
from sample_app.dals.order_dal import OrderDal
from sample_app.dals.user_dal import UserDal
from sample_app.interfaces.order_service import IOrderService
from sample_app.interfaces.user_service import IUserService
from sample_app.models import User


class TestDiscovery:

    def test_get_all_dals(self, settings: DataAccessSettings):
        import_packages(settings.SCAN_PACKAGES)
        dals = get_all_dals(settings)

        assert set(dals) == {UserDal, OrderDal}
        assert ReadOnlyDal not in dals

    def test_get_all_dals_not_configured(self, settings: DataAccessSettings):
        assert get_all_dals(settings.model_copy(update={"DALS": ""})) == []

    def test_get_all_business(self, settings: DataAccessSettings):
        import_packages(settings.SCAN_PACKAGES)
        blls = get_all_business(settings)

        # LegacyUserService implements IUserService but its name does not match
        assert blls == {IUserService: UserService, IOrderService: OrderService}

    def test_get_all_business_not_configured(self, settings: DataAccessSettings):
        assert get_all_business(settings.model_copy(update={"INTERFACE_BLLS": ""})) == {}

    def test_get_all_business_without_interfaces(self, settings: DataAccessSettings):
        import_packages(settings.SCAN_PACKAGES)
        assert get_all_business(settings.model_copy(update={"INTERFACE_BLLS": "sample_app.blls"})) == {}

    def test_is_interface(self):
        class Readable(Protocol):
            def read(self) -> str:
                ...

        assert _is_interface(IUserService)
        assert _is_interface(Readable)
        assert _is_interface(ReadOnlyDal)
        assert not _is_interface(UserService)
        assert not _is_interface(UserDal)


class TestRegisterDals:

    def test_registers_dals_and_blls(self, settings: DataAccessSettings):
        services = register_dals(ServiceCollection(), settings)

        assert len(services) == 4
        assert UserDal in services
        assert OrderDal in services
        assert services.get_registration(IUserService) is UserService
        assert services.get_registration(IOrderService) is OrderService

    async def test_resolves_business_graph(self, settings: DataAccessSettings, data_context: DataContext, alice: User):
        services = register_dals(ServiceCollection(), settings)
        scope = services.create_scope(data_context)

        order_service = scope.resolve(IOrderService)
        assert isinstance(order_service, OrderService)
        assert order_service.users is scope.resolve(IUserService)
        assert order_service.orders is scope.resolve(OrderDal)
        assert order_service.orders.db_context is data_context

        order = await order_service.place("alice", Decimal("5"))
        assert order.user_id == alice.id

    async def test_dals_share_scope_context(self, settings: DataAccessSettings, data_context: DataContext):
        scope = register_dals(ServiceCollection(), settings).create_scope(data_context)

        users = scope.resolve(UserDal)
        registered = await scope.resolve(IUserService).register("u-carol", "carol")

        assert await users.load("u-carol") is registered
