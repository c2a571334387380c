"""
Shared pytest fixtures for the data access layer.

The sample application under tests/sample_app follows the module path
conventions used by auto-registration (dals / interfaces / blls).
Its models are imported here so the tables are registered on Base.metadata
before any database is initialized.
"""

import uuid
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import DataAccessSettings
from db.context import DataContext
from db.database import create_test_database_manager, DatabaseManager
from sample_app.dals.order_dal import OrderDal
from sample_app.dals.user_dal import UserDal
from sample_app.models import User, Order  # noqa: F401  (registers tables)


# ============================================================
# Database fixtures
# ============================================================


@pytest.fixture
async def db_manager() -> DatabaseManager:
    """
    Function-scoped in-memory SQLite database.

    Every test gets a brand new engine, so no table cleanup is needed.
    """
    manager = create_test_database_manager()
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
async def db_session(db_manager: DatabaseManager) -> AsyncSession:
    async with db_manager.session() as session:
        yield session


@pytest.fixture
def data_context(db_session: AsyncSession) -> DataContext:
    return DataContext(db_session)


# ============================================================
# DAL fixtures
# ============================================================


@pytest.fixture
def user_dal(data_context: DataContext) -> UserDal:
    return UserDal(data_context)


@pytest.fixture
def order_dal(data_context: DataContext) -> OrderDal:
    return OrderDal(data_context)


# ============================================================
# Settings / helpers
# ============================================================


@pytest.fixture
def settings() -> DataAccessSettings:
    """Settings pointing auto-registration at tests/sample_app."""
    return DataAccessSettings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DALS="sample_app.dals",
        BLLS="sample_app.blls",
        MODULE_NAME="sample_app",
        INTERFACE_BLLS="sample_app.interfaces",
        SCAN_PACKAGES=["sample_app"],
    )


def make_user(
    username: str,
    role: str = "user",
    email: Optional[str] = None,
    balance: Decimal = Decimal("0"),
    user_id: Optional[str] = None,
) -> User:
    return User(
        id=user_id or str(uuid.uuid4()),
        username=username,
        email=email,
        role=role,
        balance=balance,
    )


@pytest.fixture
async def alice(user_dal: UserDal) -> User:
    """A pre-created regular user."""
    return await user_dal.insert(make_user("alice", email="alice@example.com", user_id="u-alice"))


@pytest.fixture
async def bob(user_dal: UserDal) -> User:
    """A pre-created admin user."""
    return await user_dal.insert(make_user("bob", role="admin", user_id="u-bob"))
