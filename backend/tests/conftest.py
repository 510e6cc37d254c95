import pytest
from fakes import FakeStore
from salon_reserve.domain.actors import Actor
from salon_reserve.models import UserRole


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id="user-1", role=UserRole.CUSTOMER)


@pytest.fixture
def other_customer() -> Actor:
    return Actor(user_id="user-2", role=UserRole.CUSTOMER)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=UserRole.ADMIN)
