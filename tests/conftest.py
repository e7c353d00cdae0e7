"""Pytest fixtures for Pointledger tests."""

from decimal import Decimal

import pytest
from django.contrib.auth.models import Group, User
from django.core.cache import cache

from pointledger.models import Customer


@pytest.fixture(autouse=True)
def clear_cache():
    """Loyalty settings are cached; start every test from the database."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def customer(db):
    """Create a test customer."""
    return Customer.objects.create(
        code="CUST-001",
        first_name="John",
        last_name="Doe",
        email="john@example.com",
        phone="5551000001",
    )


@pytest.fixture
def customer_b(db):
    """Create a second customer."""
    return Customer.objects.create(
        code="CUST-002",
        first_name="Jane",
        last_name="Roe",
        email="jane@example.com",
        phone="5551000002",
    )


@pytest.fixture
def manager(db):
    """User in the manager group."""
    user = User.objects.create_user("manager", password="pw")
    user.groups.add(Group.objects.create(name="manager"))
    return user


@pytest.fixture
def cashier(db):
    """Authenticated user without a management role."""
    user = User.objects.create_user("cashier", password="pw")
    user.groups.add(Group.objects.create(name="cashier"))
    return user


@pytest.fixture
def superuser(db):
    return User.objects.create_superuser("root", password="pw")


@pytest.fixture
def plain_settings(db):
    """Program without volume tiers or promotions: points = amount * rate * multiplier."""
    from pointledger.services import program

    return program.update_settings(
        {
            "points_per_dollar": Decimal("10"),
            "minimum_points": 1,
            "tiers": [],
            "promotions": [],
            "category_bonuses": {},
        }
    )
