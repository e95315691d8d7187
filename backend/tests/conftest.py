"""
Shared fixtures for the tracker tests.

All tests run against a fixed clock. 06:30 UTC is midday in the business
timezone, so whole-day offsets never straddle a local midnight.
"""
import random
from datetime import date, datetime, timedelta, timezone

import pytest

from atelier.models.domain import ActorRole, Stage
from atelier.services.order_store import InMemoryOrderStore
from atelier.services.pipeline import ActivityLedger, OrderFactory


# =============================================================================
# CLOCK
# =============================================================================

@pytest.fixture
def now():
    """Fixed reference instant (2025-03-10 12:00 IST)."""
    return datetime(2025, 3, 10, 6, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def days_ago(now):
    """Instant `n` whole days before the reference clock."""
    def _days_ago(n, **extra):
        return now - timedelta(days=n, **extra)
    return _days_ago


# =============================================================================
# COLLABORATORS
# =============================================================================

@pytest.fixture
def store():
    """Empty in-memory store, cleared after the test."""
    store = InMemoryOrderStore()
    yield store
    store.clear()


@pytest.fixture
def factory(store):
    """Order factory with a seeded random source."""
    return OrderFactory(store=store, rng=random.Random(7))


@pytest.fixture
def ledger():
    return ActivityLedger()


# =============================================================================
# SAMPLE ORDERS
# =============================================================================

@pytest.fixture
def make_order(factory, now):
    """Build an order created `created_days_ago` days before the clock."""
    def _make_order(
        customer_name="Priya Sharma",
        category="Ring",
        created_days_ago=0,
        delivery_date=date(2025, 4, 15),
        **details,
    ):
        return factory.create_order(
            customer_name=customer_name,
            salesperson_name="Rahul Mehta",
            vendor_name="Shree Jewels Mfg",
            category=category,
            metal_type="Gold",
            delivery_date=delivery_date,
            now=now - timedelta(days=created_days_ago),
            **details,
        )
    return _make_order


@pytest.fixture
def make_enquiry(factory, now):
    """Build an enquiry created `created_days_ago` days before the clock."""
    def _make_enquiry(customer_name="Ananya Iyer", created_days_ago=0, **details):
        return factory.create_enquiry(
            customer_name=customer_name,
            salesperson_name="Kavya Nair",
            now=now - timedelta(days=created_days_ago),
            **details,
        )
    return _make_enquiry


@pytest.fixture
def building_order(make_order, ledger, days_ago):
    """Order moved into Building 10 days ago with a note 1 day ago."""
    order = make_order(created_days_ago=14)
    ledger.post_update(order, "Rahul Mehta", ActorRole.SALES, None, Stage.BUILDING, days_ago(10))
    ledger.post_note(order, "Shree Jewels", ActorRole.VENDOR, "Casting done", days_ago(1))
    return order
