"""Pytest configuration and fixtures for gymops."""

import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest

# Bot modules configure logging at import time, which reads settings.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "local")

from gymops.core import FrozenClock  # noqa: E402
from gymops.db.models import FeePackage, Member, MemberStatus  # noqa: E402
from gymops.engine import LifecycleService  # noqa: E402
from tests.stubs import InMemoryLedgerStore  # noqa: E402

# Day 0 of the billing scenarios
DAY_0 = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


# =============================================================================
# Clock and store
# =============================================================================

@pytest.fixture
def clock():
    """FrozenClock parked at DAY_0."""
    clk = FrozenClock()
    clk.freeze_at(DAY_0)
    return clk


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def service(store, clock):
    """LifecycleService over the in-memory store with the default 7-day grace period."""
    return LifecycleService(store, clock=clock)


# =============================================================================
# Catalogue and members
# =============================================================================

@pytest.fixture
def quarterly(store):
    return store.add_package(
        FeePackage(id="pkg-quarterly", name="Quarterly", amount=Decimal("4000"), duration_months=3)
    )


@pytest.fixture
def monthly(store):
    return store.add_package(
        FeePackage(id="pkg-monthly", name="Monthly", amount=Decimal("1500"), duration_months=1)
    )


@pytest.fixture
def retired_package(store):
    """A package that is no longer offered to new members."""
    return store.add_package(
        FeePackage(
            id="pkg-legacy",
            name="Legacy Annual",
            amount=Decimal("12000"),
            duration_months=12,
            is_active=False,
        )
    )


@pytest.fixture
def member(store):
    """Freshly created member: INACTIVE, no package, no window."""
    return store.add_member(Member(id="m-1", membership_number="GYM0001"))


@pytest.fixture
def suspended_member(store):
    return store.add_member(
        Member(
            id="m-suspended",
            membership_number="GYM0002",
            status=MemberStatus.SUSPENDED,
            fee_package_id="pkg-quarterly",
            membership_start_date=datetime(2023, 10, 1, tzinfo=timezone.utc),
            membership_end_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )
