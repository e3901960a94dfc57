"""Shared fixtures for Signly tests."""

from datetime import datetime, timedelta, timezone

import pytest

from signly.engine import SigningEngine
from signly.models import Identity


NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def iso(moment: datetime) -> str:
    """Format as the ISO 8601 form clients send (YYYY-MM-DDTHH:mm:ss.000Z)."""
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def engine(clock):
    """In-memory SigningEngine on the frozen clock."""
    return SigningEngine.in_memory(clock=clock)


@pytest.fixture
def alice():
    return Identity(account="alice.testnet")


@pytest.fixture
def bob():
    return Identity(account="bob.testnet")


@pytest.fixture
def carol():
    return Identity(account="carol.testnet")


@pytest.fixture
def tomorrow() -> str:
    return iso(NOW + timedelta(days=1))


@pytest.fixture
def lease(engine, alice, bob, tomorrow):
    """Document created by Alice that Alice and Bob must sign."""
    return engine.create_document(
        content_digest="9e107d9d372bb6826bd81d3542a419d6",
        title="Lease agreement",
        deadline=tomorrow,
        signers=[alice.account, bob.account],
        caller=alice,
    )
