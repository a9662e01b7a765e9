from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from services.wallet_service.app.cache import WalletCache
from services.wallet_service.app.directory import LookupStatus, SubaccountLookup
from services.wallet_service.app.gateway import WalletSettingsGateway
from services.wallet_service.app.luxor import LuxorError


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class StubDirectory:
    subaccounts: dict[str, str | None] = field(default_factory=dict)

    async def resolve_subaccount(self, user_id: str) -> SubaccountLookup:
        if user_id not in self.subaccounts:
            return SubaccountLookup(LookupStatus.not_found)
        name = self.subaccounts[user_id]
        if not name:
            return SubaccountLookup(LookupStatus.not_configured)
        return SubaccountLookup(LookupStatus.found, name)


class StubLuxorClient:
    """Replays queued results; an exception in the queue is raised instead of returned."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self._queue: list[Any] = []

    def queue(self, *results: Any) -> None:
        self._queue.extend(results)

    async def get_payment_settings(self, currency: str, subaccount_name: str) -> dict[str, Any]:
        self.calls.append((currency, subaccount_name))
        result = self._queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _payment_settings(address: str = "bc1qcustomer", allocation: int = 100) -> dict[str, Any]:
    return {
        "currency_type": "BTC",
        "subaccount": {"id": 7, "name": "acme-mining", "created_at": "2025-01-01T00:00:00Z", "url": ""},
        "balance": 0.0123,
        "status": "active",
        "wallet_id": 11,
        "payment_frequency": "DAILY",
        "addresses": [
            {
                "address_id": 1,
                "address_name": "primary",
                "external_address": address,
                "revenue_allocation": allocation,
            }
        ],
        "next_payout_at": "2025-01-02T00:00:00Z",
    }


def _rate_limited() -> LuxorError:
    return LuxorError(429, "Too many requests")


@pytest.fixture()
def payment_settings():
    return _payment_settings


@pytest.fixture()
def rate_limited():
    return _rate_limited


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> WalletCache:
    return WalletCache(ttl_seconds=600, clock=clock)


@pytest.fixture()
def luxor() -> StubLuxorClient:
    return StubLuxorClient()


@pytest.fixture()
def directory() -> StubDirectory:
    return StubDirectory({"u1": None, "u2": "acme-mining"})


@pytest.fixture()
def gateway(directory: StubDirectory, luxor: StubLuxorClient, cache: WalletCache) -> WalletSettingsGateway:
    return WalletSettingsGateway(directory, luxor, cache, retry_after_seconds=60)
