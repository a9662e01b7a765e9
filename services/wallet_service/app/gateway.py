from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any, Protocol, Union

import httpx
from loguru import logger

from .cache import WalletCache
from .directory import LookupStatus, SubaccountLookup
from .luxor import LuxorError
from .metrics import wallet_settings_outcomes_total, wallet_stale_fallback_total

DEFAULT_RETRY_AFTER_SECONDS = 60


class WalletErrorKind(str, enum.Enum):
    user_not_found = "USER_NOT_FOUND"
    no_upstream_account = "NO_LUXOR_CONFIG"
    upstream_rate_limited = "LUXOR_RATE_LIMIT"
    upstream_forbidden = "LUXOR_FORBIDDEN"
    upstream_unavailable = "LUXOR_UNAVAILABLE"
    upstream_error = "LUXOR_ERROR"


RETRYABLE_KINDS = {WalletErrorKind.upstream_rate_limited, WalletErrorKind.upstream_unavailable}


@dataclass(frozen=True)
class SettingsFound:
    value: dict[str, Any]
    # True when served from an expired entry because Luxor was rate limiting
    stale: bool = False


@dataclass(frozen=True)
class WalletError:
    kind: WalletErrorKind
    message: str
    retry_after_seconds: int | None = None
    upstream_status: int | None = None

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


WalletResult = Union[SettingsFound, WalletError]


class SubaccountResolver(Protocol):
    async def resolve_subaccount(self, user_id: str) -> SubaccountLookup: ...


class PaymentSettingsClient(Protocol):
    async def get_payment_settings(self, currency: str, subaccount_name: str) -> dict[str, Any]: ...


def cache_key(user_id: str, currency: str) -> str:
    return f"wallet_{user_id}_{currency}"


class WalletSettingsGateway:
    """Fetches Luxor payment settings per (user, currency) through a TTL cache.

    Upstream failures are translated into :class:`WalletError` values and never
    raised. A 429 is the only failure that may be answered from the cache, and
    then with whatever entry exists, however old.
    """

    def __init__(
        self,
        directory: SubaccountResolver,
        client: PaymentSettingsClient,
        cache: WalletCache,
        retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
    ) -> None:
        self._directory = directory
        self._client = client
        self._cache = cache
        self._retry_after = retry_after_seconds

    @property
    def cache(self) -> WalletCache:
        return self._cache

    @property
    def retry_after_seconds(self) -> int:
        return self._retry_after

    async def get_settings(self, user_id: str, currency: str) -> WalletResult:
        if not user_id or not currency:
            raise ValueError("user_id and currency are required")

        lookup = await self._directory.resolve_subaccount(user_id)
        if lookup.status is LookupStatus.not_found:
            logger.warning("Wallet settings requested for unknown user {}", user_id)
            return self._fail(WalletError(WalletErrorKind.user_not_found, "User not found"))
        if lookup.status is LookupStatus.not_configured:
            logger.warning("User {} has no Luxor subaccount configured", user_id)
            return self._fail(
                WalletError(WalletErrorKind.no_upstream_account, "User does not have Luxor subaccount configured")
            )

        key = cache_key(user_id, currency)
        cached = self._cache.get(key)
        if cached is not None:
            wallet_settings_outcomes_total.labels(outcome="cached").inc()
            return SettingsFound(cached)

        logger.info("Cache miss, fetching from Luxor for {}", key)
        try:
            settings = await self._client.get_payment_settings(currency, lookup.subaccount_name)
        except LuxorError as exc:
            return self._from_upstream_error(exc, key)
        except (TimeoutError, httpx.TransportError) as exc:
            logger.error("Network error fetching {} from Luxor: {!r}", key, exc)
            return self._fail(
                WalletError(WalletErrorKind.upstream_unavailable, "Request timeout or network error")
            )
        except Exception as exc:
            # Callers only ever see the taxonomy; the traceback stays in the logs
            logger.opt(exception=exc).error("Unexpected error fetching {} from Luxor", key)
            return self._fail(
                WalletError(WalletErrorKind.upstream_unavailable, "Request timeout or network error")
            )

        self._cache.set(key, settings)
        wallet_settings_outcomes_total.labels(outcome="fetched").inc()
        return SettingsFound(settings)

    def invalidate(self, user_id: str, currency: str) -> None:
        self._cache.invalidate(cache_key(user_id, currency))

    def invalidate_user(self, user_id: str) -> int:
        """Drop the cached settings of every currency for one user."""
        return self._cache.invalidate_pattern(rf"^{re.escape(cache_key(user_id, ''))}[^_]+$")

    def _from_upstream_error(self, exc: LuxorError, key: str) -> WalletResult:
        logger.error("Luxor API error for {}: {} - {}", key, exc.status_code, exc.message)
        status = exc.status_code

        if status == 429:
            entry = self._cache.peek(key)
            if entry is not None:
                logger.warning("Luxor rate limit hit, returning stale cache for {}", key)
                wallet_stale_fallback_total.inc()
                wallet_settings_outcomes_total.labels(outcome="stale").inc()
                return SettingsFound(entry.value, stale=True)
            return self._fail(
                WalletError(
                    WalletErrorKind.upstream_rate_limited,
                    "Rate limit exceeded. Please try again later.",
                    retry_after_seconds=self._retry_after,
                    upstream_status=status,
                )
            )
        if status == 403:
            return self._fail(
                WalletError(
                    WalletErrorKind.upstream_forbidden,
                    "Luxor permission denied. Contact administrator.",
                    upstream_status=status,
                )
            )
        if status >= 500:
            return self._fail(
                WalletError(
                    WalletErrorKind.upstream_unavailable,
                    "Luxor service unavailable. Please try again later.",
                    upstream_status=status,
                )
            )
        return self._fail(
            WalletError(
                WalletErrorKind.upstream_error,
                exc.message or "Failed to fetch wallet settings",
                upstream_status=status,
            )
        )

    @staticmethod
    def _fail(error: WalletError) -> WalletError:
        wallet_settings_outcomes_total.labels(outcome=error.kind.value).inc()
        return error
