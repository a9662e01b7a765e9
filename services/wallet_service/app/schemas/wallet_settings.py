from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Ticker symbols only; cache keys use "_" as the separator
CURRENCY_PATTERN = r"^[A-Za-z0-9]+$"


class WalletSettingsResponse(BaseModel):
    """Luxor payment settings as returned to the back-office UI.

    ``data`` is forwarded untouched from Luxor (addresses, revenue allocation,
    payout frequency, next payout time).
    """

    success: bool = True
    data: dict[str, Any]
    stale: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class InvalidateRequest(BaseModel):
    user_id: str = Field(..., min_length=1, alias="userId")
    # Omitted currency drops every cached currency for the user
    currency: str | None = Field(None, min_length=1, max_length=10, pattern=CURRENCY_PATTERN)

    model_config = ConfigDict(populate_by_name=True)


class InvalidateResponse(BaseModel):
    success: bool = True
    message: str
    removed: int | None = None


class CacheStatsResponse(BaseModel):
    size: int
    keys: list[str]
    ttl_seconds: int
