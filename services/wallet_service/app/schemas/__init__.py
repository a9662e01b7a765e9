from .wallet_settings import (
    CURRENCY_PATTERN,
    CacheStatsResponse,
    InvalidateRequest,
    InvalidateResponse,
    WalletSettingsResponse,
)

__all__ = [
    "CURRENCY_PATTERN",
    "CacheStatsResponse",
    "InvalidateRequest",
    "InvalidateResponse",
    "WalletSettingsResponse",
]
