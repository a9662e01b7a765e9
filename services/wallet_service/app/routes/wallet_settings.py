"""Wallet settings routes.

Thin HTTP layer over :class:`WalletSettingsGateway`: it authenticates the
caller, decides whose settings may be read, and maps gateway errors to HTTP
statuses. Caching and Luxor error handling live in the gateway.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger

from shared.errors import error_response

from ..dependencies import Principal, get_current_principal, get_wallet_gateway, require_admin
from ..gateway import SettingsFound, WalletError, WalletErrorKind, WalletSettingsGateway, cache_key
from ..schemas import CURRENCY_PATTERN, CacheStatsResponse, InvalidateRequest, InvalidateResponse, WalletSettingsResponse

router = APIRouter(prefix="/wallet/settings")

GatewayDep = Annotated[WalletSettingsGateway, Depends(get_wallet_gateway)]

STATUS_BY_KIND: dict[WalletErrorKind, int] = {
    WalletErrorKind.user_not_found: status.HTTP_404_NOT_FOUND,
    WalletErrorKind.no_upstream_account: 422,
    WalletErrorKind.upstream_rate_limited: status.HTTP_429_TOO_MANY_REQUESTS,
    WalletErrorKind.upstream_forbidden: status.HTTP_403_FORBIDDEN,
    WalletErrorKind.upstream_unavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}

FRESH_CACHE_CONTROL = "max-age=600, private"
STALE_CACHE_CONTROL = "max-age=60, private"


def _status_for(error: WalletError) -> int:
    if error.kind in STATUS_BY_KIND:
        return STATUS_BY_KIND[error.kind]
    if error.upstream_status and error.upstream_status >= 400:
        return error.upstream_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@router.get("", response_model=WalletSettingsResponse)
async def get_wallet_settings(
    request: Request,
    response: Response,
    gateway: GatewayDep,
    principal: Principal = Depends(get_current_principal),
    currency: str = Query("BTC", min_length=1, max_length=10, pattern=CURRENCY_PATTERN),
    customer_id: str | None = Query(None, alias="customerId"),
) -> WalletSettingsResponse | JSONResponse:
    """Return Luxor payment settings for the caller, or for ``customerId`` when an admin asks."""
    user_id = principal.user_id
    if customer_id:
        if not principal.is_admin:
            logger.warning("Non-admin user {} attempted to read wallet settings of {}", principal.user_id, customer_id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only administrators can access other users' wallet settings",
            )
        logger.info("Admin {} reading wallet settings for user {}", principal.user_id, customer_id)
        user_id = customer_id

    result = await gateway.get_settings(user_id, currency)
    if isinstance(result, SettingsFound):
        if result.stale:
            response.headers["Cache-Control"] = STALE_CACHE_CONTROL
            response.headers["Retry-After"] = str(gateway.retry_after_seconds)
        else:
            response.headers["Cache-Control"] = FRESH_CACHE_CONTROL
        return WalletSettingsResponse(data=result.value, stale=result.stale)

    return error_response(
        _status_for(result),
        error=result.message,
        code=result.kind.value,
        detail=None,
        request_id=getattr(request.state, "request_id", None),
        retry_after=result.retry_after_seconds,
    )


@router.post("/invalidate", response_model=InvalidateResponse)
async def invalidate_wallet_settings(
    payload: InvalidateRequest,
    gateway: GatewayDep,
    admin: Principal = Depends(require_admin),
) -> InvalidateResponse:
    """Drop cached settings after an out-of-band change on the Luxor side."""
    if payload.currency:
        gateway.invalidate(payload.user_id, payload.currency)
        key = cache_key(payload.user_id, payload.currency)
        logger.info("Admin {} invalidated cache for {}", admin.user_id, key)
        return InvalidateResponse(message=f"Cache invalidated for {key}")

    removed = gateway.invalidate_user(payload.user_id)
    logger.info("Admin {} invalidated {} cached currencies for user {}", admin.user_id, removed, payload.user_id)
    return InvalidateResponse(message=f"Cache invalidated for user {payload.user_id}", removed=removed)


@router.get("/cache", response_model=CacheStatsResponse)
async def wallet_cache_stats(gateway: GatewayDep, _admin: Principal = Depends(require_admin)) -> CacheStatsResponse:
    return CacheStatsResponse(**gateway.cache.stats())
