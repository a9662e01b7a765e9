from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .cache import create_wallet_cache
from .db.session import build_session_factory
from .directory import UserDirectory
from .gateway import WalletSettingsGateway
from .luxor import LuxorClient
from .models import ADMIN_ROLES
from .settings import WalletSettings, wallet_settings

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def _extract_token(request: Request) -> str | None:
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    # Browser sessions of the back-office carry the JWT in a cookie
    return request.cookies.get(TOKEN_COOKIE)


def get_current_principal(request: Request) -> Principal:
    """Decode the back-office session token into the calling user and role."""
    settings = wallet_settings()
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        decoded = jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except JWTError as exc:
        logger.warning("wallet.auth.jwt_decode_failed", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    sub = decoded.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing subject")
    return Principal(user_id=str(sub), role=str(decoded.get("role") or "CUSTOMER"))


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        logger.info("wallet.auth.admin_required", extra={"user_id": principal.user_id, "role": principal.role})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators can perform this action")
    return principal


def build_wallet_gateway(
    settings: WalletSettings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> WalletSettingsGateway:
    """Wire the cache, Luxor client and user directory for one process."""
    cache = create_wallet_cache(settings.cache_backend, settings.cache_ttl)
    client = LuxorClient(
        settings.luxor_api_key,
        base_url=settings.luxor_base_url,
        timeout=settings.luxor_timeout_seconds,
    )
    directory = UserDirectory(session_factory or build_session_factory())
    return WalletSettingsGateway(directory, client, cache, retry_after_seconds=settings.rate_limit_retry_after)


def get_wallet_gateway(request: Request) -> WalletSettingsGateway:
    gateway = getattr(request.app.state, "wallet_gateway", None)
    if gateway is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Wallet service is not ready")
    return gateway
