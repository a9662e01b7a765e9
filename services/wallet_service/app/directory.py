from __future__ import annotations

import enum
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import User


class LookupStatus(str, enum.Enum):
    found = "found"
    not_found = "not_found"
    not_configured = "not_configured"


@dataclass
class SubaccountLookup:
    status: LookupStatus
    subaccount_name: str | None = None


class UserDirectory:
    """Resolves internal user ids to their Luxor subaccount names."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def resolve_subaccount(self, user_id: str) -> SubaccountLookup:
        async with self._session_factory() as session:
            subaccount = await session.execute(
                select(User.luxor_subaccount_name).where(User.id == user_id)
            )
            row = subaccount.one_or_none()
        if row is None:
            return SubaccountLookup(LookupStatus.not_found)
        name = (row[0] or "").strip()
        if not name:
            return SubaccountLookup(LookupStatus.not_configured)
        return SubaccountLookup(LookupStatus.found, name)
