from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import String, text
from sqlalchemy.orm import Mapped, mapped_column

from services.wallet_service.app.db.base import Base


class UserRole(str, enum.Enum):
    customer = "CUSTOMER"
    admin = "ADMIN"
    super_admin = "SUPER_ADMIN"


ADMIN_ROLES = {UserRole.admin.value, UserRole.super_admin.value}


class User(Base):
    """Read-only view of the back-office users table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.customer.value, nullable=False)
    # Subaccount on the Luxor pool that holds this customer's payout settings
    luxor_subaccount_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=text("CURRENT_TIMESTAMP"), nullable=False
    )
