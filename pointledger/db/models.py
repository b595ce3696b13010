"""
SQLAlchemy models for the credit ledger.

Tables:
- ledger_accounts: Individuals, organizations and organization members with plan ids
- credit_balances: Two-pool wallet (plan grant + purchased) per individual or organization
- credit_allocations: Per-member slice of an organization's monthly grant
- point_usage_entries: Append-only debit audit log
- credit_purchases: Processed top-ups, keyed by payment reference
- allocation_requests: Member requests for more allocated points

Point quantities are stored as integer hundredths of a point so that
increments and guards are exact in every backend.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pointledger.utils.timer_utils import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class AccountKind:
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"
    MEMBER = "member"
    ADMIN = "admin"


class RequestStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AccountModel(Base):
    """An identity known to the ledger. Plans are set by subscription flows."""

    __tablename__ = "ledger_accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20))
    plan_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("ledger_accounts.id"), nullable=True, index=True
    )
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class CreditBalanceModel(Base):
    """Wallet of an individual or an organization. Rolled over in place, never deleted."""

    __tablename__ = "credit_balances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("ledger_accounts.id"), unique=True
    )
    plan_used_centipoints: Mapped[int] = mapped_column(BigInteger, default=0)
    purchased_balance_centipoints: Mapped[int] = mapped_column(BigInteger, default=0)
    purchased_used_centipoints: Mapped[int] = mapped_column(BigInteger, default=0)
    period_start: Mapped[datetime] = mapped_column(DateTime)
    period_end: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class CreditAllocationModel(Base):
    """A member's slice of the organization grant for the current period."""

    __tablename__ = "credit_allocations"
    __table_args__ = (
        UniqueConstraint("organization_id", "member_id", name="uq_allocation_org_member"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("ledger_accounts.id"), index=True
    )
    member_id: Mapped[str] = mapped_column(String(64), ForeignKey("ledger_accounts.id"))
    allocated_centipoints: Mapped[int] = mapped_column(BigInteger, default=0)
    used_centipoints: Mapped[int] = mapped_column(BigInteger, default=0)
    period_start: Mapped[datetime] = mapped_column(DateTime)
    period_end: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class PointUsageEntryModel(Base):
    """Write-once record of a single debit and how it was split across pools."""

    __tablename__ = "point_usage_entries"
    __table_args__ = (
        Index("ix_usage_account_created", "account_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(64))
    organization_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    activity_ref: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tier: Mapped[str] = mapped_column(String(20))
    work_units: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    points_centipoints: Mapped[int] = mapped_column(BigInteger)
    pool_breakdown: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class CreditPurchaseModel(Base):
    """A processed top-up. The reference makes webhook retries idempotent."""

    __tablename__ = "credit_purchases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    reference: Mapped[str] = mapped_column(String(128), unique=True)
    owner_id: Mapped[str] = mapped_column(String(64), ForeignKey("ledger_accounts.id"), index=True)
    pack_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    points_centipoints: Mapped[int] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class AllocationRequestModel(Base):
    """A member asking an administrator for more allocated points."""

    __tablename__ = "allocation_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("ledger_accounts.id"), index=True
    )
    member_id: Mapped[str] = mapped_column(String(64), ForeignKey("ledger_accounts.id"))
    requested_centipoints: Mapped[int] = mapped_column(BigInteger)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=RequestStatus.PENDING)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    review_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


__all__ = [
    "Base",
    "AccountKind",
    "RequestStatus",
    "AccountModel",
    "CreditBalanceModel",
    "CreditAllocationModel",
    "PointUsageEntryModel",
    "CreditPurchaseModel",
    "AllocationRequestModel",
]
