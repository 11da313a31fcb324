from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Numeric
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(str, Enum):
    """Lifecycle states of a payment record."""

    INITIATING = "initiating"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"

    @classmethod
    def terminal(cls) -> set:
        return {cls.PAID.value, cls.FAILED.value}


class Payment(SQLModel, table=True):
    """
    Local record of a Billplz bill and its last known outcome.

    A record is first written as `initiating` before the gateway is called, then
    finalised to `pending` once Billplz returns the bill ID and URL. Only a
    gateway callback moves it on to `paid` or `failed`, both of which are terminal.

    `bill_id` is assigned by Billplz, never generated locally, and is null only
    while the record is still `initiating`.

    Attributes:
        id: Local surrogate key (UUID, primary key).
        bill_id: Billplz bill ID; unique once assigned.
        order_id: Caller-supplied correlation ID ("" when absent).
        customer_name: Name shown on the bill.
        customer_email: Email the bill is sent to; used for history lookups.
        customer_phone: Optional mobile number ("" when absent).
        amount: Amount in major currency units (NUMERIC(10,2)).
        description: Bill description.
        status: initiating, pending, paid or failed.
        bill_url: Payment page URL returned by Billplz.
        transaction_id: Billplz transaction ID, set by the callback.
        created_at: Creation timestamp, never changed.
        updated_at: Rewritten on every status change.
        paid_at: Payment timestamp reported by Billplz; only set when paid.
    """

    __tablename__ = "payments"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        index=True,
        nullable=False,
        description="Local identifier for the payment record",
    )

    bill_id: Optional[str] = Field(
        default=None,
        max_length=64,
        unique=True,
        index=True,
        description="Billplz bill ID (null while initiating)",
    )

    order_id: str = Field(default="", max_length=255, nullable=False)

    customer_name: str = Field(max_length=255, nullable=False)

    customer_email: str = Field(max_length=255, index=True, nullable=False)

    customer_phone: str = Field(default="", max_length=32, nullable=False)

    amount: Decimal = Field(
        sa_column=Column(Numeric(10, 2), nullable=False),
        description="Payment amount in major currency units",
    )

    description: str = Field(max_length=200, nullable=False)

    status: str = Field(
        default=PaymentStatus.INITIATING.value,
        max_length=20,
        index=True,
        nullable=False,
        description="initiating, pending, paid or failed",
    )

    bill_url: Optional[str] = Field(default=None, max_length=512)

    transaction_id: str = Field(default="", max_length=255, nullable=False)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    paid_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
