# billing_service/interfaces/http/schemas.py

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model reading and writing camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BillCreate(CamelModel):
    """
    Schema for creating a new bill.
    Required fields are checked by the payment service so a missing field is
    reported with the service's own message.
    """

    amount: Optional[Decimal] = Field(None, description="Amount in major currency units")
    description: Optional[str] = Field(None, max_length=200)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    order_id: Optional[str] = None


class CreatedBill(CamelModel):
    bill_id: str
    bill_url: str


class CreateBillResponse(CamelModel):
    success: bool = True
    bill_id: str
    bill_url: str
    message: str = "Bill created successfully"


class CallbackPayload(BaseModel):
    """
    Fields of a Billplz callback after key normalisation.
    Both the redirect-style keys (billplzid, billplzpaid_at, ...) and the
    native callback keys (id, paid_at, ...) are understood.
    """

    bill_id: Optional[str] = None
    paid_at: Optional[str] = None
    transaction_id: Optional[str] = None
    transaction_status: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, str]) -> "CallbackPayload":
        def pick(name: str) -> Optional[str]:
            return payload.get(f"billplz{name}") or payload.get(name) or None

        return cls(
            bill_id=pick("id"),
            paid_at=pick("paid_at"),
            transaction_id=pick("transaction_id"),
            transaction_status=pick("transaction_status"),
        )


class CallbackResponse(CamelModel):
    success: bool = True
    message: str = "Payment callback processed successfully"


class PaymentStatusRequest(CamelModel):
    bill_id: Optional[str] = None


class CustomerPaymentsRequest(CamelModel):
    customer_email: Optional[str] = None
    limit: Optional[int] = 10


class PaymentResponse(CamelModel):
    """
    Response model for a single payment record.
    """

    bill_id: Optional[str] = None
    order_id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    amount: float
    description: str
    status: str
    bill_url: Optional[str] = None
    transaction_id: str
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "paid_at", mode="after")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # SQLite drops the offset; stored timestamps are always UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @computed_field
    @property
    def id(self) -> Optional[str]:
        # Records are addressed by their Billplz bill ID
        return self.bill_id


class PaymentStatusResponse(CamelModel):
    success: bool = True
    payment: PaymentResponse


class CustomerPaymentsResponse(CamelModel):
    success: bool = True
    payments: List[PaymentResponse]


class ErrorResponse(CamelModel):
    success: bool = False
    error: str


class AppointmentConfirmationRequest(CamelModel):
    customer_email: Optional[str] = None
    customer_name: str = ""
    shop_name: str = ""
    appointment_date: str = ""
    appointment_time: str = ""
    service_types: str = ""
    estimated_cost: str = ""
    booking_id: str = ""

    @field_validator("service_types", mode="before")
    @classmethod
    def join_service_types(cls, value):
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        return value

    @field_validator("estimated_cost", "booking_id", mode="before")
    @classmethod
    def stringify(cls, value):
        if value is None:
            return ""
        return str(value)


class AppointmentReminderRequest(CamelModel):
    customer_email: Optional[str] = None
    customer_name: str = ""
    shop_name: str = ""
    appointment_date: str = ""
    appointment_time: str = ""
    reminder_type: str = ""


class EmailResult(CamelModel):
    success: bool
    error: Optional[str] = None
