# billing_service/application/payment_service.py

from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from billing_service.config.logger_config import log
from billing_service.core.exceptions import (
    DatabaseError,
    GatewayError,
    InvalidInputError,
    InvalidSignatureError,
    PaymentNotFoundError,
    PaymentStatusTransitionError,
)
from billing_service.domain.models import Payment, PaymentStatus, utcnow
from billing_service.infrastructure.clients.billplz_client import BillplzClient
from billing_service.infrastructure.clients.x_signature import verify_x_signature
from billing_service.infrastructure.database.repository import PaymentRepository
from billing_service.interfaces.http.schemas import (
    BillCreate,
    CallbackPayload,
    CreatedBill,
)
from billing_service.observability.metrics import BILLS_CREATED, CALLBACKS_PROCESSED

COMPLETED_STATUS = "completed"
KNOWN_TRANSACTION_STATUSES = {"completed", "failed", "pending"}


def to_minor_units(amount: Decimal) -> int:
    """Convert an amount in major units to cents, rounding half up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_paid_at(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Billplz paid_at value.
    Accepts ISO 8601 (with or without a trailing Z) and the
    "2017-10-21 14:56:34 +0800" form Billplz uses in callbacks.
    Naive values are taken as UTC.
    """
    if not value:
        return None
    text = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S %z")
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_callback_payload(payload: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten Billplz redirect keys (billplz[id] -> billplzid) and stringify values."""
    normalized = {}
    for key, value in payload.items():
        if key.startswith("billplz[") and key.endswith("]"):
            key = "billplz" + key[len("billplz[") : -1]
        normalized[key] = "" if value is None else str(value)
    return normalized


class PaymentService:
    """
    Owns the payment record lifecycle: bill creation, callback reconciliation
    and read access. Talks to Billplz through BillplzClient and to the store
    through PaymentRepository.
    """

    def __init__(
        self,
        repository: PaymentRepository,
        billplz_client: BillplzClient,
        x_signature_key: Optional[str] = None,
        verify_signature: bool = True,
        due_days: int = 7,
    ):
        """
        Args:
            repository: Store for payment records.
            billplz_client: Client used to create bills.
            x_signature_key: Billplz X-Signature key used to verify callbacks.
            verify_signature: Reject callbacks without a valid X-Signature.
            due_days: Days from creation until the bill is due.
        """
        self.repository = repository
        self.billplz_client = billplz_client
        self.x_signature_key = x_signature_key
        self.verify_signature = verify_signature
        self.due_days = due_days

    async def create_payment(self, bill_create: BillCreate) -> CreatedBill:
        """
        Create a Billplz bill and the matching pending payment record.

        A provisional `initiating` record is written before Billplz is called.
        If Billplz fails the provisional record is removed again. If the final
        write fails the record is left `initiating`, with the bill reference
        written on a best-effort basis so it can be reconciled.
        """
        self._validate_bill_input(bill_create)

        log.info(
            "Creating payment",
            order_id=bill_create.order_id,
            amount=str(bill_create.amount),
        )

        now = utcnow()
        payment = self.repository.add(
            Payment(
                order_id=bill_create.order_id or "",
                customer_name=bill_create.customer_name,
                customer_email=bill_create.customer_email,
                customer_phone=bill_create.customer_phone or "",
                amount=bill_create.amount,
                description=bill_create.description,
                status=PaymentStatus.INITIATING.value,
                created_at=now,
                updated_at=now,
            )
        )

        try:
            bill = await self.billplz_client.create_bill(
                email=bill_create.customer_email,
                mobile=bill_create.customer_phone or "",
                name=bill_create.customer_name,
                amount=to_minor_units(bill_create.amount),
                description=bill_create.description,
                due_at=self._due_date(now),
                reference_1_label="Order ID",
                reference_1=bill_create.order_id or "",
                reference_2_label="Customer",
                reference_2=bill_create.customer_name,
            )
        except (GatewayError, InvalidInputError):
            BILLS_CREATED.labels(status="gateway_error").inc()
            self._discard_provisional(payment)
            raise

        payment_id = payment.id
        payment.bill_id = bill["id"]
        payment.bill_url = bill["url"]
        payment.status = PaymentStatus.PENDING.value
        payment.updated_at = now

        try:
            payment = self.repository.save(payment)
        except DatabaseError:
            BILLS_CREATED.labels(status="dangling").inc()
            log.critical(
                "Bill created in Billplz but payment record was not finalised",
                bill_id=bill["id"],
                payment_id=str(payment_id),
            )
            self.repository.record_bill_reference(payment_id, bill["id"], bill["url"])
            raise

        BILLS_CREATED.labels(status="created").inc()
        log.info(
            "Bill created successfully",
            bill_id=payment.bill_id,
            order_id=payment.order_id,
            amount=str(payment.amount),
        )
        return CreatedBill(bill_id=payment.bill_id, bill_url=payment.bill_url)

    async def apply_callback(self, raw_payload: Mapping[str, Any]) -> Payment:
        """
        Apply a Billplz payment callback to the matching record.

        The record moves from pending to paid when the transaction status is
        "completed" and to failed otherwise. A repeated callback with the same
        outcome is acknowledged without changes; a callback that contradicts a
        terminal status is rejected.
        """
        payload = normalize_callback_payload(raw_payload)
        self._verify_callback_signature(payload)

        callback = CallbackPayload.from_payload(payload)
        if not callback.bill_id:
            log.error("Missing bill id in callback")
            raise InvalidInputError("Missing billplzid")

        payment = self.repository.get_by_bill_id(callback.bill_id)
        if not payment:
            log.error("Payment record not found", bill_id=callback.bill_id)
            raise PaymentNotFoundError("Payment record not found")

        is_paid = callback.transaction_status == COMPLETED_STATUS
        if callback.transaction_status not in KNOWN_TRANSACTION_STATUSES:
            log.warning(
                "Unrecognised transaction status, recording payment as failed",
                bill_id=callback.bill_id,
                transaction_status=callback.transaction_status,
            )

        new_status = PaymentStatus.PAID if is_paid else PaymentStatus.FAILED

        if payment.status in PaymentStatus.terminal():
            return self._handle_terminal(payment, new_status)

        paid_at = None
        if is_paid:
            paid_at = parse_paid_at(callback.paid_at)
            if paid_at is None:
                raise InvalidInputError("Missing or invalid paid_at for completed payment")

        updated = self.repository.apply_status(
            bill_id=callback.bill_id,
            status=new_status,
            transaction_id=callback.transaction_id or "",
            paid_at=paid_at,
            updated_at=utcnow(),
        )

        payment = self.repository.get_by_bill_id(callback.bill_id)
        if not updated:
            # Another callback moved the record out of pending first
            return self._handle_terminal(payment, new_status)

        CALLBACKS_PROCESSED.labels(status=new_status.value).inc()
        log.info(
            "Payment status updated",
            bill_id=callback.bill_id,
            status=new_status.value,
            transaction_id=callback.transaction_id,
        )
        return payment

    def get_payment_status(self, bill_id: Optional[str]) -> Payment:
        """Return the current record for `bill_id`."""
        if not bill_id:
            raise InvalidInputError("Missing billId")

        log.debug("Fetching payment status", bill_id=bill_id)
        payment = self.repository.get_by_bill_id(bill_id)
        if not payment:
            log.warning("Payment not found", bill_id=bill_id)
            raise PaymentNotFoundError("Payment record not found")
        return payment

    def list_customer_payments(
        self, customer_email: Optional[str], limit: Optional[int] = 10
    ) -> List[Payment]:
        """Return up to `limit` records for the customer, newest first."""
        if not customer_email:
            raise InvalidInputError("Missing customerEmail")
        if limit is None:
            limit = 10
        if limit < 1:
            raise InvalidInputError("limit must be a positive integer")
        payments = self.repository.list_by_customer_email(customer_email, limit)
        log.info("Customer payments listed", count=len(payments), limit=limit)
        return payments

    def _validate_bill_input(self, bill_create: BillCreate) -> None:
        """Validate that the required bill fields are present."""
        if (
            not bill_create.amount
            or not bill_create.description
            or not bill_create.customer_name
            or not bill_create.customer_email
        ):
            raise InvalidInputError(
                "Missing required fields: amount, description, customerName, "
                "customerEmail"
            )
        try:
            if bill_create.amount <= 0:
                raise InvalidInputError("Payment amount must be greater than zero")
        except InvalidOperation as e:
            raise InvalidInputError("Payment amount must be a number") from e

    def _due_date(self, created_at: datetime) -> date:
        return (created_at + timedelta(days=self.due_days)).date()

    def _verify_callback_signature(self, payload: Dict[str, str]) -> None:
        if not self.verify_signature:
            return
        if not self.x_signature_key:
            log.critical("Callback signature verification enabled without a key")
            raise InvalidSignatureError("X-Signature key is not configured")
        if not verify_x_signature(payload, self.x_signature_key):
            CALLBACKS_PROCESSED.labels(status="rejected").inc()
            log.warning(
                "Rejected callback with invalid X-Signature",
                bill_id=payload.get("billplzid") or payload.get("id"),
            )
            raise InvalidSignatureError("Invalid X-Signature")

    def _handle_terminal(self, payment: Payment, new_status: PaymentStatus) -> Payment:
        if payment.status == new_status.value:
            CALLBACKS_PROCESSED.labels(status="duplicate").inc()
            log.info(
                "Duplicate callback ignored",
                bill_id=payment.bill_id,
                status=payment.status,
            )
            return payment

        CALLBACKS_PROCESSED.labels(status="conflict").inc()
        log.warning(
            "Callback contradicts terminal payment status",
            bill_id=payment.bill_id,
            current_status=payment.status,
            requested_status=new_status.value,
        )
        raise PaymentStatusTransitionError(
            f"Payment is already {payment.status}, cannot mark as {new_status.value}"
        )

    def _discard_provisional(self, payment: Payment) -> None:
        """Remove a provisional record after Billplz refused the bill."""
        try:
            self.repository.delete(payment)
        except DatabaseError:
            log.critical(
                "Failed to discard provisional payment record",
                payment_id=str(payment.id),
            )
