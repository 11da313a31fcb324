from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlmodel import select

from billing_service.application.payment_service import (
    normalize_callback_payload,
    parse_paid_at,
    to_minor_units,
)
from billing_service.core.exceptions import (
    DatabaseError,
    GatewayError,
    InvalidInputError,
    InvalidSignatureError,
    PaymentNotFoundError,
    PaymentStatusTransitionError,
)
from billing_service.domain.models import Payment, PaymentStatus
from billing_service.interfaces.http.schemas import BillCreate
from tests.conftest import sign


def bill_request(**overrides):
    data = {
        "amount": Decimal("50.00"),
        "description": "Oil change",
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
    }
    data.update(overrides)
    return BillCreate(**data)


def all_payments(session):
    return session.exec(select(Payment)).all()


# === CreatePayment ===


async def test_create_payment_stores_pending_record(payment_service, repository):
    created = await payment_service.create_payment(bill_request())

    assert created.bill_id == "bill_123"
    assert created.bill_url == "https://pay/bill_123"

    payment = repository.get_by_bill_id("bill_123")
    assert payment.status == PaymentStatus.PENDING.value
    assert payment.amount == Decimal("50.00")
    assert payment.paid_at is None
    assert payment.transaction_id == ""
    assert payment.order_id == ""
    assert payment.created_at == payment.updated_at


async def test_create_payment_builds_gateway_request(payment_service, billplz):
    await payment_service.create_payment(
        bill_request(
            amount=Decimal("10.005"), customer_phone="0123456789", order_id="ord-9"
        )
    )

    call = billplz.calls[0]
    assert call["amount"] == 1001
    assert call["mobile"] == "0123456789"
    assert call["reference_1_label"] == "Order ID"
    assert call["reference_1"] == "ord-9"
    assert call["reference_2_label"] == "Customer"
    assert call["reference_2"] == "Jane Doe"
    assert isinstance(call["due_at"], date)
    assert (call["due_at"] - datetime.now(timezone.utc).date()).days == 7


@pytest.mark.parametrize(
    "missing", ["amount", "description", "customer_name", "customer_email"]
)
async def test_create_payment_requires_fields(payment_service, billplz, session, missing):
    with pytest.raises(InvalidInputError, match="Missing required fields"):
        await payment_service.create_payment(bill_request(**{missing: None}))

    assert billplz.calls == []
    assert all_payments(session) == []


async def test_create_payment_rejects_negative_amount(payment_service, session):
    with pytest.raises(InvalidInputError):
        await payment_service.create_payment(bill_request(amount=Decimal("-5")))
    assert all_payments(session) == []


async def test_gateway_failure_leaves_no_record(payment_service, billplz, session):
    billplz.fail_with("Bill rejected: Email is invalid")

    with pytest.raises(GatewayError, match="Email is invalid"):
        await payment_service.create_payment(bill_request())

    assert all_payments(session) == []


async def test_failed_finalise_keeps_initiating_record(
    payment_service, repository, session, monkeypatch
):
    def broken_save(payment):
        raise DatabaseError("Failed to update payment record")

    monkeypatch.setattr(repository, "save", broken_save)

    with pytest.raises(DatabaseError):
        await payment_service.create_payment(bill_request())

    session.expire_all()
    payments = all_payments(session)
    assert len(payments) == 1
    assert payments[0].status == PaymentStatus.INITIATING.value
    assert payments[0].bill_id == "bill_123"
    assert payments[0].bill_url == "https://pay/bill_123"


# === ApplyCallback ===


async def test_completed_callback_marks_paid(payment_service, make_payment):
    make_payment("bill_123")

    payment = await payment_service.apply_callback(
        sign(
            {
                "billplzid": "bill_123",
                "billplztransaction_status": "completed",
                "billplzpaid_at": "2024-01-01T10:00:00Z",
                "billplztransaction_id": "txn_1",
            }
        )
    )

    assert payment.status == PaymentStatus.PAID.value
    assert payment.transaction_id == "txn_1"
    assert payment.paid_at.replace(tzinfo=None) == datetime(2024, 1, 1, 10, 0, 0)


@pytest.mark.parametrize("transaction_status", ["failed", "pending", "garbage", ""])
async def test_other_statuses_mark_failed(
    payment_service, make_payment, transaction_status
):
    make_payment("bill_123")

    payment = await payment_service.apply_callback(
        sign(
            {
                "billplzid": "bill_123",
                "billplztransaction_status": transaction_status,
                "billplzpaid_at": "2024-01-01T10:00:00Z",
            }
        )
    )

    assert payment.status == PaymentStatus.FAILED.value
    assert payment.paid_at is None
    assert payment.transaction_id == ""


async def test_native_callback_keys_are_understood(payment_service, make_payment):
    make_payment("bill_abc")

    payment = await payment_service.apply_callback(
        sign(
            {
                "id": "bill_abc",
                "paid": "true",
                "paid_at": "2024-03-05 14:56:34 +0800",
                "transaction_id": "AC4GC031F42H",
                "transaction_status": "completed",
            }
        )
    )

    assert payment.status == PaymentStatus.PAID.value
    assert payment.transaction_id == "AC4GC031F42H"


async def test_callback_for_unknown_bill_creates_nothing(payment_service, session):
    with pytest.raises(PaymentNotFoundError):
        await payment_service.apply_callback(
            sign({"billplzid": "bill_missing", "billplztransaction_status": "failed"})
        )
    assert all_payments(session) == []


async def test_callback_requires_bill_id(payment_service):
    with pytest.raises(InvalidInputError, match="billplzid"):
        await payment_service.apply_callback(
            sign({"billplztransaction_status": "completed"})
        )


async def test_callback_with_bad_signature_is_rejected(
    payment_service, make_payment, repository
):
    make_payment("bill_123")
    payload = sign({"billplzid": "bill_123", "billplztransaction_status": "failed"})
    payload["billplztransaction_status"] = "completed"

    with pytest.raises(InvalidSignatureError):
        await payment_service.apply_callback(payload)

    assert repository.get_by_bill_id("bill_123").status == PaymentStatus.PENDING.value


async def test_unsigned_callback_is_rejected(payment_service, make_payment):
    make_payment("bill_123")
    with pytest.raises(InvalidSignatureError):
        await payment_service.apply_callback(
            {"billplzid": "bill_123", "billplztransaction_status": "completed"}
        )


async def test_signature_check_can_be_disabled(payment_service, make_payment):
    make_payment("bill_123")
    payment_service.verify_signature = False

    payment = await payment_service.apply_callback(
        {"billplzid": "bill_123", "billplztransaction_status": "failed"}
    )
    assert payment.status == PaymentStatus.FAILED.value


async def test_completed_callback_requires_paid_at(payment_service, make_payment):
    make_payment("bill_123")
    with pytest.raises(InvalidInputError, match="paid_at"):
        await payment_service.apply_callback(
            sign({"billplzid": "bill_123", "billplztransaction_status": "completed"})
        )


async def test_duplicate_callback_is_a_no_op(payment_service, make_payment):
    make_payment("bill_123")
    payload = sign(
        {
            "billplzid": "bill_123",
            "billplztransaction_status": "completed",
            "billplzpaid_at": "2024-01-01T10:00:00Z",
            "billplztransaction_id": "txn_1",
        }
    )
    first = await payment_service.apply_callback(payload)
    updated_at = first.updated_at

    second = await payment_service.apply_callback(payload)

    assert second.status == PaymentStatus.PAID.value
    assert second.updated_at == updated_at


async def test_duplicate_completed_callback_without_paid_at_is_a_no_op(
    payment_service, make_payment
):
    make_payment("bill_123", status=PaymentStatus.PAID)

    payment = await payment_service.apply_callback(
        sign({"billplzid": "bill_123", "billplztransaction_status": "completed"})
    )

    assert payment.status == PaymentStatus.PAID.value


async def test_contradicting_callback_is_rejected(payment_service, make_payment):
    make_payment("bill_123", status=PaymentStatus.PAID)

    with pytest.raises(PaymentStatusTransitionError):
        await payment_service.apply_callback(
            sign({"billplzid": "bill_123", "billplztransaction_status": "failed"})
        )


async def test_lost_race_reports_terminal_status(
    payment_service, make_payment, repository, monkeypatch
):
    make_payment("bill_123")

    def already_failed(**kwargs):
        payment = repository.get_by_bill_id("bill_123")
        payment.status = PaymentStatus.FAILED.value
        repository.save(payment)
        return False

    monkeypatch.setattr(repository, "apply_status", already_failed)

    with pytest.raises(PaymentStatusTransitionError):
        await payment_service.apply_callback(
            sign(
                {
                    "billplzid": "bill_123",
                    "billplztransaction_status": "completed",
                    "billplzpaid_at": "2024-01-01T10:00:00Z",
                }
            )
        )


# === GetPaymentStatus ===


def test_get_payment_status(payment_service, make_payment):
    make_payment("bill_123")
    assert payment_service.get_payment_status("bill_123").bill_id == "bill_123"


def test_get_payment_status_requires_bill_id(payment_service):
    with pytest.raises(InvalidInputError):
        payment_service.get_payment_status(None)


def test_get_payment_status_unknown_bill(payment_service):
    with pytest.raises(PaymentNotFoundError):
        payment_service.get_payment_status("bill_missing")


# === ListCustomerPayments ===


def test_list_customer_payments_newest_first(payment_service, make_payment, hours_ago):
    make_payment("bill_old", created_at=hours_ago(3))
    make_payment("bill_new", created_at=hours_ago(1))
    make_payment("bill_mid", created_at=hours_ago(2))
    make_payment("bill_other", customer_email="john@example.com")

    payments = payment_service.list_customer_payments("jane@example.com", limit=2)

    assert [p.bill_id for p in payments] == ["bill_new", "bill_mid"]


def test_list_customer_payments_defaults_to_ten(payment_service, make_payment, hours_ago):
    for i in range(12):
        make_payment(f"bill_{i}", created_at=hours_ago(i))

    payments = payment_service.list_customer_payments("jane@example.com")

    assert len(payments) == 10
    created = [p.created_at for p in payments]
    assert created == sorted(created, reverse=True)


def test_list_customer_payments_hides_initiating(payment_service, make_payment):
    make_payment("bill_123")
    make_payment(None, status=PaymentStatus.INITIATING)

    payments = payment_service.list_customer_payments("jane@example.com")

    assert [p.bill_id for p in payments] == ["bill_123"]


def test_list_customer_payments_requires_email(payment_service):
    with pytest.raises(InvalidInputError, match="customerEmail"):
        payment_service.list_customer_payments("")


@pytest.mark.parametrize("limit", [0, -3])
def test_list_customer_payments_rejects_bad_limit(payment_service, limit):
    with pytest.raises(InvalidInputError):
        payment_service.list_customer_payments("jane@example.com", limit=limit)


def test_list_customer_payments_passes_large_limit_through(
    payment_service, repository, monkeypatch
):
    seen = {}

    def capture(customer_email, limit):
        seen["limit"] = limit
        return []

    monkeypatch.setattr(repository, "list_by_customer_email", capture)

    payment_service.list_customer_payments("jane@example.com", limit=150)

    assert seen["limit"] == 150


# === helpers ===


@pytest.mark.parametrize(
    "amount, cents",
    [("50.00", 5000), ("0.015", 2), ("19.994", 1999), ("1", 100)],
)
def test_to_minor_units(amount, cents):
    assert to_minor_units(Decimal(amount)) == cents


def test_parse_paid_at_formats():
    assert parse_paid_at("2024-01-01T10:00:00Z") == datetime(
        2024, 1, 1, 10, tzinfo=timezone.utc
    )
    assert parse_paid_at("2024-01-01 18:00:00 +0800") == datetime(
        2024, 1, 1, 10, tzinfo=timezone.utc
    )
    assert parse_paid_at("not a date") is None
    assert parse_paid_at(None) is None


def test_normalize_callback_payload_flattens_redirect_keys():
    assert normalize_callback_payload(
        {"billplz[id]": "bill_1", "billplz[paid]": "true", "other": None}
    ) == {"billplzid": "bill_1", "billplzpaid": "true", "other": ""}
