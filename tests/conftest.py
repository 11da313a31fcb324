import os

os.environ["ENV"] = "test"
os.environ["LOG_TO_FILE"] = "false"
os.environ["CONSOLE_LOG_LEVEL"] = "WARNING"
os.environ["BILLPLZ_API_KEY"] = "test-api-key"
os.environ["BILLPLZ_COLLECTION_ID"] = "test-collection"
os.environ["BILLPLZ_X_SIGNATURE_KEY"] = "test-signature-key"
os.environ["BILLPLZ_VERIFY_SIGNATURE"] = "true"
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite://"

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from billing_service.application.payment_service import PaymentService  # noqa: E402
from billing_service.core.exceptions import GatewayError  # noqa: E402
from billing_service.domain.models import Payment, PaymentStatus  # noqa: E402
from billing_service.infrastructure.clients.x_signature import (  # noqa: E402
    compute_x_signature,
)
from billing_service.infrastructure.database.repository import (  # noqa: E402
    PaymentRepository,
)
from billing_service.infrastructure.database.session import (  # noqa: E402
    build_engine,
    get_session,
)
from billing_service.interfaces.http.dependencies import (  # noqa: E402
    get_billplz_client,
    get_email_client,
)
from billing_service.main import app  # noqa: E402

SIGNATURE_KEY = os.environ["BILLPLZ_X_SIGNATURE_KEY"]


class FakeBillplzClient:
    """Stands in for BillplzClient; records every create_bill call."""

    def __init__(self):
        self.calls = []
        self.error = None
        self.next_id = 123

    async def create_bill(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        bill_id = f"bill_{self.next_id}"
        self.next_id += 1
        return {"id": bill_id, "url": f"https://pay/{bill_id}"}

    def fail_with(self, message="Bill rejected"):
        self.error = GatewayError("billplz", message)


class FakeEmailClient:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send_email(self, to, subject, html_body):
        self.sent.append({"to": to, "subject": subject, "html_body": html_body})
        return self.result


def sign(payload: dict) -> dict:
    """Return a copy of `payload` with a valid Billplz X-Signature added."""
    signed = dict(payload)
    key = "billplzx_signature" if "billplzid" in payload else "x_signature"
    signed[key] = compute_x_signature(payload, SIGNATURE_KEY)
    return signed


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def repository(session):
    return PaymentRepository(session)


@pytest.fixture
def billplz():
    return FakeBillplzClient()


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def payment_service(repository, billplz):
    return PaymentService(
        repository=repository,
        billplz_client=billplz,
        x_signature_key=SIGNATURE_KEY,
        verify_signature=True,
    )


@pytest.fixture
def make_payment(repository):
    """Insert a record directly, bypassing the gateway."""

    def _make(
        bill_id="bill_123",
        status=PaymentStatus.PENDING,
        customer_email="jane@example.com",
        created_at=None,
        amount=Decimal("50.00"),
    ):
        created_at = created_at or datetime(2024, 1, 1, tzinfo=timezone.utc)
        return repository.add(
            Payment(
                bill_id=bill_id,
                customer_name="Jane Doe",
                customer_email=customer_email,
                amount=amount,
                description="Oil change",
                status=status.value,
                bill_url=f"https://pay/{bill_id}" if bill_id else None,
                created_at=created_at,
                updated_at=created_at,
            )
        )

    return _make


@pytest.fixture
def client(session, billplz, email_client):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_billplz_client] = lambda: billplz
    app.dependency_overrides[get_email_client] = lambda: email_client
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def hours_ago():
    now = datetime.now(timezone.utc)
    return lambda hours: now - timedelta(hours=hours)
