"""
Dependency providers for the HTTP routers.
Tests override get_session, get_billplz_client and get_email_client.
"""

from fastapi import Depends
from sqlmodel import Session

from billing_service.application.email_service import EmailService
from billing_service.application.payment_service import PaymentService
from billing_service.config.config import config
from billing_service.infrastructure.clients.billplz_client import BillplzClient
from billing_service.infrastructure.database.repository import PaymentRepository
from billing_service.infrastructure.database.session import get_session
from billing_service.infrastructure.email.client import EmailClient


def get_billplz_client() -> BillplzClient:
    """Dependency to get BillplzClient."""
    return BillplzClient(config.billplz_config)


def get_email_client() -> EmailClient:
    """Dependency to get EmailClient."""
    return EmailClient(config.smtp_config)


def get_payment_service(
    session: Session = Depends(get_session),
    billplz_client: BillplzClient = Depends(get_billplz_client),
) -> PaymentService:
    return PaymentService(
        repository=PaymentRepository(session),
        billplz_client=billplz_client,
        x_signature_key=config.BILLPLZ_X_SIGNATURE_KEY,
        verify_signature=config.BILLPLZ_VERIFY_SIGNATURE,
        due_days=config.BILL_DUE_DAYS,
    )


def get_email_service(
    email_client: EmailClient = Depends(get_email_client),
) -> EmailService:
    return EmailService(email_client=email_client)
