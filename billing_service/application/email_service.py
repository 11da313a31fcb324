"""
Transactional appointment emails.
Best effort: every outcome is reported back to the caller as an EmailResult.
"""

from billing_service.config.logger_config import log
from billing_service.core.exceptions import EmailError
from billing_service.infrastructure.email.client import EmailClient
from billing_service.infrastructure.email.renderer import render_template
from billing_service.interfaces.http.schemas import (
    AppointmentConfirmationRequest,
    AppointmentReminderRequest,
    EmailResult,
)
from billing_service.observability.metrics import EMAILS_SENT

CONFIRMATION_TEMPLATE = "appointment_confirmation.html"
REMINDER_TEMPLATE = "appointment_reminder.html"


class EmailService:
    def __init__(self, email_client: EmailClient):
        self.email_client = email_client

    def send_appointment_confirmation(
        self, request: AppointmentConfirmationRequest
    ) -> EmailResult:
        subject = f"Appointment Confirmed - {request.shop_name}"
        return self._send(
            template=CONFIRMATION_TEMPLATE,
            to=request.customer_email,
            subject=subject,
            context=request.model_dump(exclude={"customer_email"}),
        )

    def send_appointment_reminder(
        self, request: AppointmentReminderRequest
    ) -> EmailResult:
        subject = f"Appointment Reminder - {request.reminder_type} - {request.shop_name}"
        return self._send(
            template=REMINDER_TEMPLATE,
            to=request.customer_email,
            subject=subject,
            context=request.model_dump(exclude={"customer_email"}),
        )

    def _send(self, template: str, to: str, subject: str, context: dict) -> EmailResult:
        if not to:
            EMAILS_SENT.labels(template=template, status="invalid").inc()
            return EmailResult(success=False, error="Missing customerEmail")

        try:
            body = render_template(template, context)
            sent = self.email_client.send_email(to=to, subject=subject, html_body=body)
        except EmailError as e:
            EMAILS_SENT.labels(template=template, status="failed").inc()
            log.error("Error sending email", template=template, error=str(e))
            return EmailResult(success=False, error=str(e))
        except Exception as e:
            EMAILS_SENT.labels(template=template, status="failed").inc()
            log.error(
                "Unexpected error sending email",
                template=template,
                error=str(e),
                exc_info=True,
            )
            return EmailResult(success=False, error="Failed to send email")

        if not sent:
            EMAILS_SENT.labels(template=template, status="failed").inc()
            return EmailResult(success=False, error="Failed to send email")

        EMAILS_SENT.labels(template=template, status="sent").inc()
        return EmailResult(success=True)
