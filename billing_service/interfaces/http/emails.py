from fastapi import APIRouter, Depends

from billing_service.application.email_service import EmailService
from billing_service.config.logger_config import log
from billing_service.interfaces.http.dependencies import get_email_service
from billing_service.interfaces.http.schemas import (
    AppointmentConfirmationRequest,
    AppointmentReminderRequest,
    EmailResult,
)

router = APIRouter(prefix="/emails", tags=["emails"])


@router.post(
    "/appointment-confirmation",
    response_model=EmailResult,
    response_model_exclude_none=True,
)
def send_appointment_confirmation(
    request: AppointmentConfirmationRequest,
    email_service: EmailService = Depends(get_email_service),
):
    """Send the appointment confirmation email. Failures are reported, not raised."""
    log.info("Appointment confirmation request", booking_id=request.booking_id)
    return email_service.send_appointment_confirmation(request)


@router.post(
    "/appointment-reminder",
    response_model=EmailResult,
    response_model_exclude_none=True,
)
def send_appointment_reminder(
    request: AppointmentReminderRequest,
    email_service: EmailService = Depends(get_email_service),
):
    """Send an appointment reminder email. Failures are reported, not raised."""
    log.info("Appointment reminder request", reminder_type=request.reminder_type)
    return email_service.send_appointment_reminder(request)
