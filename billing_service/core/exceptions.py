from typing import Optional


class PaymentError(Exception):
    """
    Base class for all errors raised by the billing service.
    Should not be exposed directly to the client; convert it to the error envelope.
    """

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class InvalidInputError(PaymentError):
    """
    Raised when a required field is missing or malformed.
    Should be mapped to 400 Bad Request.
    """

    pass


class PaymentNotFoundError(PaymentError):
    """Raised when no payment record exists for the given bill ID."""

    pass


class DatabaseError(PaymentError):
    """
    Raised when a read or write against the payment store fails.
    """

    pass


class InvalidSignatureError(PaymentError):
    """
    Raised when a Billplz callback carries a missing or wrong X-Signature.
    Should be mapped to 401 Unauthorized.
    """

    pass


class PaymentStatusTransitionError(PaymentError):
    """
    Raised when a callback tries to move a terminal record to a different status
    (e.g., 'paid' → 'failed'). Should be mapped to 409 Conflict.
    """

    pass


class GatewayError(PaymentError):
    """
    Raised when the payment gateway is unreachable or rejects a request.
    Should be mapped to 502 Bad Gateway.
    """

    def __init__(
        self, service_name: str, message: str, original_exception: Exception = None
    ):
        super().__init__(f"{service_name} error: {message}", original_exception)
        self.service_name = service_name


### Email errors


class EmailError(Exception):
    """Base class for email delivery failures."""

    pass


class EmailConfigurationError(EmailError):
    """Raised when email configuration is missing or invalid"""

    def __init__(self, missing_field: str):
        super().__init__(f"Email configuration error: missing {missing_field}")
        self.missing_field = missing_field


class EmailSendError(EmailError):
    """Raised when the SMTP server rejects or drops a message"""

    def __init__(self, email: str, error: str):
        super().__init__(f"Failed to send email to {email}: {error}")
        self.email = email
        self.error = error


class EmailTemplateError(EmailError):
    """Raised when an email template cannot be rendered"""

    def __init__(self, template: str, error: str):
        super().__init__(f"Failed to render template {template}: {error}")
        self.template = template
        self.error = error
