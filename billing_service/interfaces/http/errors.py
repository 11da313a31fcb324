from fastapi import status
from fastapi.responses import JSONResponse

from billing_service.core.exceptions import (
    DatabaseError,
    GatewayError,
    InvalidInputError,
    InvalidSignatureError,
    PaymentError,
    PaymentNotFoundError,
    PaymentStatusTransitionError,
)
from billing_service.interfaces.http.schemas import ErrorResponse

STATUS_BY_ERROR = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    InvalidSignatureError: status.HTTP_401_UNAUTHORIZED,
    PaymentNotFoundError: status.HTTP_404_NOT_FOUND,
    PaymentStatusTransitionError: status.HTTP_409_CONFLICT,
    GatewayError: status.HTTP_502_BAD_GATEWAY,
    DatabaseError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the {success: false, error} envelope."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


def payment_error_response(error: PaymentError, prefix: str) -> JSONResponse:
    """Map a PaymentError to its HTTP status and the error envelope."""
    status_code = STATUS_BY_ERROR.get(
        type(error), status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return error_response(status_code, f"{prefix}: {error.message}")
