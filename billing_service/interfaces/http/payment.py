from json import JSONDecodeError

from fastapi import APIRouter, Depends, Request, status

from billing_service.application.payment_service import PaymentService
from billing_service.config.logger_config import log
from billing_service.core.exceptions import InvalidInputError, PaymentError
from billing_service.interfaces.http.dependencies import get_payment_service
from billing_service.interfaces.http.errors import (
    error_response,
    payment_error_response,
)
from billing_service.interfaces.http.schemas import (
    BillCreate,
    CallbackResponse,
    CreateBillResponse,
    CustomerPaymentsRequest,
    CustomerPaymentsResponse,
    ErrorResponse,
    PaymentResponse,
    PaymentStatusRequest,
    PaymentStatusResponse,
)

router = APIRouter(prefix="/payments", tags=["payments"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/bills", response_model=CreateBillResponse, responses={502: {"model": ErrorResponse}}
)
async def create_bill(
    bill_create: BillCreate,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """
    Create a Billplz bill and a pending payment record.
    - Requires: amount, description, customerName, customerEmail
    - Returns the bill ID and the payment page URL
    """
    try:
        log.info("Create bill request", order_id=bill_create.order_id)
        bill = await payment_service.create_payment(bill_create)
        return CreateBillResponse(bill_id=bill.bill_id, bill_url=bill.bill_url)

    except PaymentError as e:
        log.warning("Error creating bill", error=e.message)
        return payment_error_response(e, "Failed to create bill")

    except Exception as e:
        log.critical("Unexpected error creating bill", error=str(e), exc_info=True)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to create bill: Internal server error",
        )


@router.post(
    "/callback",
    response_model=CallbackResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def payment_callback(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """
    Billplz payment callback.
    - Accepts a JSON or form-urlencoded body
    - Verifies the X-Signature before touching the record
    """
    try:
        payload = await _read_callback_body(request)
        await payment_service.apply_callback(payload)
        return CallbackResponse()

    except PaymentError as e:
        log.warning("Error processing payment callback", error=e.message)
        return payment_error_response(e, "Payment callback failed")

    except Exception as e:
        log.critical(
            "Unexpected error processing payment callback", error=str(e), exc_info=True
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Payment callback failed: Internal server error",
        )


@router.post(
    "/status", response_model=PaymentStatusResponse, responses=ERROR_RESPONSES
)
async def get_payment_status(
    status_request: PaymentStatusRequest,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """Return the current payment record for a bill."""
    try:
        payment = payment_service.get_payment_status(status_request.bill_id)
        return PaymentStatusResponse(payment=PaymentResponse.model_validate(payment))

    except PaymentError as e:
        log.warning(
            "Error getting payment status", bill_id=status_request.bill_id, error=e.message
        )
        return payment_error_response(e, "Failed to get payment status")

    except Exception as e:
        log.critical(
            "Unexpected error getting payment status", error=str(e), exc_info=True
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to get payment status: Internal server error",
        )


@router.post(
    "/history", response_model=CustomerPaymentsResponse, responses=ERROR_RESPONSES
)
async def get_customer_payments(
    history_request: CustomerPaymentsRequest,
    payment_service: PaymentService = Depends(get_payment_service),
):
    """Return a customer's payments, newest first, at most `limit` of them."""
    try:
        payments = payment_service.list_customer_payments(
            history_request.customer_email, history_request.limit
        )
        return CustomerPaymentsResponse(
            payments=[PaymentResponse.model_validate(p) for p in payments]
        )

    except PaymentError as e:
        log.warning("Error getting customer payments", error=e.message)
        return payment_error_response(e, "Failed to get customer payments")

    except Exception as e:
        log.critical(
            "Unexpected error getting customer payments", error=str(e), exc_info=True
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to get customer payments: Internal server error",
        )


async def _read_callback_body(request: Request) -> dict:
    """Read the callback body as a flat dict, whatever its content type."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except JSONDecodeError as e:
            raise InvalidInputError("Callback body is not valid JSON") from e
        if not isinstance(body, dict):
            raise InvalidInputError("Callback body must be an object")
        return body

    form = await request.form()
    return dict(form)
