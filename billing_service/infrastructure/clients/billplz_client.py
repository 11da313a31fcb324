# billing_service/infrastructure/clients/billplz_client.py

from datetime import date
from typing import Any, Dict, Optional

from httpx import (
    AsyncBaseTransport,
    AsyncClient,
    BasicAuth,
    ConnectTimeout,
    HTTPStatusError,
    ReadTimeout,
)

from billing_service.config.config import BillplzConfig
from billing_service.config.logger_config import log
from billing_service.core.exceptions import GatewayError, InvalidInputError

SERVICE_NAME = "billplz"


class BillplzClient:
    """
    Client for the Billplz v3 REST API.
    Creates bills in the configured collection and maps every failure to GatewayError.
    """

    def __init__(
        self,
        billplz_config: BillplzConfig,
        transport: Optional[AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.
        Args:
            billplz_config: API key, collection ID, base and callback URLs.
            transport: Optional httpx transport (used to stub the API in tests).
        """
        self.config = billplz_config
        self.base_url = billplz_config.base_url.rstrip("/")
        self.timeout = billplz_config.timeout
        self.transport = transport

    async def _make_request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """
        Make an authenticated request to Billplz with error mapping and logging.
        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL to request
            **kwargs: Additional arguments passed to httpx
        Returns:
            JSON response from Billplz
        Raises:
            GatewayError: If Billplz is unreachable or answers with a non-2xx status
        """
        headers = {"accept": "application/json", "Content-Type": "application/json"}
        auth = BasicAuth(username=self.config.api_key, password="")

        async with AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method, url, headers=headers, auth=auth, **kwargs
                )
                response.raise_for_status()
                return response.json()

            except ConnectTimeout:
                log.critical("Connection timeout to Billplz", url=url)
                raise GatewayError(SERVICE_NAME, "Connection timeout") from None

            except ReadTimeout:
                log.critical("Read timeout from Billplz", url=url)
                raise GatewayError(SERVICE_NAME, "Read timeout") from None

            except HTTPStatusError as e:
                status_code = e.response.status_code
                detail = self._error_detail(e.response)

                log.warning(
                    "HTTP error from Billplz",
                    url=url,
                    status_code=status_code,
                    response=e.response.text[:500],
                )

                if status_code == 401:
                    raise GatewayError(
                        SERVICE_NAME, "Unauthorized: check the Billplz API key", e
                    ) from e

                if status_code == 404:
                    raise GatewayError(SERVICE_NAME, f"Not found: {detail}", e) from e

                if status_code == 422:
                    raise GatewayError(
                        SERVICE_NAME, f"Bill rejected: {detail}", e
                    ) from e

                if 500 <= status_code < 600:
                    raise GatewayError(
                        SERVICE_NAME, f"Internal server error: {status_code}", e
                    ) from e

                raise GatewayError(
                    SERVICE_NAME, f"Unexpected status {status_code}: {detail}", e
                ) from e

            except Exception as e:
                log.critical("Unexpected error calling Billplz", url=url, error=str(e))
                raise GatewayError(
                    SERVICE_NAME, "Unexpected error calling Billplz", e
                ) from e

    @staticmethod
    def _error_detail(response) -> str:
        """Pull the human readable message out of a Billplz error body."""
        try:
            error = response.json().get("error", {})
        except ValueError:
            return response.text[:200]
        message = error.get("message") if isinstance(error, dict) else error
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message or response.text[:200])

    async def create_bill(
        self,
        email: str,
        name: str,
        amount: int,
        description: str,
        due_at: date,
        mobile: str = "",
        reference_1_label: str = "Order ID",
        reference_1: str = "",
        reference_2_label: str = "Customer",
        reference_2: str = "",
    ) -> Dict[str, Any]:
        """
        Create a bill in the configured collection.
        Args:
            email: Customer email the bill is sent to.
            name: Customer name.
            amount: Amount in minor currency units (cents).
            description: Bill description.
            due_at: Due date of the bill.
            mobile: Optional customer mobile number.
            reference_1_label, reference_1, reference_2_label, reference_2:
                Labelled references shown on the Billplz side.
        Returns:
            Bill data (at least id and url).
        Raises:
            InvalidInputError: If the amount is not a positive number of cents.
            GatewayError: If Billplz rejects the bill or returns no id/url.
        """
        if amount <= 0:
            raise InvalidInputError("Bill amount must be greater than zero")

        bill_data = {
            "collection_id": self.config.collection_id,
            "email": email,
            "mobile": mobile,
            "name": name,
            "amount": amount,
            "description": description,
            "callback_url": self.config.callback_url,
            "redirect_url": self.config.redirect_url,
            "due_at": due_at.isoformat(),
            "reference_1_label": reference_1_label,
            "reference_1": reference_1,
            "reference_2_label": reference_2_label,
            "reference_2": reference_2,
        }

        log.debug("Creating bill in Billplz", amount=amount)
        bill = await self._make_request("POST", f"{self.base_url}/bills", json=bill_data)

        if not bill.get("id") or not bill.get("url"):
            log.critical("Billplz response is missing bill id or url")
            raise GatewayError(SERVICE_NAME, "Response is missing bill id or url")

        log.info("Bill created in Billplz", bill_id=bill["id"])
        return bill
