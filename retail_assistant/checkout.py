"""
Checkout proxy.

Forwards checkout intents to the external Checkout API (Strangler Fig
migration target) and translates every response or failure into a typed
outcome. Nothing is raised to the caller.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional, Union

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from retail_assistant.config import Settings, get_settings
from retail_assistant.errors import (
    Timeout,
    TransportError,
    UpstreamError,
    UpstreamUnavailable,
    ValidationFailed,
)
from retail_assistant.logger import get_logger
from retail_assistant.models import CheckoutResult

logger = get_logger("checkout")

CHECKOUT_PATH = "/api/checkout"
MAX_BODY_IN_ERROR = 2000

CheckoutOutcome = Annotated[
    Union[CheckoutResult, ValidationFailed, UpstreamUnavailable, UpstreamError, TransportError, Timeout],
    Field(discriminator="kind"),
]


class CheckoutApiResponse(BaseModel):
    """Body returned by the Checkout API on success."""
    model_config = ConfigDict(extra="ignore")

    order_id: int = Field(validation_alias=AliasChoices("orderId", "OrderId", "order_id", "id"))
    status: str = Field(validation_alias=AliasChoices("status", "Status"))
    total: Decimal = Field(validation_alias=AliasChoices("total", "Total"))
    created_utc: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("createdUtc", "CreatedUtc", "created_utc", "createdAt")
    )


class CheckoutProxy:
    """
    Client for the Checkout API.

    Response mapping, checked in this order:
        400 -> ValidationFailed
        503 -> UpstreamUnavailable
        other non-2xx -> UpstreamError
        2xx with empty or unreadable body -> UpstreamError
        no response (connect, DNS, reset) -> TransportError
        deadline exceeded or cancelled before completion -> Timeout
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the proxy.

        Args:
            client: Pre-configured httpx client (base URL must be set)
            base_url: Checkout API base URL when no client is given
            timeout: Transport timeout in seconds when no client is given
        """
        settings = settings or get_settings()
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url or settings.checkout_api_base_url,
                timeout=timeout or settings.checkout_timeout
            )
        self.client = client

    async def checkout(
        self,
        customer_id: str,
        payment_token: str,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None
    ) -> CheckoutOutcome:
        """
        Submit a checkout and map the result.

        Args:
            customer_id: Customer whose cart is checked out
            payment_token: Opaque payment token
            timeout: Optional overall deadline in seconds for this call
            cancel: Optional signal; setting it abandons the in-flight request

        Returns:
            CheckoutResult on success, otherwise one of the typed failures.
            A call cancelled before completion (through `cancel` or by
            cancelling the calling task) maps to Timeout.
        """
        if cancel is not None and cancel.is_set():
            return Timeout(message="Checkout API request cancelled")

        payload = {"customerId": customer_id, "paymentToken": payment_token}

        try:
            request = self._post(payload, cancel)
            if timeout is not None:
                response = await asyncio.wait_for(request, timeout=timeout)
            else:
                response = await request
        except asyncio.CancelledError:
            logger.warning("Checkout API request cancelled for customer %s", customer_id)
            return Timeout(message="Checkout API request cancelled")
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.warning("Checkout API request timed out for customer %s: %s", customer_id, e)
            return Timeout(message="Checkout API request timed out")
        except httpx.TransportError as e:
            logger.error("Failed to communicate with Checkout API: %s", e)
            return TransportError(message=f"Failed to communicate with Checkout API: {e}")

        if response is None:
            logger.warning("Checkout API request cancelled for customer %s", customer_id)
            return Timeout(message="Checkout API request cancelled")

        return self._map_response(response, customer_id)

    async def _post(self, payload: dict, cancel: Optional[asyncio.Event]) -> Optional[httpx.Response]:
        """Send the checkout request; None when `cancel` fires first."""
        if cancel is None:
            return await self.client.post(CHECKOUT_PATH, json=payload)

        request = asyncio.ensure_future(self.client.post(CHECKOUT_PATH, json=payload))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()

        if request in done:
            return request.result()
        return None

    def _map_response(self, response: httpx.Response, customer_id: str) -> CheckoutOutcome:
        body = response.text

        if response.status_code == 400:
            logger.info("Checkout validation failed for customer %s: %s", customer_id, body[:MAX_BODY_IN_ERROR])
            return ValidationFailed(message="Checkout validation failed", details=body)

        if response.status_code == 503:
            logger.warning("Checkout service temporarily unavailable")
            return UpstreamUnavailable(message="Checkout service temporarily unavailable")

        if not response.is_success:
            logger.error("Checkout API returned HTTP %d", response.status_code)
            return UpstreamError(
                message=f"Checkout API returned HTTP {response.status_code}",
                status=response.status_code,
                body=body[:MAX_BODY_IN_ERROR]
            )

        if not body.strip():
            return UpstreamError(message="Empty response from Checkout API", status=response.status_code)

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("Checkout API response is not a JSON object")
            api_response = CheckoutApiResponse.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.error("Unreadable Checkout API response: %s", e)
            return UpstreamError(
                message="Unreadable response from Checkout API",
                status=response.status_code,
                body=body[:MAX_BODY_IN_ERROR]
            )

        result_fields = {
            "order_id": api_response.order_id,
            "status": api_response.status,
            "total": api_response.total,
            "customer_id": customer_id,
        }
        if api_response.created_utc is not None:
            result_fields["created_at"] = api_response.created_utc

        logger.info("Checkout created order %s for customer %s", api_response.order_id, customer_id)
        return CheckoutResult(**result_fields)

    async def aclose(self) -> None:
        """Close the underlying client if this proxy created it."""
        if self._owns_client:
            await self.client.aclose()
