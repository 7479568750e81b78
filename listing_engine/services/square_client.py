"""
Square API client

Thin async wrapper over the Square Checkout (payment links) and Orders
endpoints used by the listing fee flow.
"""

from typing import Any, Optional

import httpx

from listing_engine.utils.config import SquareConfig
from listing_engine.utils.errors import SquareAPIError, SquareNotFoundError
from listing_engine.utils.logging import get_structured_logger, mask_email

logger = get_structured_logger(__name__)


class SquareClient:
    """Async client for the Square REST API."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        location_id: Optional[str] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token if access_token is not None else SquareConfig.SQUARE_ACCESS_TOKEN
        self.location_id = location_id if location_id is not None else SquareConfig.SQUARE_LOCATION_ID
        self.base_url = (base_url or SquareConfig.api_url()).rstrip("/")
        self.api_version = api_version or SquareConfig.SQUARE_API_VERSION
        self.timeout = timeout if timeout is not None else SquareConfig.SQUARE_HTTP_TIMEOUT_SECONDS
        self.transport = transport

        if not self.access_token:
            logger.warning("SQUARE_ACCESS_TOKEN not set; payment link creation will fail until configured")

    def _headers(self) -> dict[str, str]:
        return {
            "Square-Version": self.api_version,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict[str, Any]:
        """Send a request and return the decoded body, raising SquareAPIError on failure."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as http_client:
                response = await http_client.request(method, url, headers=self._headers(), json=json)
        except httpx.TimeoutException as e:
            raise SquareAPIError(f"Square request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            raise SquareAPIError(f"Square request failed: {method} {path}: {e}") from e

        if response.status_code == 404:
            raise SquareNotFoundError(f"Square object not found: {path}", status_code=404)

        if response.status_code >= 400:
            detail = _error_detail(response)
            raise SquareAPIError(
                f"Square returned {response.status_code} for {method} {path}: {detail}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SquareAPIError(f"Square returned a non-JSON body for {method} {path}") from e

    async def create_payment_link(
        self,
        amount_cents: int,
        redirect_url: str,
        idempotency_key: str,
        name: str = "Listing Fee",
        buyer_email: Optional[str] = None,
        currency: str = "USD",
    ) -> dict[str, Any]:
        """
        Create a quick-pay checkout link.

        Returns {"id", "url", "order_id"}.
        """
        payload: dict[str, Any] = {
            "idempotency_key": idempotency_key,
            "quick_pay": {
                "name": name,
                "price_money": {"amount": amount_cents, "currency": currency},
                "location_id": self.location_id,
            },
            "checkout_options": {
                "redirect_url": redirect_url,
                "ask_for_shipping_address": False,
            },
        }
        if buyer_email:
            payload["pre_populated_data"] = {"buyer_email": buyer_email}

        logger.info(
            "Creating Square payment link",
            amount_cents=amount_cents,
            idempotency_key=idempotency_key,
            buyer_email=mask_email(buyer_email)
        )

        body = await self._request("POST", "/online-checkout/payment-links", json=payload)
        payment_link = body.get("payment_link") or {}
        link_id = payment_link.get("id")
        link_url = payment_link.get("url") or payment_link.get("long_url")
        if not link_id or not link_url:
            raise SquareAPIError("Square response missing payment link id or url")

        return {
            "id": link_id,
            "url": link_url,
            "order_id": payment_link.get("order_id"),
        }

    async def retrieve_payment_link(self, link_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/online-checkout/payment-links/{link_id}")
        payment_link = body.get("payment_link")
        if not payment_link:
            raise SquareAPIError(f"Square response missing payment_link for {link_id}")
        return payment_link

    async def retrieve_order(self, order_id: str) -> dict[str, Any]:
        body = await self._request("GET", f"/orders/{order_id}")
        order = body.get("order")
        if not order:
            raise SquareAPIError(f"Square response missing order for {order_id}")
        return order

    async def retrieve_payment_status(self, link_id: str, order_id: Optional[str] = None) -> dict[str, Any]:
        """
        Provider view of a payment link.

        Returns {"payment_link": {...}, "order": {...} | None}. The order is
        looked up from the link when ``order_id`` is not known.
        """
        payment_link = await self.retrieve_payment_link(link_id)
        order_id = order_id or payment_link.get("order_id")
        order = await self.retrieve_order(order_id) if order_id else None
        return {"payment_link": payment_link, "order": order}


def _error_detail(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors") or []
    except ValueError:
        return response.text[:200]
    if errors:
        first = errors[0]
        return f"{first.get('category', 'UNKNOWN')}/{first.get('code', 'UNKNOWN')}: {first.get('detail', '')}"
    return response.text[:200]
