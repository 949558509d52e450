"""BuyUpvotes order API client."""

import json
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from upvotes_api.config.constants import REQUEST_TIMEOUT_SECONDS, UPVOTE_ORDERS
from upvotes_api.core.logger import setup_logger
from upvotes_api.models.order import (
    OrderKind,
    OrderStatusResponse,
    StatusCheckError,
    StatusCheckOk,
    StatusCheckResult,
)

logger = setup_logger(__name__)

DEFAULT_HOST_API = "https://api.buyupvotes.io"


class BuyUpvotesClient:
    """Async HTTP client for the BuyUpvotes order API."""

    def __init__(
        self,
        api_key: str,
        host_api: str = DEFAULT_HOST_API,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize API client with credentials."""
        self.host_api = host_api.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.host_api,
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "X-API-Key": api_key,
            },
        )

    async def check_order_status(
        self,
        order_number: str,
        kind: OrderKind = UPVOTE_ORDERS,
    ) -> StatusCheckResult:
        """
        Ask BuyUpvotes for the current status of one order.

        Failures are returned as StatusCheckError rather than raised, so a
        caller polling many orders can tally them and carry on.

        Args:
            order_number: External order id assigned by BuyUpvotes
            kind: Order kind, selects the status endpoint

        Returns:
            StatusCheckOk with status and delivered count, or StatusCheckError
        """
        try:
            response = await self.client.post(
                kind.status_path,
                json={"order_number": order_number},
            )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout checking {kind.name} order {order_number}: {e}")
            return StatusCheckError(order_number, reason="timeout", detail=str(e) or "request timed out")
        except httpx.HTTPError as e:
            logger.error(f"HTTP error checking {kind.name} order {order_number}: {e}")
            return StatusCheckError(order_number, reason="network", detail=str(e))

        body = _decode_body(response)

        if not response.is_success:
            logger.error(f"API error for {kind.name} order {order_number}: {body}")
            return StatusCheckError(
                order_number,
                reason="http_status",
                status_code=response.status_code,
                detail=_short(body),
            )

        try:
            parsed = OrderStatusResponse.model_validate(body)
        except ValidationError as e:
            logger.error(f"Malformed status response for {kind.name} order {order_number}: {body}")
            return StatusCheckError(
                order_number,
                reason="malformed_response",
                status_code=response.status_code,
                detail=f"{e.error_count()} validation error(s): {_short(body)}",
            )

        logger.debug(f"Status for {kind.name} order {order_number}: {parsed.status}")
        return StatusCheckOk(order_number, parsed.status, parsed.votes_delivered)

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()

    async def __aenter__(self) -> "BuyUpvotesClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _short(body: Any, limit: int = 300) -> str:
    text = body if isinstance(body, str) else json.dumps(body, default=str)
    return text if len(text) <= limit else text[:limit] + "..."
