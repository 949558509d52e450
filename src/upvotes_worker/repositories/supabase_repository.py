"""Supabase (PostgREST) repository implementation."""

from datetime import datetime
from typing import List, Optional, Sequence

import httpx
from pydantic import ValidationError

from upvotes_api.config.constants import UNKNOWN_EXTERNAL_ID
from upvotes_api.core.errors import StoreError
from upvotes_api.core.logger import setup_logger
from upvotes_api.models.order import OrderKind, OrderRecord, StatusUpdate
from upvotes_worker.repositories.base import OrderRepository, status_values

logger = setup_logger(__name__)

CANDIDATE_COLUMNS = "id,external_order_id,status,last_status_check,created_at"


class SupabaseOrderRepository(OrderRepository):
    """Order storage backed by Supabase's REST interface.

    Uses the service-role key, so row level security does not apply.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Supabase repository.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            service_key: Service role key
            timeout: Timeout for each REST call in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            },
        )

    async def fetch_candidates(
        self,
        kind: OrderKind,
        statuses: Sequence[str],
        limit: int,
    ) -> List[OrderRecord]:
        """Query candidate orders through PostgREST filters."""
        params = [
            ("select", CANDIDATE_COLUMNS),
            ("external_order_id", "not.is.null"),
            ("external_order_id", f"neq.{UNKNOWN_EXTERNAL_ID}"),
            ("status", f"in.({_in_list(statuses)})"),
            ("order", "created_at.desc"),
            ("limit", str(limit)),
        ]
        rows = await self._get_rows(kind, params)
        return [self._to_record(kind, row) for row in rows]

    async def get_order(self, kind: OrderKind, order_id: int) -> Optional[OrderRecord]:
        """Fetch one order by id."""
        columns = CANDIDATE_COLUMNS + (",votes_delivered" if kind.tracks_delivery else "")
        params = {
            "select": columns,
            "id": f"eq.{order_id}",
            "limit": "1",
        }
        rows = await self._get_rows(kind, params)
        return self._to_record(kind, rows[0]) if rows else None

    async def apply_status(
        self,
        kind: OrderKind,
        order_id: int,
        update: StatusUpdate,
    ) -> None:
        """PATCH status columns of one order."""
        await self._patch(kind, order_id, status_values(kind, update))

    async def touch_status_check(
        self,
        kind: OrderKind,
        order_id: int,
        checked_at: datetime,
    ) -> None:
        """PATCH only last_status_check of one order."""
        await self._patch(kind, order_id, {"last_status_check": checked_at})

    async def health_check(self) -> bool:
        """Check that the REST endpoint answers with our credentials."""
        try:
            response = await self.client.get(
                "/upvote_orders", params={"select": "id", "limit": "1"}
            )
            return response.is_success
        except httpx.HTTPError as e:
            logger.error(f"Supabase health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()

    async def _get_rows(self, kind: OrderKind, params) -> list:
        try:
            response = await self.client.get(f"/{kind.table}", params=params)
        except httpx.HTTPError as e:
            raise StoreError(f"Error querying {kind.table}: {e}") from e

        if response.is_error:
            logger.error(f"Error querying {kind.table}: {response.status_code} {response.text}")
            raise StoreError(f"Error querying {kind.table}: HTTP {response.status_code}")

        try:
            rows = response.json()
        except ValueError as e:
            raise StoreError(f"Unreadable response querying {kind.table}: {e}") from e
        if not isinstance(rows, list):
            raise StoreError(f"Unexpected response querying {kind.table}: {rows!r}")
        return rows

    async def _patch(self, kind: OrderKind, order_id: int, values: dict) -> None:
        payload = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in values.items()
        }
        try:
            response = await self.client.patch(
                f"/{kind.table}",
                params={"id": f"eq.{order_id}"},
                json=payload,
                headers={"Prefer": "return=minimal"},
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Error updating {kind.table} id={order_id}: {e}") from e

        if response.is_error:
            raise StoreError(
                f"Error updating {kind.table} id={order_id}: "
                f"HTTP {response.status_code} {response.text}"
            )

    @staticmethod
    def _to_record(kind: OrderKind, row: dict) -> OrderRecord:
        try:
            return OrderRecord.model_validate(row)
        except ValidationError as e:
            raise StoreError(f"Malformed {kind.table} row {row!r}: {e}") from e


def _in_list(values: Sequence[str]) -> str:
    # PostgREST needs double quotes around values containing spaces or commas
    return ",".join('"{}"'.format(value.replace('"', '\\"')) for value in values)
