"""Abstract base repository for order storage."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from upvotes_api.models.order import OrderKind, OrderRecord, StatusUpdate


class OrderRepository(ABC):
    """Abstract repository for order storage.

    This allows easy swapping between storage backends
    (Supabase REST, direct PostgreSQL, etc.)
    """

    @abstractmethod
    async def fetch_candidates(
        self,
        kind: OrderKind,
        statuses: Sequence[str],
        limit: int,
    ) -> List[OrderRecord]:
        """Get orders that should be polled.

        Selects orders of the given kind whose external_order_id is set (and
        is not the UNKNOWN_EXTERNAL_ID placeholder) and whose status is one
        of statuses, newest first.

        Args:
            kind: Order kind (selects the table)
            statuses: Status values that make an order a candidate
            limit: Maximum number of rows to return

        Returns:
            Candidate orders ordered by created_at descending

        Raises:
            StoreError: If the store cannot be queried
        """
        pass

    @abstractmethod
    async def get_order(self, kind: OrderKind, order_id: int) -> Optional[OrderRecord]:
        """Get a single order by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def apply_status(
        self,
        kind: OrderKind,
        order_id: int,
        update: StatusUpdate,
    ) -> None:
        """Overwrite status, delivered count and last_status_check of an order.

        The delivered count is only written for kinds that track delivery.

        Raises:
            StoreError: If the row could not be updated
        """
        pass

    @abstractmethod
    async def touch_status_check(
        self,
        kind: OrderKind,
        order_id: int,
        checked_at: datetime,
    ) -> None:
        """Stamp last_status_check without changing anything else."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage backend is accessible.

        Returns:
            True if healthy, False otherwise
        """
        pass

    async def close(self) -> None:
        """Release connections held by the repository."""
        return None


def status_values(kind: OrderKind, update: StatusUpdate) -> dict:
    """Column values written for a successful poll."""
    values = {
        "status": update.status,
        "last_status_check": update.checked_at,
    }
    if kind.tracks_delivery:
        values["votes_delivered"] = update.votes_delivered
    return values
