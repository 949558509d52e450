"""
Reconciliation Service for upvote order statuses.

Polls the BuyUpvotes status API for orders that are still in flight and
copies the reported status and delivered count back into the order store.
Also provides the single-order refresh used from the dashboard.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional

from upvotes_api.api.client import BuyUpvotesClient
from upvotes_api.config.constants import (
    ACTIVE_STATUSES,
    BULK_REFRESH_BATCH_SIZE,
    BULK_REFRESH_DELAY_SECONDS,
    RESULTS_SAMPLE_SIZE,
    UNKNOWN_EXTERNAL_ID,
)
from upvotes_api.core.errors import (
    LeaseLostError,
    OrderNotFoundError,
    RunInProgressError,
    StoreError,
)
from upvotes_api.core.logger import bind_run_id, reset_run_id, setup_logger
from upvotes_api.models.order import OrderKind, OrderRecord, StatusCheckError, StatusUpdate
from upvotes_worker.repositories.base import OrderRepository
from upvotes_worker.services.reconciliation_config import ReconciliationConfig
from upvotes_worker.services.run_state import RunStateStore

logger = setup_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StatusTransition:
    """Before/after status of one successfully polled order."""
    kind: str
    order_id: int
    old_status: str
    new_status: str
    votes_delivered: Optional[int]

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "kind": self.kind,
            "oldStatus": self.old_status,
            "newStatus": self.new_status,
            "votesDelivered": self.votes_delivered,
        }


@dataclass
class RunSummary:
    """Result of one reconciliation run."""
    run_id: Optional[str] = None
    total_checked: int = 0
    updated: int = 0
    errors: int = 0
    skipped: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    next_run: Optional[str] = None
    transitions: List[StatusTransition] = field(default_factory=list)
    error_details: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Payload returned to the scheduler/caller."""
        return {
            "totalChecked": self.total_checked,
            "updated": self.updated,
            "errors": self.errors,
            "skipped": self.skipped,
            "timestamp": (self.completed_at or utc_now()).isoformat(),
            "results": [t.to_dict() for t in self.transitions[:RESULTS_SAMPLE_SIZE]],
        }

    def to_history_entry(self) -> dict:
        """Entry stored in the run history."""
        entry = self.to_dict()
        entry["runId"] = self.run_id
        entry["startedAt"] = self.started_at.isoformat() if self.started_at else None
        entry["nextRun"] = self.next_run
        entry["errorDetails"] = list(self.error_details)
        return entry


class ReconciliationService:
    """
    Reconciles order statuses with BuyUpvotes.

    One run:
    - Fetch candidates (external id set, active status), newest first, capped
    - Skip orders checked within the cooldown window
    - Poll the rest one at a time in batches, pausing between batches
    - Overwrite status / delivered count on success, tally errors otherwise
    """

    def __init__(
        self,
        config: ReconciliationConfig,
        api_client: BuyUpvotesClient,
        repository: OrderRepository,
        run_state: Optional[RunStateStore] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.api_client = api_client
        self.repository = repository
        self.run_state = run_state
        self._sleep = sleep
        self._clock = clock
        self._lease_token: Optional[str] = None

    async def close(self):
        """Close the API client and store connections opened for this run."""
        await self.api_client.close()
        await self.repository.close()

    async def run(self, next_run: Optional[str] = None) -> RunSummary:
        """
        Perform one reconciliation pass.

        Steps:
        1. Take the run lease (when a run-state store is configured)
        2. Reconcile each configured order kind
        3. Record the run in history
        4. Release the lease

        Args:
            next_run: Next scheduled run reported by the trigger (informational)

        Raises:
            RunInProgressError: another run holds the lease
            StoreError: candidate query failed
            LeaseLostError: another run took the lease while this one was running
        """
        token = None
        if self.run_state is not None:
            token = await self.run_state.acquire_lock()
            if token is None:
                logger.warning("Reconciliation already in progress, skipping")
                raise RunInProgressError("Reconciliation already in progress")
            self._lease_token = token

        summary = RunSummary(run_id=uuid.uuid4().hex[:12], started_at=self._clock(), next_run=next_run)
        log_token = bind_run_id(summary.run_id)
        try:
            for kind in self.config.kinds:
                await self._reconcile_kind(kind, summary)
            summary.completed_at = self._clock()

            logger.info(
                f"Status check completed: {summary.total_checked} candidates, "
                f"{summary.updated} updated, {summary.errors} errors, "
                f"{summary.skipped} skipped (cooldown)"
            )
            await self._record(summary.to_history_entry(), success=True)
            return summary

        except Exception as e:
            logger.error(f"Status check failed: {e}", exc_info=True)
            await self._record(
                {
                    "runId": summary.run_id,
                    "error": str(e),
                    "timestamp": self._clock().isoformat(),
                    "nextRun": next_run,
                },
                success=False,
            )
            raise

        finally:
            reset_run_id(log_token)
            if token is not None:
                self._lease_token = None
                await self.run_state.release_lock(token)

    async def _reconcile_kind(self, kind: OrderKind, summary: RunSummary):
        """Fetch, filter and poll the candidates of one order kind."""
        await self._extend_lease()
        candidates = await self.repository.fetch_candidates(
            kind, ACTIVE_STATUSES, self.config.page_limit
        )
        summary.total_checked += len(candidates)

        if not candidates:
            logger.info(f"No {kind.name} orders to check")
            return

        now = self._clock()
        due = [order for order in candidates if self._is_due(order, now)]
        summary.skipped += len(candidates) - len(due)

        logger.info(
            f"Checking status for {len(due)} {kind.name} orders "
            f"({len(candidates) - len(due)} checked recently)"
        )

        batch_size = self.config.batch_size
        for i in range(0, len(due), batch_size):
            batch = due[i:i + batch_size]
            logger.info(f"Processing batch {i // batch_size + 1}: {len(batch)} orders")

            for order in batch:
                await self._poll_order(kind, order, summary)

            # No pause after the last batch
            if i + batch_size < len(due):
                await self._extend_lease()
                await self._sleep(self.config.inter_batch_delay)

    async def _extend_lease(self):
        """Renew the run lease; stop the run if another run has taken it."""
        if self._lease_token is None:
            return
        if not await self.run_state.extend_lock(self._lease_token):
            raise LeaseLostError("Run lease taken over by another run, stopping")

    def _is_due(self, order: OrderRecord, now: datetime) -> bool:
        """Orders never checked are always due; others once the cooldown has passed."""
        if order.last_status_check is None:
            return True
        return now - order.last_status_check >= self.config.cooldown_window

    async def _poll_order(self, kind: OrderKind, order: OrderRecord, summary: RunSummary):
        """Poll one order and write back the answer; failures only count as errors."""
        try:
            logger.info(
                f"Checking {kind.name} order {order.id} with external ID: {order.external_order_id}",
                extra={"kind": kind.name, "order_id": order.id, "external_order_id": order.external_order_id},
            )
            result = await self.api_client.check_order_status(order.external_order_id, kind)

            if isinstance(result, StatusCheckError):
                self._record_error(summary, f"API error for {kind.name} order {order.id}: {result.describe()}")
                return

            votes_delivered = result.votes_delivered or 0
            await self.repository.apply_status(
                kind,
                order.id,
                StatusUpdate(
                    status=result.status,
                    votes_delivered=votes_delivered,
                    checked_at=self._clock(),
                ),
            )

            logger.info(f"Updated {kind.name} order {order.id}: {order.status} -> {result.status}")
            summary.updated += 1
            summary.transitions.append(
                StatusTransition(
                    kind=kind.name,
                    order_id=order.id,
                    old_status=order.status,
                    new_status=result.status,
                    votes_delivered=result.votes_delivered if kind.tracks_delivery else None,
                )
            )

        except Exception as e:
            self._record_error(summary, f"Error processing {kind.name} order {order.id}: {e}")

    def _record_error(self, summary: RunSummary, message: str):
        logger.error(message)
        summary.errors += 1
        summary.error_details.append(message)

    async def _record(self, entry: dict, success: bool):
        if self.run_state is None:
            return
        try:
            await self.run_state.record_run(entry, success=success)
        except Exception as e:
            logger.warning(f"Failed to record run history: {e}")

    async def refresh_order(self, kind: OrderKind, order_id: int) -> dict:
        """
        Refresh one order on demand (dashboard "refresh" button).

        Logic:
        1. Load the order; unknown id raises OrderNotFoundError
        2. Orders without a usable external id cannot be checked
        3. Refuse if checked within manual_refresh_cooldown
        4. Poll the API; on failure stamp last_status_check to slow retries
        5. On success write status and delivered count

        Returns:
            {"updated": bool, "message": str, ...status fields when updated}
        """
        order = await self.repository.get_order(kind, order_id)
        if order is None:
            raise OrderNotFoundError(f"{kind.name} order {order_id} not found")

        if not order.external_order_id or order.external_order_id == UNKNOWN_EXTERNAL_ID:
            return {"updated": False, "message": "Order has no tracking ID yet"}

        now = self._clock()
        if order.last_status_check is not None:
            elapsed = (now - order.last_status_check).total_seconds()
            if elapsed < self.config.manual_refresh_cooldown.total_seconds():
                return {"updated": False, "message": f"Status checked {elapsed:.0f}s ago"}

        try:
            result = await self.api_client.check_order_status(order.external_order_id, kind)
            if isinstance(result, StatusCheckError):
                await self._stamp_failed_check(kind, order_id)
                return {"updated": False, "message": f"API error: {result.describe()}"}

            votes_delivered = result.votes_delivered or 0
            try:
                await self.repository.apply_status(
                    kind,
                    order_id,
                    StatusUpdate(status=result.status, votes_delivered=votes_delivered, checked_at=self._clock()),
                )
            except StoreError as e:
                logger.error(f"Refresh of {kind.name} order {order_id} could not be saved: {e}")
                return {"updated": False, "message": f"Database update failed: {e}"}

        except Exception as e:
            logger.error(f"Refresh of {kind.name} order {order_id} failed: {e}", exc_info=True)
            await self._stamp_failed_check(kind, order_id)
            return {"updated": False, "message": f"Error: {e}"}

        logger.info(f"Refreshed {kind.name} order {order_id}: {order.status} -> {result.status}")

        response = {
            "updated": True,
            "status": result.status,
            "message": f"Status updated to {result.status}",
        }
        if kind.tracks_delivery:
            response["votes_delivered"] = votes_delivered
        return response

    async def _stamp_failed_check(self, kind: OrderKind, order_id: int):
        try:
            await self.repository.touch_status_check(kind, order_id, self._clock())
        except StoreError as e:
            logger.warning(f"Could not stamp last_status_check on {kind.name} order {order_id}: {e}")

    async def refresh_orders(self, kind: OrderKind, order_ids: Iterable[int]) -> dict:
        """
        Refresh several orders (dashboard bulk refresh).

        Orders are refreshed BULK_REFRESH_BATCH_SIZE at a time concurrently,
        pausing BULK_REFRESH_DELAY_SECONDS between groups. Anything that does
        not end in an update (cooldown, missing tracking id, unknown order,
        API or store failure) counts as failed.

        Returns:
            {"updated": int, "failed": int}
        """
        order_ids = list(order_ids)
        updated = 0
        failed = 0

        for i in range(0, len(order_ids), BULK_REFRESH_BATCH_SIZE):
            batch = order_ids[i:i + BULK_REFRESH_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.refresh_order(kind, order_id) for order_id in batch),
                return_exceptions=True,
            )

            for order_id, result in zip(batch, results):
                if isinstance(result, dict) and result.get("updated"):
                    updated += 1
                    continue
                failed += 1
                if isinstance(result, Exception):
                    logger.warning(f"Bulk refresh of {kind.name} order {order_id} failed: {result}")

            if i + BULK_REFRESH_BATCH_SIZE < len(order_ids):
                await self._sleep(BULK_REFRESH_DELAY_SECONDS)

        logger.info(f"Bulk refresh of {len(order_ids)} {kind.name} orders: {updated} updated, {failed} failed")
        return {"updated": updated, "failed": failed}
