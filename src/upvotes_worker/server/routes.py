"""Status worker API routes."""

from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from upvotes_api.config.constants import BULK_REFRESH_MAX_ORDERS, ORDER_KINDS
from upvotes_api.core.errors import ConfigurationError, OrderNotFoundError, StoreError
from upvotes_api.core.logger import setup_logger
from upvotes_worker.handlers.scheduled_status_check import (
    ServiceFactory,
    handle_scheduled_status_check,
)
from upvotes_worker.server.auth import verify_api_key
from upvotes_worker.services.factory import build_reconciliation_service
from upvotes_worker.services.reconciliation_scheduler import ReconciliationScheduler
from upvotes_worker.services.run_state import RunStateStore

logger = setup_logger(__name__)
router = APIRouter()

# Global instances (initialized in app.py on startup)
run_state: Optional[RunStateStore] = None
reconciliation_scheduler: Optional[ReconciliationScheduler] = None
service_factory: Optional[ServiceFactory] = None


def set_run_state(store: Optional[RunStateStore]):
    """Set the global run-state store instance."""
    global run_state
    run_state = store


def set_reconciliation_scheduler(scheduler: Optional[ReconciliationScheduler]):
    """Set the global reconciliation scheduler instance."""
    global reconciliation_scheduler
    reconciliation_scheduler = scheduler


def set_service_factory(factory: Optional[ServiceFactory]):
    """Set the factory that builds a ReconciliationService per run."""
    global service_factory
    service_factory = factory


def get_service_factory() -> ServiceFactory:
    """Factory for this process; defaults to one built from settings with the shared run state."""
    if service_factory is not None:
        return service_factory
    return lambda: build_reconciliation_service(run_state=run_state)


@router.post("/scheduled-status-check", dependencies=[Depends(verify_api_key)])
async def scheduled_status_check(request: Request) -> JSONResponse:
    """Run one reconciliation pass.

    Optional JSON body: {"next_run": "<ISO timestamp>"} (logged only).

    Returns:
        200 with {totalChecked, updated, errors, skipped, timestamp, results}
        409 with {error, timestamp} if a run is already in progress
        500 with {error, timestamp} on a fatal failure
    """
    body = await request.body()
    status_code, payload = await handle_scheduled_status_check(
        body, service_factory=get_service_factory()
    )
    return JSONResponse(status_code=status_code, content=payload)


@router.post("/api/orders/{kind}/{order_id}/refresh", dependencies=[Depends(verify_api_key)])
async def refresh_order(kind: str, order_id: int) -> JSONResponse:
    """Refresh the status of a single order from BuyUpvotes.

    Args:
        kind: Order kind ("upvote" or "comment")
        order_id: Internal order id

    Returns:
        {"updated": bool, "message": str, "status"?: str, "votes_delivered"?: int}
    """
    order_kind = ORDER_KINDS.get(kind)
    if order_kind is None:
        return JSONResponse(status_code=404, content={"error": f"Unknown order kind: {kind}"})

    service = None
    try:
        service = get_service_factory()()
        result = await service.refresh_order(order_kind, order_id)
        return JSONResponse(status_code=200, content=result)

    except OrderNotFoundError as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except (ConfigurationError, StoreError) as e:
        logger.error(f"Order refresh failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    finally:
        if service is not None:
            await service.close()


class BulkRefreshRequest(BaseModel):
    """Body of the bulk refresh endpoint."""

    order_ids: List[int] = Field(..., min_length=1, max_length=BULK_REFRESH_MAX_ORDERS)


@router.post("/api/orders/{kind}/refresh", dependencies=[Depends(verify_api_key)])
async def refresh_orders(kind: str, body: BulkRefreshRequest) -> JSONResponse:
    """Refresh several orders of one kind.

    Returns:
        {"updated": int, "failed": int}
    """
    order_kind = ORDER_KINDS.get(kind)
    if order_kind is None:
        return JSONResponse(status_code=404, content={"error": f"Unknown order kind: {kind}"})

    service = None
    try:
        service = get_service_factory()()
        result = await service.refresh_orders(order_kind, body.order_ids)
        return JSONResponse(status_code=200, content=result)

    except ConfigurationError as e:
        logger.error(f"Bulk order refresh failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    finally:
        if service is not None:
            await service.close()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        {
            "status": "healthy|degraded",
            "service": "upvotes-status-worker",
            "scheduler": "running|stopped|disabled",
            "redis": "ok|error|disabled"
        }
    """
    if reconciliation_scheduler is None:
        scheduler_state = "disabled"
    else:
        scheduler_state = "running" if reconciliation_scheduler.is_running else "stopped"

    if run_state is None:
        redis_state = "disabled"
    else:
        redis_state = "ok" if await run_state.ping() else "error"

    healthy = scheduler_state != "stopped" and redis_state != "error"
    return {
        "status": "healthy" if healthy else "degraded",
        "service": "upvotes-status-worker",
        "scheduler": scheduler_state,
        "redis": redis_state,
    }


@router.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "service": "Upvote Order Status Worker",
        "description": "Reconciles order statuses with the BuyUpvotes API",
        "endpoints": {
            "health": "/health",
            "scheduled_status_check": "/scheduled-status-check",
            "order_refresh": "/api/orders/{kind}/{order_id}/refresh",
            "bulk_order_refresh": "/api/orders/{kind}/refresh",
            "reconciliation_status": "/api/reconciliation/status",
            "reconciliation_history": "/api/reconciliation/history"
        }
    }


# ==============================================================================
# RECONCILIATION DASHBOARD ENDPOINTS
# ==============================================================================

@router.get("/api/reconciliation/status", dependencies=[Depends(verify_api_key)])
async def get_reconciliation_status() -> dict:
    """Get current reconciliation status for dashboard.

    Returns:
        - last_run_timestamp
        - next_scheduled_run
        - run_in_progress
        - run_history (last 10 runs)
    """
    next_scheduled = None
    if reconciliation_scheduler:
        next_scheduled = reconciliation_scheduler.get_next_scheduled_run()

    if not run_state:
        return {
            "success": False,
            "error": "Run state store not initialized (REDIS_ENABLED=false)",
            "next_scheduled_run": next_scheduled,
        }

    try:
        status = await run_state.get_status(next_scheduled)
        return {
            "success": True,
            "status": asdict(status)
        }

    except Exception as e:
        logger.error(f"Error getting reconciliation status: {e}", exc_info=True)
        return {
            "success": False,
            "error": str(e)
        }


@router.get("/api/reconciliation/history", dependencies=[Depends(verify_api_key)])
async def get_run_history(
    limit: int = Query(10, ge=1, le=10, description="Number of history entries")
) -> dict:
    """Get run history.

    Args:
        limit: Maximum number of history entries to return

    Returns:
        List of recent run summaries (most recent first)
    """
    if not run_state:
        return {
            "success": False,
            "error": "Run state store not initialized (REDIS_ENABLED=false)"
        }

    try:
        status = await run_state.get_status()
        return {
            "success": True,
            "history": status.run_history[:limit]
        }

    except Exception as e:
        logger.error(f"Error getting run history: {e}", exc_info=True)
        return {
            "success": False,
            "error": str(e)
        }
