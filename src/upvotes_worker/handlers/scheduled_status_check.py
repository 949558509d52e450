"""Scheduled status check handler.

Entry point shared by the in-process scheduler, the HTTP trigger route and
the command line: builds a service for the run, runs it, and turns the
outcome into a (status_code, payload) pair.
"""

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple

from upvotes_api.core.errors import RunInProgressError
from upvotes_api.core.logger import setup_logger
from upvotes_api.core.monitoring import capture_exception, set_run_context
from upvotes_worker.services.factory import build_reconciliation_service
from upvotes_worker.services.reconciliation_service import ReconciliationService

logger = setup_logger(__name__)

ServiceFactory = Callable[[], ReconciliationService]


def parse_next_run(body: Any) -> Optional[str]:
    """
    Extract next_run from a trigger body.

    Scheduled triggers send {"next_run": "..."}; manual invocations may send
    nothing or something that is not JSON at all.
    """
    if body is None:
        return None

    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")

    if isinstance(body, str):
        if not body.strip():
            return None
        try:
            body = json.loads(body)
        except ValueError:
            return None

    if isinstance(body, dict):
        next_run = body.get("next_run")
        return str(next_run) if next_run else None

    return None


def _error_payload(message: str) -> dict:
    return {
        "error": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def handle_scheduled_status_check(
    body: Any = None,
    service_factory: Optional[ServiceFactory] = None,
) -> Tuple[int, dict]:
    """
    Run one reconciliation pass for a trigger.

    Args:
        body: Raw trigger body, optionally carrying next_run
        service_factory: Builds the service for this run (validates config)

    Returns:
        (200, summary) on completion, even if every order errored
        (409, error) if another run holds the lease
        (500, error) on a fatal failure (configuration, store query, ...)
    """
    next_run = parse_next_run(body)
    if next_run:
        logger.info(f"Scheduled status check triggered. Next run at: {next_run}")
    else:
        logger.info("Status check triggered manually or without next_run data")

    set_run_context("scheduled" if next_run else "manual", next_run=next_run)

    if service_factory is None:
        service_factory = build_reconciliation_service

    service = None
    try:
        service = service_factory()
        summary = await service.run(next_run=next_run)
        return 200, summary.to_dict()

    except RunInProgressError as e:
        return 409, _error_payload(str(e))

    except Exception as e:
        logger.error(f"Scheduled status check failed: {e}", exc_info=True)
        capture_exception(e, context={"next_run": next_run})
        return 500, _error_payload(str(e))

    finally:
        if service is not None:
            try:
                await service.close()
            except Exception as e:
                logger.warning(f"Error closing reconciliation service: {e}")
