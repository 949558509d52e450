"""
Centralized application constants.

This file acts as the single point of truth for business logic constants
shared by the API client and the status worker.
"""

from upvotes_api.models.order import OrderKind

# ==============================================================================
# ORDER STATUSES
# ==============================================================================

# Statuses that may still change on the BuyUpvotes side (polling candidates)
ACTIVE_STATUSES = ["In progress", "Pending"]

# Statuses after which no further change is expected
TERMINAL_STATUSES = ["Completed", "Cancelled", "Failed"]

# Placeholder stored when submission got no order number back; never polled
UNKNOWN_EXTERNAL_ID = "unknown"

# ==============================================================================
# ORDER KINDS
# ==============================================================================

UPVOTE_ORDERS = OrderKind(
    name="upvote",
    table="upvote_orders",
    status_path="/upvote_order/status/",
    tracks_delivery=True,
)

COMMENT_ORDERS = OrderKind(
    name="comment",
    table="comment_orders",
    status_path="/comment_order/status/",
    tracks_delivery=False,
)

ORDER_KINDS = {kind.name: kind for kind in (UPVOTE_ORDERS, COMMENT_ORDERS)}

# ==============================================================================
# RECONCILIATION DEFAULTS
# ==============================================================================

# Orders processed per batch before pausing
BATCH_SIZE = 5

# Pause between batches (seconds)
INTER_BATCH_DELAY_SECONDS = 2.0

# Orders checked more recently than this are skipped by the scheduled job
COOLDOWN_HOURS = 2.0

# Maximum candidates fetched per run (no pagination beyond this)
PAGE_LIMIT = 100

# Timeout for each external status call (in seconds)
REQUEST_TIMEOUT_SECONDS = 10.0

# Minimum gap between manual refreshes of the same order (in seconds)
MANUAL_REFRESH_COOLDOWN_SECONDS = 30.0

# Bulk dashboard refresh: orders refreshed concurrently, pause between groups
BULK_REFRESH_BATCH_SIZE = 5
BULK_REFRESH_DELAY_SECONDS = 1.0

# Most orders accepted by one bulk refresh request
BULK_REFRESH_MAX_ORDERS = 100

# Every 4 hours, on the hour (UTC)
SCHEDULE_CRON = "0 */4 * * *"

# ==============================================================================
# RUN REPORTING
# ==============================================================================

# Status transitions included in a run summary
RESULTS_SAMPLE_SIZE = 10

# Runs kept in the Redis history list
RUN_HISTORY_SIZE = 10

# Error messages kept per history entry
HISTORY_ERROR_SAMPLE_SIZE = 5

# Redis key prefix for run state
REDIS_KEY_PREFIX = "upvotes:reconciliation"
