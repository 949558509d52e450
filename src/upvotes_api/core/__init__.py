"""Core module - Logging, error types, and error monitoring."""

from upvotes_api.core.errors import (
    ConfigurationError,
    LeaseLostError,
    OrderNotFoundError,
    ReconciliationError,
    RunInProgressError,
    StoreError,
)
from upvotes_api.core.logger import setup_logger

__all__ = [
    "setup_logger",
    "ReconciliationError",
    "ConfigurationError",
    "StoreError",
    "RunInProgressError",
    "LeaseLostError",
    "OrderNotFoundError",
]
