"""
GlitchTip Error Monitoring Utilities

Helper functions for error tracking and context management.
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from upvotes_api.core.logger import setup_logger

logger = setup_logger(__name__)


def init_monitoring(dsn: Optional[str], environment: str, integrations: Optional[list] = None) -> bool:
    """
    Initialize GlitchTip (Sentry-compatible) error monitoring.

    Args:
        dsn: GlitchTip DSN; monitoring stays off when empty
        environment: Deployment environment name
        integrations: Extra sentry integrations (e.g. FastAPI)

    Returns:
        True if monitoring was initialized
    """
    if not dsn:
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=[
                *(integrations or []),
                LoggingIntegration(
                    level=None,  # Capture all log levels as breadcrumbs
                    event_level=logging.ERROR  # Send ERROR logs as events
                ),
            ],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.0,
            send_default_pii=False,
        )
        logger.info("GlitchTip error monitoring initialized")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize GlitchTip: {e}")
        return False


def set_run_context(
    trigger: str,
    next_run: Optional[str] = None,
    **extra_tags
) -> None:
    """
    Set reconciliation-run context for error tracking.

    Args:
        trigger: "scheduled" or "manual"
        next_run: Next scheduled run reported by the trigger
        **extra_tags: Additional tags to add
    """
    try:
        sentry_sdk.set_tag("reconciliation.trigger", trigger)
        for key, value in extra_tags.items():
            sentry_sdk.set_tag(key, value)

        context_data = {"trigger": trigger, "next_run": next_run}
        context_data.update(extra_tags)
        sentry_sdk.set_context("reconciliation", context_data)

    except Exception as e:
        logger.warning(f"Failed to set run context: {e}")


def capture_exception(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    level: str = "error"
) -> None:
    """
    Capture an exception and send to GlitchTip.

    Args:
        error: The exception to capture
        context: Additional context data
        level: Error level (error, warning, info)
    """
    try:
        if context:
            with sentry_sdk.push_scope() as scope:
                scope.set_context("custom", context)
                scope.level = level
                sentry_sdk.capture_exception(error)
        else:
            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception in GlitchTip: {e}")
