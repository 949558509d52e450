"""Explicit configuration consumed by the reconciliation job."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Tuple

from upvotes_api.config import constants
from upvotes_api.config.settings import Settings
from upvotes_api.core.errors import ConfigurationError
from upvotes_api.models.order import OrderKind

STORE_BACKENDS = ("supabase", "postgres")


@dataclass(frozen=True)
class ReconciliationConfig:
    """Credentials and pacing for one reconciliation run.

    Built once from Settings and validated there; the job never looks at the
    environment itself.
    """

    store_url: str
    api_credential: str
    store_credential: Optional[str] = None
    store_backend: str = "supabase"
    api_host: str = "https://api.buyupvotes.io"
    kinds: Tuple[OrderKind, ...] = (constants.UPVOTE_ORDERS,)
    batch_size: int = constants.BATCH_SIZE
    inter_batch_delay: float = constants.INTER_BATCH_DELAY_SECONDS
    cooldown_window: timedelta = field(
        default_factory=lambda: timedelta(hours=constants.COOLDOWN_HOURS)
    )
    page_limit: int = constants.PAGE_LIMIT
    request_timeout: float = constants.REQUEST_TIMEOUT_SECONDS
    manual_refresh_cooldown: timedelta = field(
        default_factory=lambda: timedelta(seconds=constants.MANUAL_REFRESH_COOLDOWN_SECONDS)
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconciliationConfig":
        """
        Validate settings and build the job configuration.

        Raises:
            ConfigurationError: listing every missing variable or bad value
        """
        problems: List[str] = []
        backend = (settings.store_backend or "").strip().lower()

        if backend == "postgres":
            store_url = settings.database_url
            if not store_url:
                problems.append("DATABASE_URL is not set")
        elif backend == "supabase":
            store_url = settings.supabase_url
            if not store_url:
                problems.append("SUPABASE_URL is not set")
            if not settings.supabase_service_role_key:
                problems.append("SUPABASE_SERVICE_ROLE_KEY is not set")
        else:
            store_url = None
            problems.append(
                f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got {settings.store_backend!r}"
            )

        if not settings.buyupvotes_api_key:
            problems.append("BUYUPVOTES_API_KEY is not set")

        kinds = []
        for name in settings.reconcile_kinds.split(","):
            name = name.strip().lower()
            if not name:
                continue
            if name not in constants.ORDER_KINDS:
                problems.append(f"Unknown order kind in RECONCILE_KINDS: {name!r}")
            else:
                kinds.append(constants.ORDER_KINDS[name])
        if not kinds and not any("RECONCILE_KINDS" in p for p in problems):
            problems.append("RECONCILE_KINDS is empty")

        if settings.batch_size < 1:
            problems.append("BATCH_SIZE must be at least 1")
        if settings.page_limit < 1:
            problems.append("PAGE_LIMIT must be at least 1")
        if settings.inter_batch_delay_seconds < 0:
            problems.append("INTER_BATCH_DELAY_SECONDS must not be negative")
        if settings.cooldown_hours < 0:
            problems.append("COOLDOWN_HOURS must not be negative")
        if settings.request_timeout_seconds <= 0:
            problems.append("REQUEST_TIMEOUT_SECONDS must be positive")

        if problems:
            raise ConfigurationError("Invalid configuration: " + "; ".join(problems))

        return cls(
            store_url=store_url,
            api_credential=settings.buyupvotes_api_key,
            store_credential=settings.supabase_service_role_key,
            store_backend=backend,
            api_host=settings.buyupvotes_api_host,
            kinds=tuple(dict.fromkeys(kinds)),
            batch_size=settings.batch_size,
            inter_batch_delay=settings.inter_batch_delay_seconds,
            cooldown_window=timedelta(hours=settings.cooldown_hours),
            page_limit=settings.page_limit,
            request_timeout=settings.request_timeout_seconds,
            manual_refresh_cooldown=timedelta(seconds=settings.manual_refresh_cooldown_seconds),
        )
