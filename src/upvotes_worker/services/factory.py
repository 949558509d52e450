"""Builds a ReconciliationService from application settings."""

from typing import Optional

from upvotes_api.api.client import BuyUpvotesClient
from upvotes_api.config.settings import Settings, settings as default_settings
from upvotes_api.core.logger import setup_logger
from upvotes_worker.repositories import (
    OrderRepository,
    PostgresOrderRepository,
    SupabaseOrderRepository,
)
from upvotes_worker.services.reconciliation_config import ReconciliationConfig
from upvotes_worker.services.reconciliation_service import ReconciliationService
from upvotes_worker.services.run_state import RunStateStore

logger = setup_logger(__name__)


def create_repository(config: ReconciliationConfig) -> OrderRepository:
    """Create the order repository selected by STORE_BACKEND."""
    if config.store_backend == "postgres":
        return PostgresOrderRepository.from_url(config.store_url)

    return SupabaseOrderRepository(
        url=config.store_url,
        service_key=config.store_credential,
        timeout=config.request_timeout,
    )


def create_run_state(settings: Settings) -> Optional[RunStateStore]:
    """Create the Redis run-state store, or None when Redis is disabled."""
    if not settings.redis_enabled:
        return None

    return RunStateStore(
        redis_host=settings.redis_host,
        redis_port=settings.redis_port,
        redis_db=settings.redis_db,
        lock_ttl_seconds=settings.run_lock_ttl_seconds,
    )


def build_reconciliation_service(
    settings: Settings = default_settings,
    run_state: Optional[RunStateStore] = None,
) -> ReconciliationService:
    """
    Validate configuration and open the clients for one run.

    Raises:
        ConfigurationError: if required settings are missing or invalid
    """
    config = ReconciliationConfig.from_settings(settings)

    api_client = BuyUpvotesClient(
        api_key=config.api_credential,
        host_api=config.api_host,
        timeout=config.request_timeout,
    )
    repository = create_repository(config)

    logger.debug(
        f"Reconciliation service built (store={config.store_backend}, "
        f"kinds={[kind.name for kind in config.kinds]})"
    )
    return ReconciliationService(
        config=config,
        api_client=api_client,
        repository=repository,
        run_state=run_state,
    )
