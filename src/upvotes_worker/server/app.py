"""Status worker FastAPI application."""

from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration

from upvotes_api.config.settings import settings
from upvotes_api.core.logger import setup_logger
from upvotes_api.core.monitoring import init_monitoring
from upvotes_worker.handlers.scheduled_status_check import handle_scheduled_status_check
from upvotes_worker.server import routes
from upvotes_worker.services.factory import create_run_state
from upvotes_worker.services.reconciliation_scheduler import ReconciliationScheduler

logger = setup_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Upvote Order Status Worker",
        description="Reconciles upvote order statuses with the BuyUpvotes API",
        version="1.0.0"
    )

    # Initialize GlitchTip error monitoring
    init_monitoring(
        settings.glitchtip_dsn,
        settings.environment,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )

    @app.on_event("startup")
    async def startup():
        """Initialize run state and scheduler on startup.

        Steps:
        1. Initialize the Redis run-state store (lease + history)
        2. Start the cron scheduler for the status check
        """
        try:
            logger.info("=" * 60)
            logger.info("Starting Upvote Order Status Worker...")
            logger.info("=" * 60)

            run_state = create_run_state(settings)
            routes.set_run_state(run_state)
            if run_state:
                logger.info(f"✓ Run state store ready ({settings.redis_host}:{settings.redis_port}/{settings.redis_db})")
            else:
                logger.info("Redis disabled, runs rely on the scheduler for non-overlap")

            if settings.scheduler_enabled:
                scheduler = ReconciliationScheduler(
                    run_job=lambda body: handle_scheduled_status_check(
                        body, service_factory=routes.get_service_factory()
                    ),
                    cron=settings.schedule_cron,
                )
                routes.set_reconciliation_scheduler(scheduler)
                await scheduler.start(run_on_startup=settings.run_on_startup)
                logger.info(f"✓ Scheduler started, next run at {scheduler.get_next_scheduled_run()}")
            else:
                logger.info("Scheduler disabled, status checks run only when triggered")

            logger.info("=" * 60)
            logger.info("Upvote Order Status Worker started successfully!")
            logger.info(f"Store backend: {settings.store_backend}")
            logger.info(f"Order kinds: {settings.reconcile_kinds}")
            logger.info("=" * 60)

        except Exception as e:
            logger.error(f"Failed to start status worker: {e}", exc_info=True)
            raise

    @app.on_event("shutdown")
    async def shutdown():
        """Graceful shutdown: stop scheduler and close Redis."""
        logger.info("=" * 60)
        logger.info("Shutting down Upvote Order Status Worker...")
        logger.info("=" * 60)

        if routes.reconciliation_scheduler:
            await routes.reconciliation_scheduler.stop()
            routes.set_reconciliation_scheduler(None)
            logger.info("✓ Scheduler stopped")

        if routes.run_state:
            await routes.run_state.close()
            routes.set_run_state(None)
            logger.info("✓ Redis connection closed")

        logger.info("Shutdown completed")

    # Include routes
    app.include_router(routes.router)

    return app


# Create app instance
app = create_app()
