"""PostgreSQL repository implementation (SQLAlchemy asyncio)."""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, text
from sqlalchemy import update as sql_update
from sqlalchemy.exc import SQLAlchemyError

from upvotes_api.config.constants import UNKNOWN_EXTERNAL_ID
from upvotes_api.core.errors import StoreError
from upvotes_api.core.logger import setup_logger
from upvotes_api.models.order import OrderKind, OrderRecord, StatusUpdate
from upvotes_worker.db import get_engine, get_session_factory, model_for_table
from upvotes_worker.repositories.base import OrderRepository, status_values

logger = setup_logger(__name__)


class PostgresOrderRepository(OrderRepository):
    """Order storage talking to the database directly.

    Works with any SQLAlchemy async driver (asyncpg in production,
    aiosqlite in tests).
    """

    def __init__(self, session_factory, engine=None):
        """Initialize PostgreSQL repository.

        Args:
            session_factory: SQLAlchemy async session factory
            engine: Engine to dispose on close (when owned by the repository)
        """
        self.session_factory = session_factory
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "PostgresOrderRepository":
        """Create a repository that owns its engine."""
        engine = get_engine(database_url)
        return cls(get_session_factory(engine), engine=engine)

    async def fetch_candidates(
        self,
        kind: OrderKind,
        statuses: Sequence[str],
        limit: int,
    ) -> List[OrderRecord]:
        """Select candidate orders, newest first."""
        model = model_for_table(kind.table)
        query = (
            select(model)
            .where(model.external_order_id.is_not(None))
            .where(model.external_order_id != UNKNOWN_EXTERNAL_ID)
            .where(model.status.in_(list(statuses)))
            .order_by(model.created_at.desc())
            .limit(limit)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Error querying {kind.table}: {e}") from e

        return [OrderRecord.model_validate(row) for row in rows]

    async def get_order(self, kind: OrderKind, order_id: int) -> Optional[OrderRecord]:
        """Get one order by primary key."""
        model = model_for_table(kind.table)
        try:
            async with self.session_factory() as session:
                row = await session.get(model, order_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Error reading {kind.table} id={order_id}: {e}") from e

        return OrderRecord.model_validate(row) if row is not None else None

    async def apply_status(
        self,
        kind: OrderKind,
        order_id: int,
        update: StatusUpdate,
    ) -> None:
        """UPDATE status columns of one order."""
        await self._update(kind, order_id, status_values(kind, update))

    async def touch_status_check(
        self,
        kind: OrderKind,
        order_id: int,
        checked_at: datetime,
    ) -> None:
        """UPDATE only last_status_check of one order."""
        await self._update(kind, order_id, {"last_status_check": checked_at})

    async def health_check(self) -> bool:
        """Check database connection."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def close(self) -> None:
        """Dispose the engine if this repository created it."""
        if self.engine is not None:
            await self.engine.dispose()

    async def _update(self, kind: OrderKind, order_id: int, values: dict) -> None:
        model = model_for_table(kind.table)
        stmt = sql_update(model).where(model.id == order_id).values(**values)
        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Error updating {kind.table} id={order_id}: {e}") from e
