"""
Run state for the reconciliation job, kept in Redis.

Holds the lease that stops two runs from overlapping, the timestamp of the
last successful run, and a short history for the dashboard.
"""

import json
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import redis.asyncio as aioredis

from upvotes_api.config.constants import (
    HISTORY_ERROR_SAMPLE_SIZE,
    REDIS_KEY_PREFIX,
    RUN_HISTORY_SIZE,
)
from upvotes_api.core.logger import setup_logger

logger = setup_logger(__name__)

# Redis keys for run state
REDIS_RUN_LOCK = f"{REDIS_KEY_PREFIX}:run_in_progress"
REDIS_LAST_RUN = f"{REDIS_KEY_PREFIX}:last_run_timestamp"
REDIS_RUN_HISTORY = f"{REDIS_KEY_PREFIX}:run_history"


@dataclass
class RunStatus:
    """Current run status for dashboard."""
    last_run_timestamp: Optional[float]
    last_run_time_formatted: Optional[str]
    next_scheduled_run: Optional[str]
    run_in_progress: bool
    run_history: List[dict]


class RunStateStore:
    """Redis-backed lease and history for reconciliation runs."""

    def __init__(
        self,
        redis: Optional[aioredis.Redis] = None,
        redis_host: str = "redis",
        redis_port: int = 6379,
        redis_db: int = 0,
        lock_ttl_seconds: int = 1800,
    ):
        self.redis_host = redis_host
        self.redis_port = redis_port
        self.redis_db = redis_db
        self.lock_ttl_seconds = lock_ttl_seconds
        self._redis = redis
        self._owns_connection = redis is None

    async def _get_redis(self) -> aioredis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = aioredis.Redis(
                host=self.redis_host,
                port=self.redis_port,
                db=self.redis_db,
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis is not None and self._owns_connection:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        """Check Redis is reachable."""
        try:
            redis = await self._get_redis()
            return bool(await redis.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def acquire_lock(self) -> Optional[str]:
        """
        Take the run lease.

        Returns:
            An owner token, or None if another run holds the lease
        """
        redis = await self._get_redis()
        token = f"{time.time()}:{uuid.uuid4().hex[:8]}"
        acquired = await redis.set(
            REDIS_RUN_LOCK,
            value=token,
            nx=True,
            ex=self.lock_ttl_seconds,
        )
        return token if acquired else None

    async def release_lock(self, token: str):
        """Release the lease if it is still ours (it may have expired and been retaken)."""
        redis = await self._get_redis()
        current = await redis.get(REDIS_RUN_LOCK)
        if current == token:
            await redis.delete(REDIS_RUN_LOCK)
        else:
            logger.warning("Run lease expired before release, leaving current holder alone")

    async def extend_lock(self, token: str) -> bool:
        """
        Push the lease expiry out by another lock_ttl_seconds.

        Called between batches so a long run keeps its lease. If the key
        already expired and nobody took it, it is taken again with the same
        token.

        Returns:
            False if another run now holds the lease
        """
        redis = await self._get_redis()
        current = await redis.get(REDIS_RUN_LOCK)
        if current == token:
            await redis.expire(REDIS_RUN_LOCK, self.lock_ttl_seconds)
            return True
        if current is None:
            logger.warning("Run lease expired mid-run, taking it again")
            return bool(await redis.set(REDIS_RUN_LOCK, value=token, nx=True, ex=self.lock_ttl_seconds))
        return False

    async def is_run_in_progress(self) -> bool:
        """Check if a run currently holds the lease."""
        redis = await self._get_redis()
        return await redis.exists(REDIS_RUN_LOCK) > 0

    async def record_run(self, entry: dict, success: bool):
        """Record a run to the history list (max RUN_HISTORY_SIZE entries)."""
        redis = await self._get_redis()

        entry = dict(entry)
        entry["success"] = success
        if "errorDetails" in entry:
            entry["errorDetails"] = entry["errorDetails"][:HISTORY_ERROR_SAMPLE_SIZE]

        await redis.lpush(REDIS_RUN_HISTORY, json.dumps(entry, default=str))
        await redis.ltrim(REDIS_RUN_HISTORY, 0, RUN_HISTORY_SIZE - 1)

        if success:
            await redis.set(REDIS_LAST_RUN, str(time.time()))

    async def get_status(self, next_scheduled: Optional[str] = None) -> RunStatus:
        """
        Returns current run state for dashboard.

        Args:
            next_scheduled: Next scheduled run time (from scheduler)
        """
        redis = await self._get_redis()

        last_run = await redis.get(REDIS_LAST_RUN)
        last_run_ts = float(last_run) if last_run else None

        run_in_progress = await self.is_run_in_progress()

        history_raw = await redis.lrange(REDIS_RUN_HISTORY, 0, RUN_HISTORY_SIZE - 1)
        run_history = []
        for entry in history_raw:
            try:
                run_history.append(json.loads(entry))
            except ValueError:
                logger.warning(f"Skipping unreadable history entry: {entry!r}")

        return RunStatus(
            last_run_timestamp=last_run_ts,
            last_run_time_formatted=_format_timestamp(last_run_ts),
            next_scheduled_run=next_scheduled,
            run_in_progress=run_in_progress,
            run_history=run_history,
        )


def _format_timestamp(timestamp: Optional[float]) -> Optional[str]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
