#!/usr/bin/env python3
"""
Run a single order status check and print the result.

For hosts that schedule work with their own cron instead of the in-process
scheduler:

    python -m upvotes_worker.run_once [--next-run 2024-01-01T04:00:00Z]

Exits 0 when the run completed (even with per-order errors), 1 otherwise.

The run lease lives in Redis and REDIS_ENABLED defaults to true with
REDIS_HOST=redis (the docker-compose service name). Outside that network,
point REDIS_HOST at a reachable server or set REDIS_ENABLED=false, otherwise
every run fails on the Redis connection and exits 1.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are imported
load_dotenv(Path(__file__).parent.parent.parent / ".env")

from upvotes_api.config.settings import settings  # noqa: E402
from upvotes_worker.handlers.scheduled_status_check import handle_scheduled_status_check  # noqa: E402
from upvotes_worker.services.factory import build_reconciliation_service, create_run_state  # noqa: E402


async def run(next_run=None) -> int:
    run_state = create_run_state(settings)
    try:
        body = {"next_run": next_run} if next_run else None
        status_code, payload = await handle_scheduled_status_check(
            body,
            service_factory=lambda: build_reconciliation_service(settings, run_state=run_state),
        )
    finally:
        if run_state:
            await run_state.close()

    print(json.dumps(payload, indent=2))
    return 0 if status_code == 200 else 1


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run one order status reconciliation pass")
    parser.add_argument("--next-run", default=None, help="Next scheduled run (logged only)")
    args = parser.parse_args(argv)

    sys.exit(asyncio.run(run(args.next_run)))


if __name__ == "__main__":
    main()
