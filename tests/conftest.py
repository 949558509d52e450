# tests/conftest.py
import os
import tempfile

# Keep test log files out of the working tree; must run before upvotes_api is imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="upvotes-logs-"))

import pytest

from fakes import FakeRedis, FakeStatusApi, InMemoryOrderRepository, RecordingSleep
from upvotes_worker.services.run_state import RunStateStore


@pytest.fixture
def events():
    """Shared timeline of API calls and sleeps."""
    return []


@pytest.fixture
def repository():
    return InMemoryOrderRepository()


@pytest.fixture
def api(events):
    return FakeStatusApi(events)


@pytest.fixture
def sleep(events):
    return RecordingSleep(events)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def run_state(fake_redis):
    return RunStateStore(redis=fake_redis, lock_ttl_seconds=60)
