# tests/test_run_once.py
import json

import pytest

from fakes import make_service
from upvotes_api.config.settings import Settings
from upvotes_api.core.errors import ConfigurationError
from upvotes_worker import run_once
from upvotes_worker.services.factory import create_run_state


@pytest.fixture
def no_redis(monkeypatch):
    monkeypatch.setattr(run_once, "create_run_state", lambda settings: None)


@pytest.mark.asyncio
async def test_run_prints_summary_and_succeeds(monkeypatch, no_redis, capsys, repository, api, sleep):
    repository.add(1)
    monkeypatch.setattr(
        run_once,
        "build_reconciliation_service",
        lambda settings, run_state=None: make_service(repository, api, sleep),
    )

    exit_code = await run_once.run("2024-06-01T16:00:00Z")

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["totalChecked"] == 1


@pytest.mark.asyncio
async def test_run_fails_on_bad_configuration(monkeypatch, no_redis, capsys):
    def broken(settings, run_state=None):
        raise ConfigurationError("Invalid configuration: BUYUPVOTES_API_KEY is not set")

    monkeypatch.setattr(run_once, "build_reconciliation_service", broken)

    exit_code = await run_once.run()

    assert exit_code == 1
    assert "BUYUPVOTES_API_KEY" in json.loads(capsys.readouterr().out)["error"]


def test_run_state_defaults_to_compose_redis():
    store = create_run_state(Settings.model_construct())

    assert store.redis_host == "redis"
    assert store.lock_ttl_seconds == 1800


def test_run_state_skipped_when_redis_disabled():
    assert create_run_state(Settings.model_construct(redis_enabled=False)) is None
