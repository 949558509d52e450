# tests/test_supabase_repository.py
import json
from datetime import datetime, timezone

import httpx
import pytest

from upvotes_api.config.constants import ACTIVE_STATUSES, COMMENT_ORDERS, UPVOTE_ORDERS
from upvotes_api.core.errors import StoreError
from upvotes_api.models.order import StatusUpdate
from upvotes_worker.repositories.supabase_repository import SupabaseOrderRepository

CHECKED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class RecordingPostgrest:
    def __init__(self, rows=None, status_code=200):
        self.rows = rows if rows is not None else []
        self.status_code = status_code
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(self.status_code, json=self.rows)
        return httpx.Response(204 if self.status_code == 200 else self.status_code)


def make_repository(backend):
    return SupabaseOrderRepository(
        "https://project.supabase.test/",
        "service-key",
        transport=httpx.MockTransport(backend),
    )


@pytest.mark.asyncio
async def test_candidate_query_filters():
    backend = RecordingPostgrest(rows=[
        {
            "id": 7,
            "external_order_id": "BU-7",
            "status": "In progress",
            "last_status_check": "2024-06-01T08:00:00+00:00",
            "created_at": "2024-05-31T10:00:00+00:00",
        }
    ])
    repository = make_repository(backend)

    records = await repository.fetch_candidates(UPVOTE_ORDERS, ACTIVE_STATUSES, 100)
    await repository.close()

    request = backend.requests[0]
    assert request.url.path == "/rest/v1/upvote_orders"
    assert request.url.params.get_list("external_order_id") == ["not.is.null", "neq.unknown"]
    assert request.url.params["status"] == 'in.("In progress","Pending")'
    assert request.url.params["order"] == "created_at.desc"
    assert request.url.params["limit"] == "100"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"

    assert len(records) == 1
    assert records[0].id == 7
    assert records[0].last_status_check == datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_apply_status_patches_one_row():
    backend = RecordingPostgrest()
    repository = make_repository(backend)

    await repository.apply_status(
        UPVOTE_ORDERS, 7, StatusUpdate(status="Completed", votes_delivered=42, checked_at=CHECKED_AT)
    )

    request = backend.requests[0]
    assert request.method == "PATCH"
    assert request.url.params["id"] == "eq.7"
    assert request.headers["Prefer"] == "return=minimal"
    assert json.loads(request.content) == {
        "status": "Completed",
        "votes_delivered": 42,
        "last_status_check": "2024-06-01T12:00:00+00:00",
    }


@pytest.mark.asyncio
async def test_comment_update_leaves_delivery_alone():
    backend = RecordingPostgrest()
    repository = make_repository(backend)

    await repository.apply_status(
        COMMENT_ORDERS, 3, StatusUpdate(status="Completed", votes_delivered=0, checked_at=CHECKED_AT)
    )

    request = backend.requests[0]
    assert request.url.path == "/rest/v1/comment_orders"
    assert "votes_delivered" not in json.loads(request.content)


@pytest.mark.asyncio
async def test_touch_status_check_only_sends_timestamp():
    backend = RecordingPostgrest()
    repository = make_repository(backend)

    await repository.touch_status_check(UPVOTE_ORDERS, 9, CHECKED_AT)

    assert json.loads(backend.requests[0].content) == {
        "last_status_check": "2024-06-01T12:00:00+00:00"
    }


@pytest.mark.asyncio
async def test_get_order_missing_returns_none():
    backend = RecordingPostgrest(rows=[])
    repository = make_repository(backend)

    assert await repository.get_order(UPVOTE_ORDERS, 404) is None
    request = backend.requests[0]
    assert request.url.params["id"] == "eq.404"
    assert "votes_delivered" in request.url.params["select"]


@pytest.mark.asyncio
async def test_query_error_raises_store_error():
    repository = make_repository(RecordingPostgrest(status_code=401))

    with pytest.raises(StoreError):
        await repository.fetch_candidates(UPVOTE_ORDERS, ACTIVE_STATUSES, 100)


@pytest.mark.asyncio
async def test_failed_patch_raises_store_error():
    repository = make_repository(RecordingPostgrest(status_code=500))

    with pytest.raises(StoreError):
        await repository.touch_status_check(UPVOTE_ORDERS, 1, CHECKED_AT)


@pytest.mark.asyncio
async def test_unreachable_store_raises_store_error():
    def handler(request):
        raise httpx.ConnectError("no route to host", request=request)

    repository = make_repository(handler)

    with pytest.raises(StoreError):
        await repository.fetch_candidates(UPVOTE_ORDERS, ACTIVE_STATUSES, 100)
    assert await repository.health_check() is False


@pytest.mark.asyncio
async def test_unreadable_body_raises_store_error():
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    repository = make_repository(handler)

    with pytest.raises(StoreError):
        await repository.get_order(UPVOTE_ORDERS, 1)
