# tests/test_api_client.py
import json

import httpx
import pytest

from upvotes_api.api.client import BuyUpvotesClient
from upvotes_api.config.constants import COMMENT_ORDERS
from upvotes_api.models.order import StatusCheckError, StatusCheckOk


def make_client(handler):
    return BuyUpvotesClient(
        api_key="secret",
        host_api="https://api.buyupvotes.test/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_posts_order_number_with_api_key():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["key"] = request.headers["X-API-Key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "In progress", "votes_delivered": 12})

    async with make_client(handler) as client:
        result = await client.check_order_status("BU-77")

    assert seen == {
        "method": "POST",
        "url": "https://api.buyupvotes.test/upvote_order/status/",
        "key": "secret",
        "body": {"order_number": "BU-77"},
    }
    assert result == StatusCheckOk("BU-77", "In progress", 12)
    assert result.ok is True


@pytest.mark.asyncio
async def test_comment_kind_uses_comment_endpoint():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={"status": "Completed"})

    async with make_client(handler) as client:
        result = await client.check_order_status("C-1", COMMENT_ORDERS)

    assert paths == ["/comment_order/status/"]
    assert result.votes_delivered is None


@pytest.mark.asyncio
async def test_non_success_status_is_reported():
    def handler(request):
        return httpx.Response(404, json={"message": "Order not found"})

    async with make_client(handler) as client:
        result = await client.check_order_status("missing")

    assert isinstance(result, StatusCheckError)
    assert result.ok is False
    assert result.reason == "http_status"
    assert result.status_code == 404
    assert "Order not found" in result.describe()


@pytest.mark.asyncio
async def test_timeout_is_reported():
    def handler(request):
        raise httpx.ConnectTimeout("too slow", request=request)

    async with make_client(handler) as client:
        result = await client.check_order_status("slow")

    assert result.reason == "timeout"
    assert result.status_code is None


@pytest.mark.asyncio
async def test_connection_failure_is_reported():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        result = await client.check_order_status("down")

    assert result.reason == "network"
    assert "connection refused" in result.detail


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"votes_delivered": 3}),
        httpx.Response(200, json={"status": ""}),
        httpx.Response(200, json={"status": "Completed", "votes_delivered": -1}),
        httpx.Response(200, json=["Completed"]),
        httpx.Response(200, text="<html>gateway</html>"),
    ],
)
async def test_malformed_success_payload_is_reported(response):
    async with make_client(lambda request: response) as client:
        result = await client.check_order_status("weird")

    assert result.reason == "malformed_response"
    assert result.status_code == 200


@pytest.mark.asyncio
async def test_extra_fields_are_tolerated():
    def handler(request):
        return httpx.Response(
            200,
            json={"status": "Completed", "votes_delivered": 100, "start_count": 4},
        )

    async with make_client(handler) as client:
        result = await client.check_order_status("BU-1")

    assert result == StatusCheckOk("BU-1", "Completed", 100)
