"""Tests for the httpx placement client."""

import asyncio
import json
from uuid import uuid4

import httpx
import pytest

from canteen_ordering.adapters.placement_client import HttpxPlacementClient
from canteen_ordering.api.app import create_app
from canteen_ordering.domain.errors import (
    ConflictError,
    IdempotencyKeyReusedError,
    InsufficientBalanceError,
    InternalError,
    InvalidMenuSelectionError,
)
from canteen_ordering.domain.orders import LineItemRequest, PlacementRequest
from tests.conftest import PARENT_ID, STUDENT_ID, TUESDAY

ORDER_ID = uuid4()
RECEIPT = {
    "orderId": str(ORDER_ID),
    "totalCost": 7500,
    "newBalance": 2500,
    "status": "confirmed",
}


def _request() -> PlacementRequest:
    return PlacementRequest(
        idempotency_key="key-1",
        parent_id=PARENT_ID,
        student_id=STUDENT_ID,
        service_date=TUESDAY,
        line_items=[LineItemRequest("adobo", 1)],
    )


def _client(handler) -> HttpxPlacementClient:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxPlacementClient(
        base_url="https://canteen.test",
        api_token="api-token",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_place_order_sends_single_request() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json=RECEIPT)

    client = _client(handler)
    receipt = asyncio.run(client.place_order(_request()))

    assert receipt.order_id == ORDER_ID
    assert receipt.new_balance == 2500
    [sent] = requests
    assert sent.url.path == "/orders"
    assert sent.headers["X-Api-Token"] == "api-token"
    body = json.loads(sent.content)
    assert body["idempotencyKey"] == "key-1"
    assert body["serviceDate"] == "2026-10-20"
    assert body["lineItems"] == [{"menuItemId": "adobo", "quantity": 1}]


def test_timeout_requeries_by_key_instead_of_resubmitting() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.method == "POST":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json=RECEIPT)

    client = _client(handler)
    receipt = asyncio.run(client.place_order(_request()))

    assert receipt.order_id == ORDER_ID
    assert paths == ["/orders", "/orders/by-key/key-1"]


def test_timeout_without_commit_resubmits_same_key() -> None:
    posts: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(404, json={"errorKind": "NotFound", "detail": "x"})
        posts.append(json.loads(request.content))
        if len(posts) == 1:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(201, json=RECEIPT)

    client = _client(handler)
    receipt = asyncio.run(client.place_order(_request()))

    assert receipt.total_cost == 7500
    assert [post["idempotencyKey"] for post in posts] == ["key-1", "key-1"]


@pytest.mark.parametrize(
    ("status_code", "payload", "error_type"),
    [
        (
            402,
            {"errorKind": "InsufficientBalance", "detail": "short", "shortfall": 5},
            InsufficientBalanceError,
        ),
        (422, {"errorKind": "InvalidMenuSelection", "detail": "bad"}, InvalidMenuSelectionError),
        (503, {"errorKind": "Conflict", "detail": "busy"}, ConflictError),
        (
            409,
            {"errorKind": "IdempotencyKeyReused", "detail": "taken"},
            IdempotencyKeyReusedError,
        ),
        (500, {"errorKind": "Mystery", "detail": "?"}, InternalError),
    ],
)
def test_error_payloads_become_typed_errors(status_code, payload, error_type) -> None:  # type: ignore[no-untyped-def]
    client = _client(lambda _request: httpx.Response(status_code, json=payload))

    with pytest.raises(error_type) as error:
        asyncio.run(client.place_order(_request()))

    assert error.value.detail == payload["detail"]
    if error_type is InsufficientBalanceError:
        assert error.value.shortfall == 5


def test_non_json_error_raises_http_error() -> None:
    client = _client(lambda _request: httpx.Response(502, text="bad gateway"))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.place_order(_request()))


def test_find_receipt_missing_and_close() -> None:
    client = _client(
        lambda _request: httpx.Response(
            404, json={"errorKind": "NotFound", "detail": "none"}
        )
    )

    assert asyncio.run(client.find_receipt("key-1")) is None
    asyncio.run(client.close())


def test_create_strips_trailing_slash() -> None:
    client = HttpxPlacementClient.create("https://canteen.test/", "api-token")

    assert client.base_url == "https://canteen.test"
    asyncio.run(client.close())


def test_malformed_quantity_surfaces_as_invalid_selection(container) -> None:
    client = HttpxPlacementClient(
        base_url="http://canteen.test",
        api_token="api-token",
        http_client=httpx.AsyncClient(
            transport=httpx.ASGITransport(app=create_app(container))
        ),
    )
    request = PlacementRequest(
        idempotency_key="key-1",
        parent_id=PARENT_ID,
        student_id=STUDENT_ID,
        service_date=TUESDAY,
        line_items=[LineItemRequest("adobo", 1.5)],  # type: ignore[arg-type]
    )

    with pytest.raises(InvalidMenuSelectionError, match="quantity"):
        asyncio.run(client.place_order(request))

    assert container.placement_service.store.orders == {}
