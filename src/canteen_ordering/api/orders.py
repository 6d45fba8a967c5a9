"""Order and wallet endpoints called through the API gateway."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from canteen_ordering.api.models import (
    CancellationResponse,
    CancelOrderPayload,
    ErrorResponse,
    OrderResponse,
    PlacementResponse,
    PlaceOrderPayload,
    WalletResponse,
    WalletTransactionResponse,
    WeeklyOrderPayload,
    WeeklyPlacementResponse,
)
from canteen_ordering.domain.errors import NotFoundError

if TYPE_CHECKING:
    from canteen_ordering.containers import AppContainer

router = APIRouter(tags=["orders"])

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code: {"model": ErrorResponse} for code in (402, 404, 409, 422, 500, 503)
}


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_api_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure the caller presents the gateway capability token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.post(
    "/orders",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def place_order(payload: PlaceOrderPayload, request: Request) -> PlacementResponse:
    """Place an order paid from the parent's wallet."""
    container: AppContainer = request.app.state.container
    receipt = container.placement_service.place_order(payload.to_domain())
    return PlacementResponse.from_receipt(receipt)


@router.get(
    "/orders/by-key/{idempotency_key}",
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def order_by_key(idempotency_key: str, request: Request) -> PlacementResponse:
    """Return the receipt of a placement by its idempotency key."""
    container: AppContainer = request.app.state.container
    receipt = container.placement_service.find_receipt(idempotency_key)
    if receipt is None:
        raise NotFoundError(f"No order for idempotency key {idempotency_key}")
    return PlacementResponse.from_receipt(receipt)


@router.post(
    "/orders/weekly",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def place_weekly_order(
    payload: WeeklyOrderPayload, request: Request
) -> WeeklyPlacementResponse:
    """Place a week of orders for several students with one wallet debit."""
    container: AppContainer = request.app.state.container
    receipt = container.placement_service.place_weekly_order(payload.to_domain())
    return WeeklyPlacementResponse.from_receipt(receipt)


@router.get(
    "/orders/weekly/by-key/{idempotency_key}",
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def weekly_order_by_key(
    idempotency_key: str, request: Request
) -> WeeklyPlacementResponse:
    container: AppContainer = request.app.state.container
    receipt = container.placement_service.find_weekly_receipt(idempotency_key)
    if receipt is None:
        raise NotFoundError(f"No weekly order for idempotency key {idempotency_key}")
    return WeeklyPlacementResponse.from_receipt(receipt)


@router.get(
    "/orders/{order_id}",
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def order_detail(order_id: UUID, request: Request) -> OrderResponse:
    """Return a stored order."""
    container: AppContainer = request.app.state.container
    order = container.placement_service.get_order(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return OrderResponse.from_record(order)


@router.post(
    "/orders/{order_id}/cancel",
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def cancel_order(
    order_id: UUID, payload: CancelOrderPayload, request: Request
) -> CancellationResponse:
    """Cancel an order and refund it to the wallet."""
    container: AppContainer = request.app.state.container
    receipt = container.placement_service.cancel_order(payload.parent_id, order_id)
    return CancellationResponse.from_receipt(receipt)


@router.get(
    "/wallets/{parent_id}",
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def wallet_detail(parent_id: str, request: Request) -> WalletResponse:
    """Return the wallet balance."""
    container: AppContainer = request.app.state.container
    return WalletResponse.from_snapshot(container.wallet_service.get_wallet(parent_id))


@router.get(
    "/wallets/{parent_id}/transactions",
    dependencies=[Depends(require_api_token)],
    responses=_ERROR_RESPONSES,
)
def wallet_transactions(
    parent_id: str, request: Request, limit: int = 20
) -> dict[str, list[WalletTransactionResponse]]:
    """Return recent wallet ledger entries."""
    container: AppContainer = request.app.state.container
    entries = container.wallet_service.list_transactions(parent_id, limit)
    return {
        "transactions": [
            WalletTransactionResponse.from_entry(entry) for entry in entries
        ]
    }
