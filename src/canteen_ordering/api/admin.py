"""Admin endpoints for wallet top-ups and order fulfilment."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from canteen_ordering.api.models import (
    CreditPayload,
    ErrorResponse,
    OrderResponse,
    OrderStatusPayload,
    WalletResponse,
)

if TYPE_CHECKING:
    from canteen_ordering.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.post(
    "/wallets/{parent_id}/credits",
    dependencies=[Depends(require_admin)],
    responses={code: {"model": ErrorResponse} for code in (404, 500, 503)},
)
def credit_wallet(
    parent_id: str, payload: CreditPayload, request: Request
) -> WalletResponse:
    """Credit an approved top-up; repeating a reference is a no-op."""
    container: AppContainer = request.app.state.container
    wallet = container.wallet_service.credit(
        parent_id,
        payload.amount,
        payload.reference,
        payload.description,
    )
    return WalletResponse.from_snapshot(wallet)


@router.post(
    "/orders/{order_id}/status",
    dependencies=[Depends(require_admin)],
    responses={code: {"model": ErrorResponse} for code in (404, 409, 500, 503)},
)
def update_order_status(
    order_id: UUID, payload: OrderStatusPayload, request: Request
) -> OrderResponse:
    """Move an order forward, e.g. to completed once it has been served."""
    container: AppContainer = request.app.state.container
    order = container.placement_service.update_order_status(order_id, payload.status)
    return OrderResponse.from_record(order)
