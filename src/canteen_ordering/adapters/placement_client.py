"""Async caller client for the order placement API."""

import logging
from dataclasses import dataclass

import httpx

from canteen_ordering.api.models import ErrorResponse, PlacementResponse
from canteen_ordering.domain.errors import (
    ConflictError,
    IdempotencyKeyReusedError,
    InsufficientBalanceError,
    InternalError,
    InvalidMenuSelectionError,
    InvalidOrderStateError,
    NotFoundError,
    OrderingError,
)
from canteen_ordering.domain.orders import PlacementReceipt, PlacementRequest

_logger = logging.getLogger(__name__)

_ERRORS_BY_KIND: dict[str, type[OrderingError]] = {
    error.error_kind: error
    for error in (
        InvalidMenuSelectionError,
        ConflictError,
        IdempotencyKeyReusedError,
        InternalError,
        NotFoundError,
        InvalidOrderStateError,
    )
}


@dataclass
class HttpxPlacementClient:
    """Places orders as a single remote call and resolves timeouts by key."""

    base_url: str
    api_token: str
    http_client: httpx.AsyncClient
    timeout: float = 10.0

    @classmethod
    def create(
        cls, base_url: str, api_token: str, timeout: float = 10.0
    ) -> "HttpxPlacementClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            api_token=api_token,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def place_order(self, request: PlacementRequest) -> PlacementReceipt:
        """Submit an order; after a timeout, look the key up before resending."""
        try:
            return await self._submit(request)
        except httpx.TimeoutException:
            _logger.warning(
                "Placement timed out, checking key=%s", request.idempotency_key
            )
        receipt = await self.find_receipt(request.idempotency_key)
        if receipt is not None:
            return receipt
        return await self._submit(request)

    async def find_receipt(self, idempotency_key: str) -> PlacementReceipt | None:
        """Return the receipt recorded for a key, if the order committed."""
        response = await self.http_client.get(
            f"{self.base_url}/orders/by-key/{idempotency_key}",
            headers=self._headers(),
            timeout=self.timeout,
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        _raise_for_error(response)
        return PlacementResponse.model_validate(response.json()).to_receipt()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _submit(self, request: PlacementRequest) -> PlacementReceipt:
        payload = {
            "idempotencyKey": request.idempotency_key,
            "parentId": request.parent_id,
            "studentId": request.student_id,
            "serviceDate": request.service_date.isoformat(),
            "lineItems": [
                {"menuItemId": line.menu_item_id, "quantity": line.quantity}
                for line in request.line_items
            ],
        }
        response = await self.http_client.post(
            f"{self.base_url}/orders",
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
        )
        _raise_for_error(response)
        return PlacementResponse.model_validate(response.json()).to_receipt()

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Token": self.api_token}


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        error = ErrorResponse.model_validate(response.json())
    except ValueError:
        response.raise_for_status()
        raise
    if error.error_kind == InsufficientBalanceError.error_kind:
        raise InsufficientBalanceError(error.detail, error.shortfall or 0)
    error_type = _ERRORS_BY_KIND.get(error.error_kind, InternalError)
    raise error_type(error.detail)
