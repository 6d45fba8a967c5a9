"""Typed failures surfaced to API callers."""


class OrderingError(Exception):
    """Base error carrying a stable ``error_kind`` and an HTTP status."""

    error_kind = "Internal"
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> dict[str, object]:
        """Return the wire representation of the failure."""
        return {"errorKind": self.error_kind, "detail": self.detail}


class InvalidMenuSelectionError(OrderingError):
    """Menu item unknown or unavailable, bad quantity, cap exceeded or bad date."""

    error_kind = "InvalidMenuSelection"
    status_code = 422


class InsufficientBalanceError(OrderingError):
    """Wallet balance does not cover the order."""

    error_kind = "InsufficientBalance"
    status_code = 402

    def __init__(self, detail: str, shortfall: int) -> None:
        super().__init__(detail)
        self.shortfall = shortfall

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["shortfall"] = self.shortfall
        return payload


class ConflictError(OrderingError):
    """Concurrent modification persisted through every retry."""

    error_kind = "Conflict"
    status_code = 503


class InternalError(OrderingError):
    """Unexpected store or infrastructure failure."""

    error_kind = "Internal"
    status_code = 500


class NotFoundError(OrderingError):
    """Wallet or order does not exist for the caller."""

    error_kind = "NotFound"
    status_code = 404


class InvalidOrderStateError(OrderingError):
    """Order cannot move to the requested status."""

    error_kind = "InvalidOrderState"
    status_code = 409


class IdempotencyKeyReusedError(OrderingError):
    """Idempotency key already belongs to another parent's placement."""

    error_kind = "IdempotencyKeyReused"
    status_code = 409
