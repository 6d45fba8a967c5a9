"""Domain models for canteen orders."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_CANCELLED = "cancelled"
ORDER_COMPLETED = "completed"

CANCELLABLE_STATUSES = frozenset({ORDER_PENDING, ORDER_CONFIRMED})

# Statuses an order may move to without a refund; cancelled and completed are final.
FORWARD_TRANSITIONS = {
    ORDER_PENDING: frozenset({ORDER_CONFIRMED, ORDER_COMPLETED}),
    ORDER_CONFIRMED: frozenset({ORDER_COMPLETED}),
}


@dataclass(frozen=True)
class LineItemRequest:
    """Requested menu item and quantity, before pricing."""

    menu_item_id: str
    quantity: int


@dataclass(frozen=True)
class PlacementRequest:
    """A parent's request to order items for a student on a service date."""

    idempotency_key: str
    parent_id: str
    student_id: str
    service_date: date
    line_items: list[LineItemRequest]


@dataclass(frozen=True)
class OrderLineItem:
    """Priced line item; ``unit_price`` is a snapshot taken at order time."""

    menu_item_id: str
    name: str
    quantity: int
    unit_price: int

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class OrderRecord:
    """Order row as persisted next to its wallet debit."""

    id: UUID
    parent_id: str
    student_id: str
    service_date: date
    line_items: list[OrderLineItem]
    total_cost: int
    status: str
    created_at: datetime
    idempotency_key: str


@dataclass(frozen=True)
class PlacementReceipt:
    """Result returned for a committed placement (and for its replays)."""

    order_id: UUID
    total_cost: int
    new_balance: int
    status: str = ORDER_CONFIRMED


@dataclass(frozen=True)
class CancellationReceipt:
    """Result of a committed cancellation."""

    order_id: UUID
    refunded: int
    new_balance: int
    status: str = ORDER_CANCELLED


@dataclass(frozen=True)
class WeeklyPlacementRequest:
    """Orders for several students across several service dates, paid at once.

    Every student gets one order per date in ``items_by_date``.
    """

    idempotency_key: str
    parent_id: str
    student_ids: list[str]
    items_by_date: dict[date, list[LineItemRequest]]


@dataclass(frozen=True)
class WeeklyPlacementReceipt:
    """Result of a committed weekly placement."""

    order_ids: list[UUID]
    total_cost: int
    new_balance: int
    status: str = ORDER_CONFIRMED


def total_cost(line_items: list[OrderLineItem]) -> int:
    """Sum of line subtotals in minor units."""
    return sum(item.subtotal for item in line_items)


def weekly_order_key(idempotency_key: str, student_id: str, service_date: date) -> str:
    """Key of one order inside a weekly placement."""
    return f"{idempotency_key}:{student_id}:{service_date.isoformat()}"
