"""Pydantic models for the ordering API payloads."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from canteen_ordering.domain.orders import (
    CancellationReceipt,
    LineItemRequest,
    OrderRecord,
    PlacementReceipt,
    PlacementRequest,
    WeeklyPlacementReceipt,
    WeeklyPlacementRequest,
)
from canteen_ordering.domain.wallets import WalletSnapshot, WalletTransaction


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LineItemPayload(_CamelModel):
    """Requested menu item."""

    menu_item_id: str = Field(alias="menuItemId", min_length=1)
    quantity: int = Field(gt=0)


class PlaceOrderPayload(_CamelModel):
    """Order placement request."""

    idempotency_key: str = Field(alias="idempotencyKey", min_length=1, max_length=128)
    parent_id: str = Field(alias="parentId", min_length=1)
    student_id: str = Field(alias="studentId", min_length=1)
    service_date: date = Field(alias="serviceDate")
    line_items: list[LineItemPayload] = Field(alias="lineItems")

    def to_domain(self) -> PlacementRequest:
        return PlacementRequest(
            idempotency_key=self.idempotency_key,
            parent_id=self.parent_id,
            student_id=self.student_id,
            service_date=self.service_date,
            line_items=[
                LineItemRequest(menu_item_id=line.menu_item_id, quantity=line.quantity)
                for line in self.line_items
            ],
        )


class PlacementResponse(_CamelModel):
    """Committed placement."""

    order_id: UUID = Field(alias="orderId")
    total_cost: int = Field(alias="totalCost")
    new_balance: int = Field(alias="newBalance")
    status: str

    @classmethod
    def from_receipt(cls, receipt: PlacementReceipt) -> "PlacementResponse":
        return cls(
            order_id=receipt.order_id,
            total_cost=receipt.total_cost,
            new_balance=receipt.new_balance,
            status=receipt.status,
        )

    def to_receipt(self) -> PlacementReceipt:
        return PlacementReceipt(
            order_id=self.order_id,
            total_cost=self.total_cost,
            new_balance=self.new_balance,
            status=self.status,
        )


class WeeklyOrderPayload(_CamelModel):
    """Batch of orders for several students over several service dates."""

    idempotency_key: str = Field(alias="idempotencyKey", min_length=1, max_length=128)
    parent_id: str = Field(alias="parentId", min_length=1)
    student_ids: list[str] = Field(alias="studentIds", min_length=1)
    items_by_date: dict[date, list[LineItemPayload]] = Field(
        alias="itemsByDate", min_length=1
    )

    def to_domain(self) -> WeeklyPlacementRequest:
        return WeeklyPlacementRequest(
            idempotency_key=self.idempotency_key,
            parent_id=self.parent_id,
            student_ids=list(self.student_ids),
            items_by_date={
                service_date: [
                    LineItemRequest(
                        menu_item_id=line.menu_item_id, quantity=line.quantity
                    )
                    for line in lines
                ]
                for service_date, lines in self.items_by_date.items()
            },
        )


class WeeklyPlacementResponse(_CamelModel):
    """Committed weekly placement."""

    order_ids: list[UUID] = Field(alias="orderIds")
    total_cost: int = Field(alias="totalCost")
    new_balance: int = Field(alias="newBalance")
    status: str

    @classmethod
    def from_receipt(
        cls, receipt: WeeklyPlacementReceipt
    ) -> "WeeklyPlacementResponse":
        return cls(
            order_ids=list(receipt.order_ids),
            total_cost=receipt.total_cost,
            new_balance=receipt.new_balance,
            status=receipt.status,
        )


class CancelOrderPayload(_CamelModel):
    """Cancellation request."""

    parent_id: str = Field(alias="parentId", min_length=1)


class CancellationResponse(_CamelModel):
    """Committed cancellation."""

    order_id: UUID = Field(alias="orderId")
    refunded: int
    new_balance: int = Field(alias="newBalance")
    status: str

    @classmethod
    def from_receipt(cls, receipt: CancellationReceipt) -> "CancellationResponse":
        return cls(
            order_id=receipt.order_id,
            refunded=receipt.refunded,
            new_balance=receipt.new_balance,
            status=receipt.status,
        )


class OrderStatusPayload(_CamelModel):
    """Forward status change requested by canteen staff."""

    status: str = Field(min_length=1)


class OrderLinePayload(_CamelModel):
    """Priced line item of a stored order."""

    menu_item_id: str = Field(alias="menuItemId")
    name: str
    quantity: int
    unit_price: int = Field(alias="unitPrice")


class OrderResponse(_CamelModel):
    """Stored order."""

    order_id: UUID = Field(alias="orderId")
    parent_id: str = Field(alias="parentId")
    student_id: str = Field(alias="studentId")
    service_date: date = Field(alias="serviceDate")
    line_items: list[OrderLinePayload] = Field(alias="lineItems")
    total_cost: int = Field(alias="totalCost")
    status: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_record(cls, order: OrderRecord) -> "OrderResponse":
        return cls(
            order_id=order.id,
            parent_id=order.parent_id,
            student_id=order.student_id,
            service_date=order.service_date,
            line_items=[
                OrderLinePayload(
                    menu_item_id=line.menu_item_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in order.line_items
            ],
            total_cost=order.total_cost,
            status=order.status,
            created_at=order.created_at,
        )


class WalletResponse(_CamelModel):
    """Wallet balance."""

    parent_id: str = Field(alias="parentId")
    balance: int
    revision: int
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def from_snapshot(cls, wallet: WalletSnapshot) -> "WalletResponse":
        return cls(
            parent_id=wallet.parent_id,
            balance=wallet.balance,
            revision=wallet.revision,
            updated_at=wallet.updated_at,
        )


class WalletTransactionResponse(_CamelModel):
    """Wallet ledger entry."""

    id: UUID
    kind: str
    amount: int
    balance_before: int = Field(alias="balanceBefore")
    balance_after: int = Field(alias="balanceAfter")
    reference: str | None = None
    description: str | None = None
    created_at: datetime = Field(alias="createdAt")
    order_ids: list[UUID] = Field(default_factory=list, alias="orderIds")

    @classmethod
    def from_entry(cls, entry: WalletTransaction) -> "WalletTransactionResponse":
        return cls(
            id=entry.id,
            kind=entry.kind,
            amount=entry.amount,
            balance_before=entry.balance_before,
            balance_after=entry.balance_after,
            reference=entry.reference,
            description=entry.description,
            created_at=entry.created_at,
            order_ids=list(entry.order_ids),
        )


class CreditPayload(_CamelModel):
    """Approved top-up to apply to a wallet."""

    amount: int = Field(gt=0)
    reference: str = Field(min_length=1)
    description: str | None = None


class ErrorResponse(_CamelModel):
    """Typed failure."""

    error_kind: str = Field(alias="errorKind")
    detail: str
    shortfall: int | None = None
