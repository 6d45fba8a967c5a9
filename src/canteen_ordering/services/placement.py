"""Order placement and cancellation against a parent's wallet."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import TypeVar
from uuid import UUID, uuid4

from canteen_ordering.domain.balance_guard import Insufficient, evaluate
from canteen_ordering.domain.errors import (
    ConflictError,
    IdempotencyKeyReusedError,
    InsufficientBalanceError,
    InternalError,
    InvalidMenuSelectionError,
    InvalidOrderStateError,
    NotFoundError,
)
from canteen_ordering.domain.money import format_amount
from canteen_ordering.domain.orders import (
    CANCELLABLE_STATUSES,
    FORWARD_TRANSITIONS,
    ORDER_CONFIRMED,
    CancellationReceipt,
    LineItemRequest,
    OrderLineItem,
    OrderRecord,
    PlacementReceipt,
    PlacementRequest,
    WeeklyPlacementReceipt,
    WeeklyPlacementRequest,
    total_cost,
    weekly_order_key,
)
from canteen_ordering.domain.wallets import WalletSnapshot
from canteen_ordering.services.commits import RetryPolicy, internal_errors
from canteen_ordering.services.ledger import (
    Committed,
    DebitOutcome,
    DuplicateIdempotencyKey,
    LedgerStore,
    OrderStateConflict,
)
from canteen_ordering.services.menu import MenuValidator

_logger = logging.getLogger(__name__)

ReceiptT = TypeVar("ReceiptT")


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class _PlannedOrder:
    student_id: str
    service_date: date
    line_items: list[OrderLineItem]

    @property
    def cost(self) -> int:
        return total_cost(self.line_items)


@dataclass
class OrderPlacementService:
    """Places orders with a balance-checked, revision-guarded wallet debit.

    The flow is validate, read the wallet, evaluate the balance guard, then a
    single conditional commit of debit plus order. A revision conflict means
    another commit touched the wallet in between; the wallet is re-read and
    the guard re-evaluated, up to ``retry.max_attempts`` times.
    """

    store: LedgerStore
    menu_validator: MenuValidator
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    clock: Callable[[], datetime] = field(default=_utc_now)

    def place_order(self, request: PlacementRequest) -> PlacementReceipt:
        """Place an order, or return the earlier receipt for a replayed key."""
        with internal_errors(
            "Order placement",
            idempotency_key=request.idempotency_key,
            parent_id=request.parent_id,
        ):
            replay = self._replay(request)
            if replay is not None:
                return replay
            return self._place(request)

    def place_weekly_order(
        self, request: WeeklyPlacementRequest
    ) -> WeeklyPlacementReceipt:
        """Place one order per student and date, paid by a single debit."""
        with internal_errors(
            "Weekly order placement",
            idempotency_key=request.idempotency_key,
            parent_id=request.parent_id,
        ):
            replay = self._replay_weekly(request)
            if replay is not None:
                return replay
            return self._place_weekly(request)

    def find_receipt(self, idempotency_key: str) -> PlacementReceipt | None:
        """Return the receipt of a committed placement by idempotency key."""
        with internal_errors("Receipt lookup", idempotency_key=idempotency_key):
            found = self.store.get_receipt(idempotency_key)
        return found[1] if found else None

    def find_weekly_receipt(
        self, idempotency_key: str
    ) -> WeeklyPlacementReceipt | None:
        """Return the receipt of a committed weekly placement."""
        with internal_errors("Weekly receipt lookup", idempotency_key=idempotency_key):
            found = self.store.get_weekly_receipt(idempotency_key)
        return found[1] if found else None

    def get_order(self, order_id: UUID) -> OrderRecord | None:
        """Return an order by id."""
        with internal_errors("Order lookup", order_id=str(order_id)):
            return self.store.get_order(order_id)

    def cancel_order(self, parent_id: str, order_id: UUID) -> CancellationReceipt:
        """Cancel an order and credit its total back to the wallet."""
        with internal_errors(
            "Order cancellation", parent_id=parent_id, order_id=str(order_id)
        ):
            return self._cancel(parent_id, order_id)

    def update_order_status(self, order_id: UUID, status: str) -> OrderRecord:
        """Move an order forward, e.g. ``confirmed`` to ``completed``.

        Setting the current status again is a no-op. Backward moves and moves
        out of a final status raise InvalidOrderStateError; cancellation goes
        through ``cancel_order`` so the wallet is refunded.
        """
        with internal_errors(
            "Order status update", order_id=str(order_id), status=status
        ):
            order = self.store.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            if order.status == status:
                return order
            if status not in FORWARD_TRANSITIONS.get(order.status, frozenset()):
                raise InvalidOrderStateError(
                    f"Cannot move order from {order.status} to {status}"
                )
            if not self.store.update_order_status(order_id, order.status, status):
                current = self.store.get_order(order_id)
                raise InvalidOrderStateError(
                    f"Order is already {current.status if current else 'gone'}"
                )
            _logger.info(
                "Order status updated: order=%s %s -> %s",
                order_id,
                order.status,
                status,
            )
            return replace(order, status=status)

    def _place(self, request: PlacementRequest) -> PlacementReceipt:
        planned = self._plan(
            request.student_id, request.service_date, request.line_items
        )
        cost = planned.cost
        order_id = uuid4()

        def commit(wallet: WalletSnapshot) -> DebitOutcome:
            order = OrderRecord(
                id=order_id,
                parent_id=request.parent_id,
                student_id=request.student_id,
                service_date=request.service_date,
                line_items=planned.line_items,
                total_cost=cost,
                status=ORDER_CONFIRMED,
                created_at=self.clock(),
                idempotency_key=request.idempotency_key,
            )
            return self.store.commit_debit_and_order(
                request.parent_id, wallet.revision, cost, order
            )

        result = self._debit_with_retry(
            request.parent_id, cost, commit, lambda: self._replay(request)
        )
        if not isinstance(result, Committed):
            return result
        _logger.info(
            "Order committed: order=%s parent=%s cost=%s balance=%s rev=%s",
            order_id,
            request.parent_id,
            cost,
            result.new_balance,
            result.new_revision,
        )
        return PlacementReceipt(
            order_id=order_id, total_cost=cost, new_balance=result.new_balance
        )

    def _place_weekly(self, request: WeeklyPlacementRequest) -> WeeklyPlacementReceipt:
        if not request.student_ids:
            raise InvalidMenuSelectionError("Weekly order has no students")
        if len(set(request.student_ids)) != len(request.student_ids):
            raise InvalidMenuSelectionError("Weekly order lists a student twice")
        if not request.items_by_date:
            raise InvalidMenuSelectionError("Weekly order has no service dates")

        planned: list[_PlannedOrder] = []
        for student_id in request.student_ids:
            for service_date in sorted(request.items_by_date):
                try:
                    planned.append(
                        self._plan(
                            student_id, service_date, request.items_by_date[service_date]
                        )
                    )
                except InvalidMenuSelectionError as exc:
                    raise InvalidMenuSelectionError(
                        f"{student_id} on {service_date.isoformat()}: {exc.detail}"
                    ) from exc
        cost = sum(order.cost for order in planned)
        order_ids = [uuid4() for _ in planned]

        def commit(wallet: WalletSnapshot) -> DebitOutcome:
            created_at = self.clock()
            orders = [
                OrderRecord(
                    id=order_id,
                    parent_id=request.parent_id,
                    student_id=order.student_id,
                    service_date=order.service_date,
                    line_items=order.line_items,
                    total_cost=order.cost,
                    status=ORDER_CONFIRMED,
                    created_at=created_at,
                    idempotency_key=weekly_order_key(
                        request.idempotency_key, order.student_id, order.service_date
                    ),
                )
                for order_id, order in zip(order_ids, planned, strict=True)
            ]
            return self.store.commit_debit_and_orders(
                request.parent_id,
                wallet.revision,
                cost,
                request.idempotency_key,
                orders,
            )

        result = self._debit_with_retry(
            request.parent_id, cost, commit, lambda: self._replay_weekly(request)
        )
        if not isinstance(result, Committed):
            return result
        _logger.info(
            "Weekly order committed: key=%s parent=%s orders=%s cost=%s balance=%s",
            request.idempotency_key,
            request.parent_id,
            len(order_ids),
            cost,
            result.new_balance,
        )
        return WeeklyPlacementReceipt(
            order_ids=order_ids, total_cost=cost, new_balance=result.new_balance
        )

    def _plan(
        self,
        student_id: str,
        service_date: date,
        line_items: list[LineItemRequest],
    ) -> _PlannedOrder:
        already_ordered = self.store.ordered_quantities(student_id, service_date)
        priced = self.menu_validator.price_selection(
            service_date, line_items, already_ordered
        )
        planned = _PlannedOrder(student_id, service_date, priced)
        if planned.cost <= 0:
            raise InvalidMenuSelectionError("Order total must be greater than zero")
        return planned

    def _debit_with_retry(
        self,
        parent_id: str,
        cost: int,
        commit: Callable[[WalletSnapshot], DebitOutcome],
        replay: Callable[[], ReceiptT | None],
    ) -> Committed | ReceiptT:
        for attempt in self.retry.attempts():
            wallet = self._read_wallet(parent_id)
            verdict = evaluate(wallet.balance, cost)
            if isinstance(verdict, Insufficient):
                raise InsufficientBalanceError(
                    f"Order costs {format_amount(cost)} but the wallet holds "
                    f"{format_amount(wallet.balance)}",
                    shortfall=verdict.shortfall,
                )
            outcome = commit(wallet)
            if isinstance(outcome, Committed):
                return outcome
            # The conflicting commit may be this same key arriving twice.
            found = replay()
            if found is not None:
                return found
            if isinstance(outcome, DuplicateIdempotencyKey):
                raise InternalError(
                    "Idempotency key is taken but its order is unreadable"
                )
            _logger.warning(
                "Wallet revision conflict: parent=%s attempt=%s/%s",
                parent_id,
                attempt,
                self.retry.max_attempts,
            )
            self.retry.pause(attempt)

        raise ConflictError(
            "Wallet was modified concurrently; retry with the same idempotency key"
        )

    def _cancel(self, parent_id: str, order_id: UUID) -> CancellationReceipt:
        order = self.store.get_order(order_id)
        if order is None or order.parent_id != parent_id:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidOrderStateError(f"Order is already {order.status}")
        reason = self.menu_validator.calendar.closed_reason(order.service_date)
        if reason:
            raise InvalidOrderStateError(f"Order can no longer be cancelled: {reason}")

        for attempt in self.retry.attempts():
            wallet = self._read_wallet(parent_id)
            outcome = self.store.commit_cancellation(
                parent_id, wallet.revision, order_id, order.total_cost
            )
            if isinstance(outcome, Committed):
                _logger.info(
                    "Order cancelled: order=%s parent=%s refunded=%s balance=%s",
                    order_id,
                    parent_id,
                    order.total_cost,
                    outcome.new_balance,
                )
                return CancellationReceipt(
                    order_id=order_id,
                    refunded=order.total_cost,
                    new_balance=outcome.new_balance,
                )
            if isinstance(outcome, OrderStateConflict):
                raise InvalidOrderStateError(f"Order is already {outcome.status}")
            _logger.warning(
                "Wallet revision conflict on cancel: parent=%s attempt=%s/%s",
                parent_id,
                attempt,
                self.retry.max_attempts,
            )
            self.retry.pause(attempt)

        raise ConflictError("Wallet was modified concurrently; retry the cancellation")

    def _replay(self, request: PlacementRequest) -> PlacementReceipt | None:
        found = self.store.get_receipt(request.idempotency_key)
        if found is None:
            return None
        order, receipt = found
        if order.parent_id != request.parent_id:
            raise IdempotencyKeyReusedError(
                "Idempotency key was already used by another parent"
            )
        _logger.info(
            "Idempotent replay: key=%s order=%s", request.idempotency_key, order.id
        )
        return receipt

    def _replay_weekly(
        self, request: WeeklyPlacementRequest
    ) -> WeeklyPlacementReceipt | None:
        found = self.store.get_weekly_receipt(request.idempotency_key)
        if found is None:
            return None
        parent_id, receipt = found
        if parent_id != request.parent_id:
            raise IdempotencyKeyReusedError(
                "Idempotency key was already used by another parent"
            )
        _logger.info(
            "Idempotent weekly replay: key=%s orders=%s",
            request.idempotency_key,
            len(receipt.order_ids),
        )
        return receipt

    def _read_wallet(self, parent_id: str) -> WalletSnapshot:
        wallet = self.store.read_wallet(parent_id)
        if wallet is None:
            raise NotFoundError(f"Wallet for parent {parent_id} not found")
        return wallet
