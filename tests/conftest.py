"""Shared test fixtures."""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

import pytest

from canteen_ordering.config import Settings
from canteen_ordering.containers import AppContainer
from canteen_ordering.domain.menu import PUBLISH_PUBLISHED, MenuItem, WeeklyMenu
from canteen_ordering.domain.orders import (
    CANCELLABLE_STATUSES,
    ORDER_CANCELLED,
    OrderRecord,
    PlacementReceipt,
    WeeklyPlacementReceipt,
)
from canteen_ordering.domain.wallets import (
    TRANSACTION_CREDIT,
    TRANSACTION_DEBIT,
    TRANSACTION_REFUND,
    WEEKLY_ORDER_DESCRIPTION,
    WalletSnapshot,
    WalletTransaction,
)
from canteen_ordering.services.calendar import ServiceCalendar
from canteen_ordering.services.commits import RetryPolicy
from canteen_ordering.services.ledger import (
    CancelOutcome,
    Committed,
    CreditOutcome,
    DebitOutcome,
    DuplicateIdempotencyKey,
    DuplicateReference,
    LedgerStore,
    OrderStateConflict,
    RevisionConflict,
)
from canteen_ordering.services.menu import MenuRepository, MenuValidator
from canteen_ordering.services.placement import OrderPlacementService
from canteen_ordering.services.wallets import WalletService

# Monday 2026-10-19, 08:00 in Manila.
NOW = datetime(2026, 10, 19, 0, 0, tzinfo=UTC)
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
WEDNESDAY = date(2026, 10, 21)
PARENT_ID = "parent-1"
STUDENT_ID = "student-1"


def fixed_clock() -> datetime:
    return NOW


class StoreFailure(RuntimeError):
    """Injected store failure."""


@dataclass
class _Wallet:
    balance: int
    revision: int = 0


@dataclass
class InMemoryLedgerStore(LedgerStore):
    """Thread-safe ledger store; each commit applies all writes or none."""

    wallets: dict[str, _Wallet] = field(default_factory=dict)
    orders: dict[UUID, OrderRecord] = field(default_factory=dict)
    transactions: list[WalletTransaction] = field(default_factory=list)
    forced_conflicts: int = 0
    fail_commits: int = 0
    commit_calls: int = 0
    rollbacks: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_wallet(self, parent_id: str, balance: int) -> None:
        self.wallets[parent_id] = _Wallet(balance=balance)

    def balance(self, parent_id: str) -> int:
        return self.wallets[parent_id].balance

    def read_wallet(self, parent_id: str) -> WalletSnapshot | None:
        with self._lock:
            wallet = self.wallets.get(parent_id)
            if wallet is None:
                return None
            return WalletSnapshot(parent_id, wallet.balance, wallet.revision)

    def commit_debit_and_order(
        self,
        parent_id: str,
        expected_revision: int,
        debit_amount: int,
        order: OrderRecord,
    ) -> DebitOutcome:
        with self._lock:
            if self._key_taken(order.idempotency_key):
                return DuplicateIdempotencyKey(order.idempotency_key)
            conflict = self._precheck(parent_id, expected_revision)
            if conflict is not None:
                return conflict
            wallet = self.wallets[parent_id]
            entry = self._entry(
                parent_id, TRANSACTION_DEBIT, -debit_amount, wallet.balance,
                wallet.balance - debit_amount, str(order.id), "order", [order.id],
            )

            def write() -> None:
                self.orders[order.id] = order
                self.transactions.append(entry)

            return self._apply(wallet, wallet.balance - debit_amount, write)

    def commit_debit_and_orders(  # noqa: PLR0913
        self,
        parent_id: str,
        expected_revision: int,
        debit_amount: int,
        idempotency_key: str,
        orders: list[OrderRecord],
    ) -> DebitOutcome:
        with self._lock:
            if any(
                entry.reference == idempotency_key
                and entry.description == WEEKLY_ORDER_DESCRIPTION
                for entry in self.transactions
            ) or any(self._key_taken(order.idempotency_key) for order in orders):
                return DuplicateIdempotencyKey(idempotency_key)
            conflict = self._precheck(parent_id, expected_revision)
            if conflict is not None:
                return conflict
            wallet = self.wallets[parent_id]
            entry = self._entry(
                parent_id, TRANSACTION_DEBIT, -debit_amount, wallet.balance,
                wallet.balance - debit_amount, idempotency_key,
                WEEKLY_ORDER_DESCRIPTION, [order.id for order in orders],
            )

            def write() -> None:
                for order in orders:
                    self.orders[order.id] = order
                self.transactions.append(entry)

            return self._apply(wallet, wallet.balance - debit_amount, write)

    def commit_cancellation(
        self,
        parent_id: str,
        expected_revision: int,
        order_id: UUID,
        credit_amount: int,
    ) -> CancelOutcome:
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.status not in CANCELLABLE_STATUSES:
                return OrderStateConflict(order.status if order else None)
            conflict = self._precheck(parent_id, expected_revision)
            if conflict is not None:
                return conflict
            wallet = self.wallets[parent_id]
            entry = self._entry(
                parent_id, TRANSACTION_REFUND, credit_amount, wallet.balance,
                wallet.balance + credit_amount, str(order_id), "order_cancelled",
            )

            def write() -> None:
                self.orders[order_id] = replace(order, status=ORDER_CANCELLED)
                self.transactions.append(entry)

            return self._apply(wallet, wallet.balance + credit_amount, write)

    def update_order_status(
        self, order_id: UUID, from_status: str, to_status: str
    ) -> bool:
        with self._lock:
            order = self.orders.get(order_id)
            if order is None or order.status != from_status:
                return False
            self.orders[order_id] = replace(order, status=to_status)
            return True

    def commit_credit(  # noqa: PLR0913
        self,
        parent_id: str,
        expected_revision: int,
        amount: int,
        reference: str,
        description: str | None,
    ) -> CreditOutcome:
        with self._lock:
            if any(
                entry.parent_id == parent_id
                and entry.kind == TRANSACTION_CREDIT
                and entry.reference == reference
                for entry in self.transactions
            ):
                return DuplicateReference(reference)
            conflict = self._precheck(parent_id, expected_revision)
            if conflict is not None:
                return conflict
            wallet = self.wallets[parent_id]
            entry = self._entry(
                parent_id, TRANSACTION_CREDIT, amount, wallet.balance,
                wallet.balance + amount, reference, description,
            )
            return self._apply(
                wallet, wallet.balance + amount, lambda: self.transactions.append(entry)
            )

    def get_order(self, order_id: UUID) -> OrderRecord | None:
        return self.orders.get(order_id)

    def get_receipt(
        self, idempotency_key: str
    ) -> tuple[OrderRecord, PlacementReceipt] | None:
        with self._lock:
            for order in self.orders.values():
                if order.idempotency_key != idempotency_key:
                    continue
                debit = next(
                    entry
                    for entry in self.transactions
                    if entry.kind == TRANSACTION_DEBIT and order.id in entry.order_ids
                )
                receipt = PlacementReceipt(
                    order_id=order.id,
                    total_cost=order.total_cost,
                    new_balance=debit.balance_after,
                )
                return order, receipt
        return None

    def get_weekly_receipt(
        self, idempotency_key: str
    ) -> tuple[str, WeeklyPlacementReceipt] | None:
        with self._lock:
            for entry in self.transactions:
                if (
                    entry.kind == TRANSACTION_DEBIT
                    and entry.reference == idempotency_key
                    and entry.description == WEEKLY_ORDER_DESCRIPTION
                ):
                    receipt = WeeklyPlacementReceipt(
                        order_ids=list(entry.order_ids),
                        total_cost=-entry.amount,
                        new_balance=entry.balance_after,
                    )
                    return entry.parent_id, receipt
        return None

    def ordered_quantities(
        self, student_id: str, service_date: date
    ) -> dict[str, int]:
        with self._lock:
            orders = list(self.orders.values())
        totals: dict[str, int] = {}
        for order in orders:
            if (
                order.student_id != student_id
                or order.service_date != service_date
                or order.status == ORDER_CANCELLED
            ):
                continue
            for line in order.line_items:
                totals[line.menu_item_id] = (
                    totals.get(line.menu_item_id, 0) + line.quantity
                )
        return totals

    def list_transactions(
        self, parent_id: str, limit: int
    ) -> list[WalletTransaction]:
        with self._lock:
            entries = [e for e in self.transactions if e.parent_id == parent_id]
        return list(reversed(entries))[:limit]

    def _key_taken(self, idempotency_key: str) -> bool:
        return any(
            existing.idempotency_key == idempotency_key
            for existing in self.orders.values()
        )

    def _precheck(self, parent_id: str, expected_revision: int) -> RevisionConflict | None:
        self.commit_calls += 1
        wallet = self.wallets.get(parent_id)
        if wallet is None:
            raise StoreFailure(f"wallet {parent_id} missing")
        if self.forced_conflicts > 0:
            self.forced_conflicts -= 1
            wallet.revision += 1
            return RevisionConflict(current_revision=wallet.revision)
        if wallet.revision != expected_revision:
            return RevisionConflict(current_revision=wallet.revision)
        return None

    def _apply(
        self, wallet: _Wallet, new_balance: int, write: Callable[[], None]
    ) -> Committed:
        """Update the wallet, then the rows; an injected failure undoes both."""
        if new_balance < 0:
            raise StoreFailure("balance check constraint violated")
        previous = (wallet.balance, wallet.revision)
        wallet.balance = new_balance
        wallet.revision += 1
        try:
            if self.fail_commits > 0:
                self.fail_commits -= 1
                raise StoreFailure("connection lost mid-commit")
            write()
        except StoreFailure:
            wallet.balance, wallet.revision = previous
            self.rollbacks += 1
            raise
        return Committed(new_revision=wallet.revision, new_balance=new_balance)

    @staticmethod
    def _entry(  # noqa: PLR0913
        parent_id: str,
        kind: str,
        amount: int,
        before: int,
        after: int,
        reference: str | None,
        description: str | None,
        order_ids: list[UUID] | None = None,
    ) -> WalletTransaction:
        return WalletTransaction(
            id=uuid4(),
            parent_id=parent_id,
            kind=kind,
            amount=amount,
            balance_before=before,
            balance_after=after,
            reference=reference,
            description=description,
            created_at=NOW,
            order_ids=list(order_ids or []),
        )


@dataclass
class InMemoryMenuRepository(MenuRepository):
    """In-memory menu repository for tests."""

    items: dict[str, MenuItem] = field(default_factory=dict)
    weekly_menus: dict[date, WeeklyMenu] = field(default_factory=dict)

    def get_items(self, item_ids: list[str]) -> dict[str, MenuItem]:
        return {item_id: self.items[item_id] for item_id in item_ids if item_id in self.items}

    def get_weekly_menu(self, week_start: date) -> WeeklyMenu | None:
        return self.weekly_menus.get(week_start)


def sample_menu() -> InMemoryMenuRepository:
    items = [
        MenuItem(id="adobo", name="Chicken Adobo", price=6000, category="lunch"),
        MenuItem(id="rice", name="Rice", price=1500, category="lunch"),
        MenuItem(id="juice", name="Calamansi Juice", price=2000, category="drinks"),
        MenuItem(
            id="cookie", name="Cookie", price=500, category="snack", daily_limit=2
        ),
        MenuItem(
            id="sisig", name="Sisig", price=7000, category="lunch", is_available=False
        ),
    ]
    day = {
        "lunch": ["adobo", "rice", "sisig"],
        "snack": ["cookie"],
        "drinks": ["juice"],
    }
    weekly = WeeklyMenu(
        week_start=MONDAY,
        publish_status=PUBLISH_PUBLISHED,
        items_by_day={"Monday": day, "Tuesday": day, "Wednesday": {"lunch": ["rice"]}},
    )
    return InMemoryMenuRepository(
        items={item.id: item for item in items},
        weekly_menus={MONDAY: weekly},
    )


def no_sleep_retry(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, sleep=lambda _seconds: None)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        api_token="api-token",
        admin_token="admin-token",
    )


@pytest.fixture
def ledger_store() -> InMemoryLedgerStore:
    store = InMemoryLedgerStore()
    store.add_wallet(PARENT_ID, 10000)
    return store


@pytest.fixture
def menu_repository() -> InMemoryMenuRepository:
    return sample_menu()


@pytest.fixture
def calendar() -> ServiceCalendar:
    return ServiceCalendar(clock=fixed_clock)


@pytest.fixture
def menu_validator(
    menu_repository: InMemoryMenuRepository, calendar: ServiceCalendar
) -> MenuValidator:
    return MenuValidator(repository=menu_repository, calendar=calendar)


@pytest.fixture
def placement_service(
    ledger_store: InMemoryLedgerStore, menu_validator: MenuValidator
) -> OrderPlacementService:
    return OrderPlacementService(
        store=ledger_store,
        menu_validator=menu_validator,
        retry=no_sleep_retry(),
        clock=fixed_clock,
    )


@pytest.fixture
def wallet_service(ledger_store: InMemoryLedgerStore) -> WalletService:
    return WalletService(store=ledger_store, retry=no_sleep_retry())


@pytest.fixture
def container(
    settings: Settings,
    placement_service: OrderPlacementService,
    wallet_service: WalletService,
) -> AppContainer:
    return AppContainer(
        settings=settings,
        placement_service=placement_service,
        wallet_service=wallet_service,
    )
