"""Ledger store contract shared by placement, cancellation and top-ups."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol
from uuid import UUID

from canteen_ordering.domain.orders import (
    OrderRecord,
    PlacementReceipt,
    WeeklyPlacementReceipt,
)
from canteen_ordering.domain.wallets import WalletSnapshot, WalletTransaction


@dataclass(frozen=True)
class Committed:
    """Atomic write applied; the wallet now has ``new_revision``."""

    new_revision: int
    new_balance: int


@dataclass(frozen=True)
class RevisionConflict:
    """Wallet revision moved since it was read; nothing was written."""

    current_revision: int | None = None


@dataclass(frozen=True)
class DuplicateIdempotencyKey:
    """An order with the same idempotency key already exists."""

    idempotency_key: str


@dataclass(frozen=True)
class OrderStateConflict:
    """Order status no longer allows the write."""

    status: str | None


@dataclass(frozen=True)
class DuplicateReference:
    """A credit with the same reference was already applied."""

    reference: str


DebitOutcome = Committed | RevisionConflict | DuplicateIdempotencyKey
CancelOutcome = Committed | RevisionConflict | OrderStateConflict
CreditOutcome = Committed | RevisionConflict | DuplicateReference


class LedgerStore(Protocol):
    """Persistence interface for wallets, orders and wallet transactions.

    Every ``commit_*`` call is a single atomic operation: either all of its
    writes happen or none do, and it only applies when the wallet revision
    still equals ``expected_revision``.
    """

    def read_wallet(self, parent_id: str) -> WalletSnapshot | None:
        """Return the wallet balance and revision, if the wallet exists."""

    def commit_debit_and_order(
        self,
        parent_id: str,
        expected_revision: int,
        debit_amount: int,
        order: OrderRecord,
    ) -> DebitOutcome:
        """Debit the wallet, insert the order and its ledger entry."""

    def commit_debit_and_orders(  # noqa: PLR0913
        self,
        parent_id: str,
        expected_revision: int,
        debit_amount: int,
        idempotency_key: str,
        orders: list[OrderRecord],
    ) -> DebitOutcome:
        """Debit the wallet once for several orders and insert one ledger entry."""

    def commit_cancellation(
        self,
        parent_id: str,
        expected_revision: int,
        order_id: UUID,
        credit_amount: int,
    ) -> CancelOutcome:
        """Credit the wallet back and mark the order cancelled."""

    def update_order_status(
        self, order_id: UUID, from_status: str, to_status: str
    ) -> bool:
        """Set ``to_status`` only while the order still has ``from_status``."""

    def commit_credit(  # noqa: PLR0913
        self,
        parent_id: str,
        expected_revision: int,
        amount: int,
        reference: str,
        description: str | None,
    ) -> CreditOutcome:
        """Credit the wallet for an approved top-up."""

    def get_order(self, order_id: UUID) -> OrderRecord | None:
        """Return an order by id."""

    def get_receipt(
        self, idempotency_key: str
    ) -> tuple[OrderRecord, PlacementReceipt] | None:
        """Return the order placed with ``idempotency_key`` and its receipt."""

    def get_weekly_receipt(
        self, idempotency_key: str
    ) -> tuple[str, WeeklyPlacementReceipt] | None:
        """Return the paying parent and receipt of a weekly placement."""

    def ordered_quantities(
        self, student_id: str, service_date: date
    ) -> dict[str, int]:
        """Return quantities per menu item in the student's live orders."""

    def list_transactions(
        self, parent_id: str, limit: int
    ) -> list[WalletTransaction]:
        """Return recent ledger entries, newest first."""
