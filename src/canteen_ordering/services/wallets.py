"""Wallet reads and top-up credits."""

import logging
from dataclasses import dataclass, field

from canteen_ordering.domain.errors import ConflictError, NotFoundError
from canteen_ordering.domain.wallets import WalletSnapshot, WalletTransaction
from canteen_ordering.services.commits import RetryPolicy, internal_errors
from canteen_ordering.services.ledger import Committed, DuplicateReference, LedgerStore

_logger = logging.getLogger(__name__)


@dataclass
class WalletService:
    """Application service for wallet balances and approved top-ups."""

    store: LedgerStore
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def get_wallet(self, parent_id: str) -> WalletSnapshot:
        """Return the current wallet; balances are always read fresh."""
        with internal_errors("Wallet lookup", parent_id=parent_id):
            wallet = self.store.read_wallet(parent_id)
        if wallet is None:
            raise NotFoundError(f"Wallet for parent {parent_id} not found")
        return wallet

    def list_transactions(
        self, parent_id: str, limit: int = 20
    ) -> list[WalletTransaction]:
        """Return recent ledger entries for a parent."""
        with internal_errors("Transaction listing", parent_id=parent_id):
            return self.store.list_transactions(parent_id, limit)

    def credit(
        self, parent_id: str, amount: int, reference: str, description: str | None
    ) -> WalletSnapshot:
        """Apply an approved top-up once per ``reference``."""
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        with internal_errors("Wallet credit", parent_id=parent_id, reference=reference):
            for attempt in self.retry.attempts():
                wallet = self.get_wallet(parent_id)
                outcome = self.store.commit_credit(
                    parent_id, wallet.revision, amount, reference, description
                )
                if isinstance(outcome, Committed):
                    _logger.info(
                        "Wallet credited: parent=%s amount=%s balance=%s ref=%s",
                        parent_id,
                        amount,
                        outcome.new_balance,
                        reference,
                    )
                    return WalletSnapshot(
                        parent_id=parent_id,
                        balance=outcome.new_balance,
                        revision=outcome.new_revision,
                    )
                if isinstance(outcome, DuplicateReference):
                    _logger.info(
                        "Credit already applied: parent=%s ref=%s", parent_id, reference
                    )
                    return self.get_wallet(parent_id)
                _logger.warning(
                    "Wallet revision conflict on credit: parent=%s attempt=%s/%s",
                    parent_id,
                    attempt,
                    self.retry.max_attempts,
                )
                self.retry.pause(attempt)
        raise ConflictError("Wallet was modified concurrently; retry the credit")
