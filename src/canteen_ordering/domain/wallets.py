"""Domain models for parent wallets and their ledger."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

TRANSACTION_DEBIT = "debit"
TRANSACTION_CREDIT = "credit"
TRANSACTION_REFUND = "refund"

WEEKLY_ORDER_DESCRIPTION = "weekly_order"


@dataclass(frozen=True)
class WalletSnapshot:
    """Balance and revision of a wallet as read from the store."""

    parent_id: str
    balance: int
    revision: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class WalletTransaction:
    """Ledger entry written alongside each balance change."""

    id: UUID
    parent_id: str
    kind: str
    amount: int
    balance_before: int
    balance_after: int
    reference: str | None
    description: str | None
    created_at: datetime
    order_ids: list[UUID] = field(default_factory=list)
