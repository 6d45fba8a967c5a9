"""Supabase ledger store backed by revision-guarded Postgres functions."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID

from supabase import Client

from canteen_ordering.domain.orders import (
    ORDER_CANCELLED,
    OrderLineItem,
    OrderRecord,
    PlacementReceipt,
    WeeklyPlacementReceipt,
)
from canteen_ordering.domain.wallets import (
    TRANSACTION_DEBIT,
    WEEKLY_ORDER_DESCRIPTION,
    WalletSnapshot,
    WalletTransaction,
)
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

_ORDER_COLUMNS = (
    "id, parent_id, student_id, service_date, line_items, total_cost_minor, "
    "status, created_at, idempotency_key"
)


@dataclass
class SupabaseLedgerStore(LedgerStore):
    """Ledger store whose commits run as single Postgres transactions via RPC."""

    client: Client

    def read_wallet(self, parent_id: str) -> WalletSnapshot | None:
        """Return the wallet balance and revision."""
        response = (
            self.client.table("wallets")
            .select("parent_id, balance_minor, revision, updated_at")
            .eq("parent_id", parent_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return WalletSnapshot(
            parent_id=str(row["parent_id"]),
            balance=int(row["balance_minor"]),
            revision=int(row["revision"]),
            updated_at=_parse_datetime(row.get("updated_at")),
        )

    def commit_debit_and_order(
        self,
        parent_id: str,
        expected_revision: int,
        debit_amount: int,
        order: OrderRecord,
    ) -> DebitOutcome:
        """Call ``commit_debit_and_order`` and map its status."""
        result = self._rpc(
            "commit_debit_and_order",
            {
                "p_parent_id": parent_id,
                "p_expected_revision": expected_revision,
                "p_debit": debit_amount,
                "p_order_id": str(order.id),
                "p_student_id": order.student_id,
                "p_service_date": order.service_date.isoformat(),
                "p_line_items": [_serialize_line(item) for item in order.line_items],
                "p_status": order.status,
                "p_idempotency_key": order.idempotency_key,
                "p_created_at": order.created_at.isoformat(),
            },
        )
        status = result.get("status")
        if status == "duplicate_key":
            return DuplicateIdempotencyKey(order.idempotency_key)
        return _committed_or_conflict(result)

    def commit_debit_and_orders(  # noqa: PLR0913
        self,
        parent_id: str,
        expected_revision: int,
        debit_amount: int,
        idempotency_key: str,
        orders: list[OrderRecord],
    ) -> DebitOutcome:
        """Call ``commit_weekly_debit_and_orders`` and map its status."""
        result = self._rpc(
            "commit_weekly_debit_and_orders",
            {
                "p_parent_id": parent_id,
                "p_expected_revision": expected_revision,
                "p_debit": debit_amount,
                "p_idempotency_key": idempotency_key,
                "p_orders": [_serialize_order(order) for order in orders],
                "p_created_at": orders[0].created_at.isoformat(),
            },
        )
        if result.get("status") == "duplicate_key":
            return DuplicateIdempotencyKey(idempotency_key)
        return _committed_or_conflict(result)

    def commit_cancellation(
        self,
        parent_id: str,
        expected_revision: int,
        order_id: UUID,
        credit_amount: int,
    ) -> CancelOutcome:
        """Call ``commit_order_cancellation`` and map its status."""
        result = self._rpc(
            "commit_order_cancellation",
            {
                "p_parent_id": parent_id,
                "p_expected_revision": expected_revision,
                "p_order_id": str(order_id),
                "p_credit": credit_amount,
            },
        )
        if result.get("status") == "order_state":
            return OrderStateConflict(status=result.get("order_status"))
        return _committed_or_conflict(result)

    def update_order_status(
        self, order_id: UUID, from_status: str, to_status: str
    ) -> bool:
        """Update the status only if the row still holds ``from_status``."""
        response = (
            self.client.table("orders")
            .update(
                {
                    "status": to_status,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(order_id))
            .eq("status", from_status)
            .execute()
        )
        return bool(response.data)

    def commit_credit(  # noqa: PLR0913
        self,
        parent_id: str,
        expected_revision: int,
        amount: int,
        reference: str,
        description: str | None,
    ) -> CreditOutcome:
        """Call ``commit_wallet_credit`` and map its status."""
        result = self._rpc(
            "commit_wallet_credit",
            {
                "p_parent_id": parent_id,
                "p_expected_revision": expected_revision,
                "p_amount": amount,
                "p_reference": reference,
                "p_description": description,
            },
        )
        if result.get("status") == "duplicate_reference":
            return DuplicateReference(reference)
        return _committed_or_conflict(result)

    def get_order(self, order_id: UUID) -> OrderRecord | None:
        """Return an order by id."""
        response = (
            self.client.table("orders")
            .select(_ORDER_COLUMNS)
            .eq("id", str(order_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_order(response.data[0])

    def get_receipt(
        self, idempotency_key: str
    ) -> tuple[OrderRecord, PlacementReceipt] | None:
        """Return the order for a key with the balance recorded by its debit."""
        response = (
            self.client.table("orders")
            .select(_ORDER_COLUMNS)
            .eq("idempotency_key", idempotency_key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        order = _parse_order(response.data[0])
        debit = (
            self.client.table("wallet_transactions")
            .select("balance_after_minor")
            .eq("kind", TRANSACTION_DEBIT)
            .contains("order_ids", [str(order.id)])
            .limit(1)
            .execute()
        )
        if not debit.data:
            raise RuntimeError(f"Debit entry missing for order {order.id}")
        receipt = PlacementReceipt(
            order_id=order.id,
            total_cost=order.total_cost,
            new_balance=int(debit.data[0]["balance_after_minor"]),
        )
        return order, receipt

    def get_weekly_receipt(
        self, idempotency_key: str
    ) -> tuple[str, WeeklyPlacementReceipt] | None:
        """Return the paying parent and receipt recorded by a weekly debit."""
        response = (
            self.client.table("wallet_transactions")
            .select("parent_id, amount_minor, balance_after_minor, order_ids")
            .eq("reference", idempotency_key)
            .eq("kind", TRANSACTION_DEBIT)
            .eq("description", WEEKLY_ORDER_DESCRIPTION)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        receipt = WeeklyPlacementReceipt(
            order_ids=[UUID(str(order_id)) for order_id in row.get("order_ids") or []],
            total_cost=-int(row["amount_minor"]),
            new_balance=int(row["balance_after_minor"]),
        )
        return str(row["parent_id"]), receipt

    def ordered_quantities(
        self, student_id: str, service_date: date
    ) -> dict[str, int]:
        """Sum quantities per item over the student's non-cancelled orders."""
        response = (
            self.client.table("orders")
            .select("line_items, status")
            .eq("student_id", student_id)
            .eq("service_date", service_date.isoformat())
            .execute()
        )
        totals: dict[str, int] = {}
        for row in response.data or []:
            if row.get("status") == ORDER_CANCELLED:
                continue
            for line in row.get("line_items") or []:
                item_id = str(line["menu_item_id"])
                totals[item_id] = totals.get(item_id, 0) + int(line["quantity"])
        return totals

    def list_transactions(
        self, parent_id: str, limit: int
    ) -> list[WalletTransaction]:
        """Return recent ledger entries, newest first."""
        response = (
            self.client.table("wallet_transactions")
            .select(
                "id, parent_id, kind, amount_minor, balance_before_minor, "
                "balance_after_minor, reference, description, created_at, order_ids"
            )
            .eq("parent_id", parent_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_transaction(row) for row in response.data or []]

    def _rpc(self, function: str, params: dict[str, object]) -> dict[str, object]:
        response = self.client.rpc(function, params).execute()
        data = response.data
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict) or "status" not in data:
            raise RuntimeError(f"Unexpected response from {function}: {data!r}")
        return data


def _committed_or_conflict(result: dict[str, object]) -> Committed | RevisionConflict:
    status = result.get("status")
    if status == "committed":
        return Committed(
            new_revision=int(result["revision"]),
            new_balance=int(result["balance"]),
        )
    if status == "revision_conflict":
        revision = result.get("revision")
        return RevisionConflict(
            current_revision=int(revision) if revision is not None else None
        )
    raise RuntimeError(f"Unknown commit status: {status!r}")


def _serialize_line(item: OrderLineItem) -> dict[str, object]:
    return {
        "menu_item_id": item.menu_item_id,
        "name": item.name,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
    }


def _serialize_order(order: OrderRecord) -> dict[str, object]:
    return {
        "id": str(order.id),
        "student_id": order.student_id,
        "service_date": order.service_date.isoformat(),
        "line_items": [_serialize_line(item) for item in order.line_items],
        "total_cost": order.total_cost,
        "status": order.status,
        "idempotency_key": order.idempotency_key,
    }


def _parse_order(row: dict[str, object]) -> OrderRecord:
    return OrderRecord(
        id=UUID(str(row["id"])),
        parent_id=str(row["parent_id"]),
        student_id=str(row["student_id"]),
        service_date=date.fromisoformat(str(row["service_date"])),
        line_items=[
            OrderLineItem(
                menu_item_id=str(line["menu_item_id"]),
                name=str(line.get("name", "")),
                quantity=int(line["quantity"]),
                unit_price=int(line["unit_price"]),
            )
            for line in row.get("line_items") or []
        ],
        total_cost=int(row["total_cost_minor"]),
        status=str(row["status"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        idempotency_key=str(row["idempotency_key"]),
    )


def _parse_transaction(row: dict[str, object]) -> WalletTransaction:
    return WalletTransaction(
        id=UUID(str(row["id"])),
        parent_id=str(row["parent_id"]),
        kind=str(row["kind"]),
        amount=int(row["amount_minor"]),
        balance_before=int(row["balance_before_minor"]),
        balance_after=int(row["balance_after_minor"]),
        reference=row.get("reference"),
        description=row.get("description"),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        order_ids=[UUID(str(order_id)) for order_id in row.get("order_ids") or []],
    )


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None
