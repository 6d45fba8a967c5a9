"""Menu validation and pricing for order placement."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from canteen_ordering.domain.errors import InvalidMenuSelectionError
from canteen_ordering.domain.menu import MenuItem, WeeklyMenu
from canteen_ordering.domain.orders import LineItemRequest, OrderLineItem
from canteen_ordering.services.calendar import (
    ServiceCalendar,
    day_name,
    week_start_for,
)


class MenuRepository(Protocol):
    """Read access to menu items and weekly menus."""

    def get_items(self, item_ids: list[str]) -> dict[str, MenuItem]:
        """Return menu items keyed by id; unknown ids are omitted."""

    def get_weekly_menu(self, week_start: date) -> WeeklyMenu | None:
        """Return the weekly menu starting on ``week_start``, if any."""


@dataclass
class MenuValidator:
    """Checks a selection against the published menu and prices it."""

    repository: MenuRepository
    calendar: ServiceCalendar
    default_daily_limit: int | None = None

    def check_service_date(self, service_date: date) -> None:
        """Raise if orders for ``service_date`` are closed."""
        reason = self.calendar.closed_reason(service_date)
        if reason:
            raise InvalidMenuSelectionError(reason)

    def price_selection(
        self,
        service_date: date,
        line_items: list[LineItemRequest],
        already_ordered: dict[str, int],
    ) -> list[OrderLineItem]:
        """Validate requested lines and return them with price snapshots."""
        quantities = _merge_lines(line_items)
        self.check_service_date(service_date)

        week_start = week_start_for(service_date)
        weekly_menu = self.repository.get_weekly_menu(week_start)
        if weekly_menu is None or not weekly_menu.is_published:
            raise InvalidMenuSelectionError(
                f"No published menu for the week of {week_start.isoformat()}"
            )
        scheduled = weekly_menu.item_ids_for(day_name(service_date))
        items = self.repository.get_items(list(quantities))

        problems: list[str] = []
        priced: list[OrderLineItem] = []
        for item_id, quantity in quantities.items():
            item = items.get(item_id)
            if item is None:
                problems.append(f"Menu item {item_id} does not exist")
                continue
            if not item.is_available:
                problems.append(f"{item.name} is not available")
                continue
            if item_id not in scheduled:
                problems.append(
                    f"{item.name} is not on the menu for {day_name(service_date)}"
                )
                continue
            limit = (
                item.daily_limit
                if item.daily_limit is not None
                else self.default_daily_limit
            )
            ordered = already_ordered.get(item_id, 0)
            if limit is not None and ordered + quantity > limit:
                problems.append(
                    f"{item.name} is limited to {limit} per day "
                    f"({ordered} already ordered)"
                )
                continue
            priced.append(
                OrderLineItem(
                    menu_item_id=item.id,
                    name=item.name,
                    quantity=quantity,
                    unit_price=item.price,
                )
            )
        if problems:
            raise InvalidMenuSelectionError("; ".join(problems))
        return priced


def _merge_lines(line_items: list[LineItemRequest]) -> dict[str, int]:
    if not line_items:
        raise InvalidMenuSelectionError("Order has no line items")
    merged: dict[str, int] = {}
    for line in line_items:
        if line.quantity <= 0:
            raise InvalidMenuSelectionError(
                f"Quantity for {line.menu_item_id} must be greater than zero"
            )
        merged[line.menu_item_id] = merged.get(line.menu_item_id, 0) + line.quantity
    return merged
