"""Supabase repository for menu items and weekly menus."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from canteen_ordering.domain.menu import MenuItem, WeeklyMenu
from canteen_ordering.domain.money import to_minor_units
from canteen_ordering.services.menu import MenuRepository


@dataclass
class SupabaseMenuRepository(MenuRepository):
    """Supabase implementation for menu reads."""

    client: Client

    def get_items(self, item_ids: list[str]) -> dict[str, MenuItem]:
        """Return menu items keyed by id."""
        if not item_ids:
            return {}
        response = (
            self.client.table("menu_items")
            .select("id, name, price, category, is_available, daily_limit")
            .in_("id", item_ids)
            .execute()
        )
        items = [_parse_item(row) for row in response.data or []]
        return {item.id: item for item in items}

    def get_weekly_menu(self, week_start: date) -> WeeklyMenu | None:
        """Return the weekly menu for a Monday, if present."""
        response = (
            self.client.table("weekly_menus")
            .select("week_start, publish_status, menu_items_by_day")
            .eq("week_start", week_start.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return WeeklyMenu(
            week_start=date.fromisoformat(str(row["week_start"])),
            publish_status=str(row.get("publish_status") or "draft"),
            items_by_day=row.get("menu_items_by_day") or {},
        )


def _parse_item(row: dict[str, object]) -> MenuItem:
    daily_limit = row.get("daily_limit")
    return MenuItem(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        price=to_minor_units(row.get("price", 0)),
        category=str(row.get("category", "")),
        is_available=bool(row.get("is_available", True)),
        daily_limit=int(daily_limit) if daily_limit is not None else None,
    )
