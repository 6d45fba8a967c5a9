"""Read-only menu reference data consulted while validating orders."""

from dataclasses import dataclass, field
from datetime import date

PUBLISH_DRAFT = "draft"
PUBLISH_PUBLISHED = "published"
PUBLISH_ARCHIVED = "archived"

SCHOOL_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")


@dataclass(frozen=True)
class MenuItem:
    """Menu item snapshot; ``price`` is in minor units."""

    id: str
    name: str
    price: int
    category: str
    is_available: bool = True
    daily_limit: int | None = None


@dataclass(frozen=True)
class WeeklyMenu:
    """Menu for the school week starting ``week_start`` (a Monday)."""

    week_start: date
    publish_status: str
    items_by_day: dict[str, dict[str, list[str]]] = field(default_factory=dict)

    @property
    def is_published(self) -> bool:
        return self.publish_status == PUBLISH_PUBLISHED

    def item_ids_for(self, day_name: str) -> set[str]:
        """Return every item id scheduled on ``day_name`` across meal types."""
        meals = self.items_by_day.get(day_name) or {}
        return {item_id for ids in meals.values() for item_id in ids}
