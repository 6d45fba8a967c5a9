"""Dependency container wiring for the application."""

from dataclasses import dataclass

from supabase import create_client

from canteen_ordering.adapters.supabase_ledger_store import SupabaseLedgerStore
from canteen_ordering.adapters.supabase_menu_repository import SupabaseMenuRepository
from canteen_ordering.config import Settings, parse_cutoff
from canteen_ordering.services.calendar import ServiceCalendar
from canteen_ordering.services.commits import RetryPolicy
from canteen_ordering.services.menu import MenuValidator
from canteen_ordering.services.placement import OrderPlacementService
from canteen_ordering.services.wallets import WalletService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    placement_service: OrderPlacementService
    wallet_service: WalletService


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    ledger_store = SupabaseLedgerStore(supabase_client)
    menu_repository = SupabaseMenuRepository(supabase_client)
    calendar = ServiceCalendar(
        timezone=resolved_settings.school_timezone,
        same_day_cutoff=parse_cutoff(resolved_settings.same_day_cutoff),
        horizon_days=resolved_settings.order_horizon_days,
    )
    menu_validator = MenuValidator(
        repository=menu_repository,
        calendar=calendar,
        default_daily_limit=resolved_settings.default_daily_item_limit,
    )
    retry = RetryPolicy(
        max_attempts=resolved_settings.placement_max_attempts,
        backoff_seconds=resolved_settings.placement_backoff_seconds,
        backoff_max_seconds=resolved_settings.placement_backoff_max_seconds,
    )
    placement_service = OrderPlacementService(
        store=ledger_store,
        menu_validator=menu_validator,
        retry=retry,
    )
    wallet_service = WalletService(store=ledger_store, retry=retry)

    return AppContainer(
        settings=resolved_settings,
        placement_service=placement_service,
        wallet_service=wallet_service,
    )
