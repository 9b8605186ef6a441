from classpoints.core.config import Settings
from classpoints.db.store import JsonStore
from classpoints.services.accounts import AccountService
from classpoints.services.config_service import ConfigService
from classpoints.services.events import EventBus
from classpoints.services.ledger import Ledger
from classpoints.services.products import ProductService
from classpoints.services.rankings import RankingsService
from classpoints.services.reservations import ReservationEngine
from classpoints.services.students import StudentService


class ServiceContainer:
    """Explicit wiring of the store, the bus and the services that share them."""

    def __init__(self, settings: Settings, store: JsonStore | None = None, bus: EventBus | None = None):
        self.settings = settings
        self.store = store or JsonStore(
            settings.data_path,
            settings.backup_path,
            cache_ttl_seconds=settings.store_cache_ttl_seconds,
            cache_size=settings.store_cache_size,
            max_backups=settings.store_max_backups,
            read_retry_delay_seconds=settings.store_read_retry_delay_seconds,
        )
        self.bus = bus or EventBus(max_buffer=settings.sse_max_buffer)
        self.ledger = Ledger(self.store, self.bus)
        self.rankings = RankingsService(
            self.store,
            timezone=settings.timezone,
            week_start=settings.week_start_index,
            cache_ttl_seconds=settings.rankings_cache_ttl_seconds,
            cache_size=settings.rankings_cache_size,
            broadcast_limit=settings.rankings_broadcast_limit,
        )
        self.reservations = ReservationEngine(self.store, self.ledger, self.bus)
        self.students = StudentService(self.store, self.bus)
        self.products = ProductService(self.store, self.bus)
        self.config = ConfigService(self.store, self.bus)
        self.accounts = AccountService(self.store)

    def broadcast_rankings(self) -> None:
        self.bus.rankings_updated(self.rankings.snapshot())
