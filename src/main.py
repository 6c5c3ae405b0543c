"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from src.api.health import router as health_router
from src.api.market import router as market_router
from src.api.players import router as players_router
from src.config import Settings, settings
from src.core.event_bus import EventBus
from src.core.inventory import ItemCatalog
from src.core.logging import get_logger, setup_logging
from src.db.store import KeyValueStore, SqlKeyValueStore
from src.services.earnings_ledger import EarningsLedger
from src.services.inventory_service import InventoryService
from src.services.marketplace_service import MarketplaceService
from src.services.notifier import OutboxChannel
from src.services.persistence_queue import PersistenceQueue
from src.services.session_service import STARTER_KIT, SessionService

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


def build_services(app: FastAPI, store: KeyValueStore, config: Settings) -> None:
    """서비스 그래프 구성 후 app.state에 등록."""
    event_bus = EventBus()
    channel = OutboxChannel(max_size=config.OUTBOX_SIZE)

    catalog = ItemCatalog()
    catalog.load_from_json(config.ITEM_CATALOG_PATH)

    inventory_service = InventoryService(
        event_bus=event_bus,
        channel=channel,
        catalog=catalog,
        inventory_limit=config.INVENTORY_LIMIT,
        ui_flush_delay=config.UI_FLUSH_DELAY_SECONDS,
        starting_currency=config.STARTING_CURRENCY,
    )
    persistence = PersistenceQueue(
        store=store,
        event_bus=event_bus,
        snapshot_provider=inventory_service.snapshot,
        is_online=inventory_service.is_connected,
        interval=config.SAVE_SWEEP_INTERVAL_SECONDS,
    )
    ledger = EarningsLedger(
        store, event_bus, settle_interval=config.SAVE_SWEEP_INTERVAL_SECONDS
    )
    marketplace = MarketplaceService(
        store=store,
        event_bus=event_bus,
        inventory_service=inventory_service,
        ledger=ledger,
        channel=channel,
        require_ownership=config.MARKET_REQUIRE_OWNERSHIP,
        listing_ttl=config.LISTING_TTL_SECONDS,
        expiry_interval=config.LISTING_EXPIRY_CHECK_SECONDS,
    )
    sessions = SessionService(
        event_bus=event_bus,
        channel=channel,
        inventory_service=inventory_service,
        persistence=persistence,
        marketplace=marketplace,
        ledger=ledger,
        starter_kit=STARTER_KIT if config.STARTER_KIT_ENABLED else (),
    )

    app.state.store = store
    app.state.event_bus = event_bus
    app.state.channel = channel
    app.state.inventory_service = inventory_service
    app.state.persistence = persistence
    app.state.earnings_ledger = ledger
    app.state.marketplace_service = marketplace
    app.state.session_service = sessions


def _default_store() -> KeyValueStore:
    from src.db.database import SessionLocal, engine as db_engine
    from src.db.models import Base

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")
    return SqlKeyValueStore(SessionLocal)


def create_app(
    store: Optional[KeyValueStore] = None, config: Settings = settings
) -> FastAPI:
    """앱 생성. store 미지정 시 DATABASE_URL의 SQL 저장소 사용."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup and shutdown events."""
        logger.info("Initializing services...")
        build_services(app, store if store is not None else _default_store(), config)

        loaded = await app.state.marketplace_service.load()
        logger.info("Marketplace ready (%d listings).", loaded)

        app.state.persistence.start()
        app.state.marketplace_service.start()
        app.state.earnings_ledger.start()
        logger.info("Services initialized.")

        yield

        # 종료 시 정리
        logger.info("Shutting down...")
        await app.state.earnings_ledger.stop()
        await app.state.marketplace_service.stop()
        await app.state.persistence.stop()
        saved = await app.state.session_service.shutdown()
        # 강제 저장 실패분 마지막 재시도
        await app.state.persistence.sweep()
        await app.state.earnings_ledger.settle()
        parked = app.state.persistence.parked_ids()
        if parked:
            logger.error("Shutdown with unsaved inventories: %s", parked)
        unsettled = app.state.earnings_ledger.unsettled_ids()
        if unsettled:
            logger.error("Shutdown with unsettled earnings: %s", unsettled)
        logger.info("Saved %d inventories on shutdown.", saved)

    app = FastAPI(title="Inventory Marketplace", lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(players_router)
    app.include_router(market_router)
    return app


app = create_app()
