# storefront/app.py
import logging
from typing import Optional
from aiohttp import web
from .config import Config
from .database.database import Database
from .database.order_store import MemoryOrderStore, OrderStore, PostgresOrderStore
from .handlers import ConfigHandler, OrderHandler, error_middleware, identity_middleware
from .services.cart_service import PricingPolicy
from .services.fulfillment_service import FulfillmentService
from .services.order_service import OrderService
from .services.payment_service import PaymentService
from .services.paypal_service import PayPalCaptureVerifier, build_capture_verifier

class StorefrontApp:
    def __init__(self, store: Optional[OrderStore] = None,
                 verifier: Optional[PayPalCaptureVerifier] = None,
                 pricing: Optional[PricingPolicy] = None):
        """Wire services and routes"""
        Config.validate()
        self.logger = logging.getLogger(__name__)
        self.db: Optional[Database] = None

        if store is None:
            if Config.DATABASE_URL:
                self.db = Database(Config.DATABASE_URL)
                store = PostgresOrderStore(self.db)
            else:
                self.logger.warning("DATABASE_URL not set, orders are kept in memory")
                store = MemoryOrderStore()
        self.store = store
        self.verifier = verifier if verifier is not None else build_capture_verifier()
        self.pricing = pricing or PricingPolicy()

        self.application = web.Application(middlewares=[error_middleware, identity_middleware])
        self.application.on_startup.append(self._connect)
        self.application.on_cleanup.append(self._disconnect)
        self.setup_handlers()

    def setup_handlers(self):
        """Register HTTP routes"""
        order_handler = OrderHandler(
            order_service=OrderService(self.store),
            payment_service=PaymentService(self.store, self.verifier),
            fulfillment_service=FulfillmentService(self.store),
            pricing=self.pricing,
        )
        order_handler.register(self.application)
        ConfigHandler().register(self.application)

    async def _connect(self, app: web.Application):
        if self.db is not None:
            await self.db.connect()

    async def _disconnect(self, app: web.Application):
        await self.store.close()

    async def start(self) -> web.AppRunner:
        """Start serving and return the runner"""
        runner = web.AppRunner(self.application)
        await runner.setup()
        site = web.TCPSite(runner, Config.HOST, Config.PORT)
        await site.start()
        self.logger.info(f"Listening on {Config.HOST}:{Config.PORT}")
        return runner
