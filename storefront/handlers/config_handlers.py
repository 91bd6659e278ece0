# storefront/handlers/config_handlers.py
from aiohttp import web
from ..config import Config
from .base_handler import BaseHandler

class ConfigHandler(BaseHandler):
    """Public client configuration and health check"""

    async def paypal_client_id(self, request: web.Request) -> web.Response:
        """GET /api/config/paypal"""
        return self.json_response({"clientId": Config.PAYPAL_CLIENT_ID})

    async def health(self, request: web.Request) -> web.Response:
        return self.json_response({"status": "ok"})

    def register(self, app: web.Application):
        app.router.add_get("/api/config/paypal", self.paypal_client_id)
        app.router.add_get("/health", self.health)
