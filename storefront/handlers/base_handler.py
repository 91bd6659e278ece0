# storefront/handlers/base_handler.py
import json
from typing import Any, Dict
from aiohttp import web
from ..exceptions import Unauthorized, ValidationError
from ..models.user import Identity
from .middlewares import IDENTITY_KEY

class BaseHandler:
    """Base class for HTTP handlers"""

    @staticmethod
    def identity(request: web.Request) -> Identity:
        """Authenticated caller, or 401"""
        identity = request.get(IDENTITY_KEY)
        if identity is None:
            raise Unauthorized()
        return identity

    @staticmethod
    async def read_json(request: web.Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body

    @staticmethod
    def json_response(data: Any, status: int = 200) -> web.Response:
        return web.json_response(data, status=status)
