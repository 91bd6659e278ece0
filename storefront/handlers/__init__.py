"""HTTP handlers"""
from .base_handler import BaseHandler
from .config_handlers import ConfigHandler
from .middlewares import error_middleware, identity_middleware
from .order_handlers import OrderHandler

__all__ = [
    'BaseHandler',
    'ConfigHandler',
    'OrderHandler',
    'error_middleware',
    'identity_middleware',
]
