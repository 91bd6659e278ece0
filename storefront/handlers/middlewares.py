# storefront/handlers/middlewares.py
import logging
from aiohttp import web
from typing import Optional
from ..exceptions import StorefrontError
from ..models.user import Identity
from ..utils.security import verify_access_token

logger = logging.getLogger(__name__)

IDENTITY_KEY = web.RequestKey("identity", Optional[Identity])


@web.middleware
async def identity_middleware(request: web.Request, handler):
    """Attach the identity vouched for by the bearer token, if any"""
    request[IDENTITY_KEY] = None
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        request[IDENTITY_KEY] = verify_access_token(header[len("Bearer "):].strip())
    return await handler(request)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Render request failures as JSON"""
    try:
        return await handler(request)
    except StorefrontError as e:
        if e.http_status >= 500:
            logger.warning(f"{request.method} {request.path} failed: {e.code}: {e.message}")
        return web.json_response(e.to_dict(), status=e.http_status)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return web.json_response(
            {"error": e.reason, "message": e.text or e.reason, "retryable": False},
            status=e.status
        )
    except Exception as e:
        logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
        return web.json_response(
            {"error": "InternalError", "message": "Internal server error", "retryable": False},
            status=500
        )
