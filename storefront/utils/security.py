# storefront/utils/security.py
import hashlib
import hmac
import time
from typing import Optional
from ..config import Config
from ..models.user import Identity

def _sign(message: str) -> str:
    return hmac.new(
        Config.SECRET_KEY.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()

def generate_access_token(user_id: str, is_admin: bool = False) -> str:
    """Issue a bearer token for a user"""
    if not user_id or ':' in user_id:
        raise ValueError(f"Invalid user id for token: {user_id!r}")
    timestamp = int(time.time())
    message = f"{user_id}:{int(is_admin)}:{timestamp}"
    return f"{message}:{_sign(message)}"

def verify_access_token(token: str) -> Optional[Identity]:
    """Return the identity a token vouches for, or None"""
    if not Config.SECRET_KEY or not token:
        return None
    try:
        message, signature = token.rsplit(':', 1)
        user_id, is_admin, timestamp = message.split(':')
        timestamp = int(timestamp)
    except ValueError:
        return None

    # Check signature
    if not hmac.compare_digest(signature, _sign(message)):
        return None

    # Check age
    if int(time.time()) - timestamp > Config.TOKEN_TTL:
        return None

    if not user_id or is_admin not in ("0", "1"):
        return None
    return Identity(user_id=user_id, is_admin=is_admin == "1")
