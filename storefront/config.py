# storefront/config.py
import os
import logging
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv
from typing import Optional

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration settings for the order service"""

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8080"))

    # Database settings (in-memory store when unset)
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL") or None
    STORE_TIMEOUT: float = float(os.getenv("STORE_TIMEOUT", "5"))

    # Auth settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    TOKEN_TTL: int = int(os.getenv("TOKEN_TTL", "86400"))

    # Pricing policy
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "100.00"))
    SHIPPING_FLAT_RATE: Decimal = Decimal(os.getenv("SHIPPING_FLAT_RATE", "10.00"))
    TAX_RATE: Decimal = Decimal(os.getenv("TAX_RATE", "0.15"))

    # Payment settings
    PAYPAL_CLIENT_ID: str = os.getenv("PAYPAL_CLIENT_ID", "")
    PAYPAL_CLIENT_SECRET: str = os.getenv("PAYPAL_CLIENT_SECRET", "")
    PAYPAL_API_URL: str = os.getenv("PAYPAL_API_URL", "https://api-m.sandbox.paypal.com")
    ALLOW_MANUAL_CAPTURES: bool = _env_bool("ALLOW_MANUAL_CAPTURES")

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "UTC")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))

    @classmethod
    def paypal_enabled(cls) -> bool:
        return bool(cls.PAYPAL_CLIENT_ID and cls.PAYPAL_CLIENT_SECRET)

    @classmethod
    def validate(cls):
        """Fail fast on settings the server cannot run without"""
        if not cls.SECRET_KEY:
            raise ValueError("No SECRET_KEY set in environment")
        if cls.STORE_TIMEOUT <= 0:
            raise ValueError("STORE_TIMEOUT must be positive")


def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = Config.LOG_DIR / "storefront.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
