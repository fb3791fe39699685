"""
Runtime settings for the order and product services.

Everything is read once from the environment (a local .env file is honoured)
so a deployment only has to set the variables it wants to change.
"""
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Orders ---
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "RAY")
ORDER_NUMBER_MAX_ATTEMPTS = int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "5"))
DEFAULT_SHIPPING_COST = Decimal(os.getenv("DEFAULT_SHIPPING_COST", "0"))
DEFAULT_SHIPPING_COUNTRY = os.getenv("DEFAULT_SHIPPING_COUNTRY", "Maroc")
ORDER_STRICT_TRANSITIONS = _flag("ORDER_STRICT_TRANSITIONS")

# --- Listing ---
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

# --- Caching ---
STATS_CACHE_TTL_SECONDS = int(os.getenv("STATS_CACHE_TTL_SECONDS", "300"))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "256"))

# --- Rate limiting ---
RATE_LIMIT_ENABLED = _flag("RATE_LIMIT_ENABLED", "true")
TRACKING_RATE_LIMIT = os.getenv("TRACKING_RATE_LIMIT", "30/minute")
CHECKOUT_RATE_LIMIT = os.getenv("CHECKOUT_RATE_LIMIT", "10/minute")

# --- Catalog ---
LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "10"))
