"""
Application constants for cartsync

Centralizes magic numbers and hard-coded strings.
"""

from typing import Final


# Cache configuration constants
class CacheSettings:
    """Cache TTL settings"""

    CART_CACHE_TTL_SECONDS: Final[int] = 5
    CATALOG_CACHE_TTL_SECONDS: Final[int] = 600  # 10 minutes
    CART_VIEW_KEY: Final[str] = "cart:view"


# Ledger persistence constants
class PersistenceSettings:
    """Durable ledger storage settings"""

    STORAGE_KEY: Final[str] = "storefront-cart-addons"
    CURRENT_SCHEMA_VERSION: Final[int] = 2
    LEGACY_SCHEMA_VERSION: Final[int] = 1
    DEFAULT_QUOTA_BYTES: Final[int] = 5 * 1024 * 1024  # 5MB, browser localStorage size
    PROVISIONAL_KEY_PREFIX: Final[str] = "provisional:"


# Upstream Store API constants
class UpstreamSettings:
    """Store API paths and headers"""

    CART_PATH: Final[str] = "/cart"
    ADD_ITEM_PATH: Final[str] = "/cart/add-item"
    UPDATE_ITEM_PATH: Final[str] = "/cart/update-item"
    REMOVE_ITEM_PATH: Final[str] = "/cart/remove-item"
    CART_ITEMS_PATH: Final[str] = "/cart/items"
    APPLY_COUPON_PATH: Final[str] = "/cart/apply-coupon"
    REMOVE_COUPON_PATH: Final[str] = "/cart/remove-coupon"
    SELECT_SHIPPING_PATH: Final[str] = "/cart/select-shipping-rate"
    PRODUCT_PATH: Final[str] = "/products/{product_id}"

    NONCE_HEADERS: Final[tuple] = ("Nonce", "X-WC-Store-API-Nonce")
    CART_TOKEN_HEADER: Final[str] = "Cart-Token"
    DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
    SLOW_REQUEST_THRESHOLD_SECONDS: Final[float] = 2.0


# Logging configuration constants
class LoggingSettings:
    """Logging file sizes and rotation settings"""

    MAX_LOG_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10MB
    BACKUP_COUNT: Final[int] = 5


# File and directory constants
class FileSettings:
    """File paths and directory settings"""

    LOGS_DIRECTORY: Final[str] = "logs"
    DATA_DIRECTORY: Final[str] = "data"
    DEFAULT_DATABASE_URL: Final[str] = "sqlite:///data/cartsync.db"

    MAIN_LOG_FILE: Final[str] = "cartsync.log"
    ERROR_LOG_FILE: Final[str] = "errors.log"
    JSON_LOG_FILE: Final[str] = "cartsync.json.log"
    PERFORMANCE_LOG_FILE: Final[str] = "performance.log"
