import os
import logging
from dotenv import load_dotenv

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _flag(name, default="true"):
    return os.getenv(name, default).lower() == "true"


class Config:
    """Core configuration for PolyPulse"""

    # ==================== BOT CONFIGURATION ====================
    TELEGRAM_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    BOT_USERNAME = "@GetPolyPulse_bot"
    BOT_URL = os.getenv("BOT_URL", "https://t.me/GetPolyPulse_bot")
    PUBLIC_URL = os.getenv("BOT_WEBHOOK_URL", "").rstrip("/")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/polypulse.db")
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    PORT = int(os.getenv("PORT", "8000"))

    # ==================== ADMIN CONFIGURATION ====================
    ADMIN_IDS = []
    admin_env = os.getenv("ADMIN_IDS", "")
    if admin_env:
        try:
            ADMIN_IDS = [int(id.strip()) for id in admin_env.split(",") if id.strip()]
        except ValueError:
            logger.warning("Invalid ADMIN_IDS format")

    # ==================== POLYMARKET API ====================
    POLYMARKET_API_URL = os.getenv("POLYMARKET_API_URL", "https://gamma-api.polymarket.com")
    POLYMARKET_TRADES_URL = os.getenv("POLYMARKET_TRADES_URL", "https://data-api.polymarket.com")
    API_TIMEOUT = int(os.getenv("API_TIMEOUT", "15"))
    USER_AGENT = "PolyPulse/2.0"
    TRENDING_CACHE_TTL = int(os.getenv("TRENDING_CACHE_TTL", "60"))
    CATALOG_CACHE_TTL = int(os.getenv("CATALOG_CACHE_TTL", "300"))
    CATALOG_MAX_PAGES = int(os.getenv("CATALOG_MAX_PAGES", "5"))
    CATALOG_PAGE_SIZE = int(os.getenv("CATALOG_PAGE_SIZE", "100"))

    # ==================== BILLING ====================
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "").strip()
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "").strip()
    STRIPE_PRICE_ID = os.getenv("STRIPE_PRICE_ID", "").strip()
    PREMIUM_PRICE_DISPLAY = "7 days free, then \\$9\\.99/month"
    TRIAL_DAYS = 7

    # ==================== FEATURE FLAGS ====================
    ENABLE_WHALES = _flag("ENABLE_WHALES")
    ENABLE_SMART_ALERTS = _flag("ENABLE_SMART_ALERTS")
    ENABLE_BRIEFINGS = _flag("ENABLE_BRIEFINGS")

    # ==================== TIERS ====================
    FREE_LIMITS = {
        "trending": 3,
        "price": 10,
        "search": 5,
        "alerts": 3,
        "watchlist": 5,
        "positions": 1,
        "categories": 1,
    }

    PREMIUM_FEATURES = [
        "Unlimited price alerts",
        "Whale movement notifications",
        "Daily market digests",
        "Volume anomaly detection",
        "Watchlist & portfolio tracking",
        "Priority support",
    ]

    # ==================== JOB SCHEDULE ====================
    ALERT_CHECK_INTERVAL = 60  # seconds
    ALERT_FIRST_CHECK_DELAY = 30
    WHALE_POLL_INTERVAL = 30
    WHALE_MIN_AMOUNT = 50000
    SMART_ALERT_POLL_INTERVAL = 300
    DEFAULT_DIGEST_HOUR = 13

    SPARKLINE_CHARS = "▁▂▃▄▅▆▇█"

    ERRORS = {
        "MARKET_NOT_FOUND": "Market not found. Try a different search term.",
        "API_UNAVAILABLE": "Polymarket data temporarily unavailable. Try again shortly.",
        "RATE_LIMITED": "You've hit the free tier limit.",
        "GENERIC": "Something went wrong. Please try again in a moment.",
        "NOT_PREMIUM": "This feature requires PolyPulse Premium.",
    }

    # ==================== VALIDATION METHODS ====================
    @classmethod
    def billing_enabled(cls):
        return bool(cls.STRIPE_SECRET_KEY and cls.STRIPE_PRICE_ID)

    @classmethod
    def validate(cls):
        """Validate essential configuration"""
        errors = []

        if not cls.TELEGRAM_TOKEN:
            errors.append("TELEGRAM_BOT_TOKEN is required")

        if not cls.DATABASE_URL:
            errors.append("DATABASE_URL is required")

        if not cls.billing_enabled():
            logger.warning("Stripe not configured. /upgrade will show the coming-soon message.")
        elif not cls.STRIPE_WEBHOOK_SECRET:
            logger.warning("STRIPE_WEBHOOK_SECRET missing. Webhook events will be rejected.")

        if errors:
            error_msg = "Configuration errors:\n- " + "\n- ".join(errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info("✅ Configuration validated successfully")
        logger.info(f"🤖 Bot Environment: {cls.ENVIRONMENT}")
        logger.info(f"📡 Market API: {cls.POLYMARKET_API_URL}")
        logger.info(f"💳 Billing: {'enabled' if cls.billing_enabled() else 'disabled'}")
        logger.info(f"👑 Admin Users: {len(cls.ADMIN_IDS)}")

        return True
