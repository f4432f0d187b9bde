# 📁 polypulse/core/context.py
import logging

from polypulse.accounts.tier_manager import TierManager
from polypulse.accounts.users import UserStore
from polypulse.api.polymarket_client import PolymarketClient
from polypulse.api.trades_client import TradesClient
from polypulse.billing.stripe_service import BillingService
from polypulse.bot.notifier import TelegramNotifier
from polypulse.core.config import Config
from polypulse.core.database import Database
from polypulse.stores.alerts import AlertStore
from polypulse.stores.briefing import BriefingStore
from polypulse.stores.categories import CategoryStore
from polypulse.stores.dedup import SeenStore
from polypulse.stores.portfolio import PortfolioStore
from polypulse.stores.predictions import PredictionStore
from polypulse.stores.smart_alerts import SmartAlertStore
from polypulse.stores.watchlist import WatchlistStore
from polypulse.stores.whales import WhaleStore

logger = logging.getLogger(__name__)


class AppContext:
    """Everything the bot, the web app and the background jobs share"""

    def __init__(self, db, markets, trades, notifier, billing, config=Config):
        self.config = config
        self.db = db
        self.markets = markets
        self.trades = trades
        self.notifier = notifier
        self.billing = billing

        self.users = UserStore(db)
        self.tiers = TierManager(db, config.FREE_LIMITS)
        self.alerts = AlertStore(db)
        self.watchlist = WatchlistStore(db)
        self.briefings = BriefingStore(db)
        self.whales = WhaleStore(db)
        self.portfolio = PortfolioStore(db)
        self.smart_alerts = SmartAlertStore(db)
        self.categories = CategoryStore(db)
        self.predictions = PredictionStore(db)
        self.seen = SeenStore(db)

        # filled in by JobScheduler so /stats can read job health
        self.scheduler = None

    @classmethod
    def from_config(cls, config=Config):
        db = Database(config.DATABASE_URL)
        ctx = cls(
            db=db,
            markets=PolymarketClient(),
            trades=TradesClient(),
            notifier=TelegramNotifier(config.TELEGRAM_TOKEN),
            billing=BillingService(),
            config=config,
        )
        logger.info(f"✅ App context ready ({config.ENVIRONMENT}, billing "
                    f"{'on' if ctx.billing.enabled else 'off'})")
        return ctx

    def is_premium(self, user):
        return self.tiers.is_premium(user)

    def close(self):
        if self.scheduler is not None:
            self.scheduler.stop()
        for client in (self.markets, self.trades, self.notifier):
            close = getattr(client, 'close', None)
            if close:
                close()
        self.db.dispose()
        logger.info("👋 App context closed")
