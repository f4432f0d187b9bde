# 📁 polypulse/jobs/alert_engine.py
import logging
import time

from polypulse.api.polymarket_client import MarketAPIError
from polypulse.bot import messages
from polypulse.bot.notifier import NotificationError
from polypulse.utils.format import format_percent

logger = logging.getLogger(__name__)

MARKET_FETCH_DELAY = 0.2


def check_trigger(alert, current_price):
    """True when the price has reached the alert threshold in its direction"""
    if current_price is None:
        return False
    if alert.direction == 'above':
        return current_price >= alert.threshold
    if alert.direction == 'below':
        return current_price <= alert.threshold
    if alert.direction == 'change':
        # no price history for change alerts; they behave like 'above'
        return current_price >= alert.threshold
    return False


class AlertEngine:
    def __init__(self, ctx, fetch_delay=MARKET_FETCH_DELAY):
        self.ctx = ctx
        self.fetch_delay = fetch_delay

    def _fetch_markets(self, market_ids):
        markets = {}
        for i, market_id in enumerate(market_ids):
            if i and self.fetch_delay:
                time.sleep(self.fetch_delay)
            try:
                market = self.ctx.markets.get_market(market_id)
            except MarketAPIError as e:
                logger.error(f"❌ Failed to fetch market {market_id}: {e}")
                continue
            if market:
                markets[market_id] = market
        return markets

    def run_once(self):
        alerts = self.ctx.alerts.get_all_active()
        if not alerts:
            return 0

        logger.info(f"📊 Checking {len(alerts)} alerts...")
        market_ids = list(dict.fromkeys(a.market_id or a.market_slug for a in alerts))
        markets = self._fetch_markets(market_ids)

        fired = 0
        for alert in alerts:
            market = markets.get(alert.market_id or alert.market_slug)
            if not market:
                continue
            current_price = market.get('yesPrice')
            if not check_trigger(alert, current_price):
                continue

            try:
                self.ctx.notifier.send_message(alert.chat_id,
                                               messages.alert_triggered(alert, market, current_price))
            except NotificationError as e:
                logger.error(f"❌ Failed to send alert to {alert.chat_id}: {e}")
            self.ctx.alerts.trigger(alert.id)
            fired += 1
            logger.info(f"🔔 Alert {alert.id[:8]} triggered at {format_percent(current_price)}")

        if fired:
            logger.info(f"✅ Alert check done: {fired} triggered")
        return fired
