# 📁 polypulse/jobs/briefing.py
"""
Morning briefing content.

Shared by the hourly cron and the on-demand /briefing preview. Each section
is gathered independently; a section that fails to load is logged and left
empty so the rest of the briefing still goes out.
"""
import logging
import time
from datetime import timedelta

from polypulse.api.polymarket_client import MarketAPIError
from polypulse.bot import messages
from polypulse.core.clock import utcnow
from polypulse.utils.categories import categorize_market

logger = logging.getLogger(__name__)

WATCHLIST_ITEMS = 5
LOOKUP_DELAY = 0.1
NEW_MARKET_MIN_VOLUME = 500


def to_mover(market):
    current = market.get('yesPrice')
    current = 0.5 if current is None else current
    change = market.get('oneDayPriceChange') or 0
    return {
        'question': market.get('question'),
        'currentPrice': current,
        'yesterdayPrice': current - change,
        'volume24hr': market.get('volume24hr'),
    }


def top_movers(markets, limit=5):
    ranked = sorted(markets, key=lambda m: abs(m.get('oneDayPriceChange') or 0), reverse=True)
    return [to_mover(m) for m in ranked[:limit]]


class BriefingBuilder:
    def __init__(self, ctx, lookup_delay=LOOKUP_DELAY):
        self.ctx = ctx
        self.lookup_delay = lookup_delay

    def watchlist_with_prices(self, user_id):
        items = []
        for i, item in enumerate(self.ctx.watchlist.list(user_id)[:WATCHLIST_ITEMS]):
            if i and self.lookup_delay:
                time.sleep(self.lookup_delay)
            try:
                market = self.ctx.markets.get_market(item.market_id)
            except MarketAPIError as e:
                logger.error(f"❌ Error fetching watchlist item {item.market_id}: {e}")
                continue
            if not market:
                continue
            items.append({
                'name': item.market_name or market.get('question'),
                'currentPrice': market.get('yesPrice') or 0,
                'change': market.get('oneDayPriceChange') or 0,
            })
        return items

    def triggered_alerts(self, user_id):
        return self.ctx.alerts.get_triggered_since(user_id, utcnow() - timedelta(hours=24), limit=5)

    def trending_movers(self):
        try:
            return top_movers(self.ctx.markets.list_trending(limit=20))
        except MarketAPIError as e:
            logger.error(f"❌ Error getting top movers: {e}")
            return []

    def whale_events(self, hours=12):
        return self.ctx.whales.get_recent_events(hours=hours, limit=5)

    def new_markets(self):
        try:
            fresh = self.ctx.markets.get_new_markets(hours=48, limit=10)
        except MarketAPIError as e:
            logger.error(f"❌ Error getting new markets: {e}")
            return []
        active = [m for m in fresh
                  if (m.get('volume24hr') or m.get('volumeNum') or 0) >= NEW_MARKET_MIN_VOLUME]
        return active[:3]

    def category_digests(self, user_id):
        subs = self.ctx.categories.get_subs(user_id)
        if not subs:
            return []
        try:
            trending = self.ctx.markets.list_trending(limit=50)
            fresh = self.ctx.markets.get_new_markets(hours=48, limit=20)
        except MarketAPIError as e:
            logger.error(f"❌ Error building category digests: {e}")
            return []

        sections = []
        for sub in subs:
            in_category = [m for m in trending if sub.category in categorize_market(m.get('question'))]
            new_in_category = [m for m in fresh if sub.category in categorize_market(m.get('question'))]
            if not in_category and not new_in_category:
                continue
            sections.append({
                'category': sub.category,
                'topMovers': top_movers(in_category, limit=3),
                'newMarkets': new_in_category[:2],
            })
        return sections

    def gather(self, user):
        return {
            'watchlistItems': self.watchlist_with_prices(user.id),
            'triggeredAlerts': self.triggered_alerts(user.id),
            'topMovers': self.trending_movers(),
            'whaleEvents': self.whale_events(),
            'newMarkets': self.new_markets(),
            'categoryDigests': self.category_digests(user.id),
        }

    def build_message(self, user):
        """Formatted briefing, or None when there is nothing worth sending"""
        data = self.gather(user)
        if not (data['watchlistItems'] or data['triggeredAlerts']
                or data['topMovers'] or data['whaleEvents']):
            return None
        return messages.morning_briefing(data)
