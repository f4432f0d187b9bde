# 📁 polypulse/jobs/whale_monitor.py
import logging
import time
from datetime import timedelta

from polypulse.bot import messages
from polypulse.bot.notifier import NotificationError

logger = logging.getLogger(__name__)

SEEN_NAMESPACE = 'whale_tx'
SEEN_TTL = timedelta(days=7)
SEEN_MAX_ENTRIES = 10000
SEEN_EVICT_COUNT = 1000
SEND_DELAY = 0.1


def classify_side(trade):
    """YES/NO exposure a trade adds"""
    side = (trade.get('side') or '').upper()
    outcome = (trade.get('outcome') or '').strip().lower()
    buying = side == 'BUY'
    if outcome in ('yes', 'no'):
        if outcome == 'yes':
            return 'YES' if buying else 'NO'
        return 'NO' if buying else 'YES'
    return 'YES' if buying else 'NO'


def trade_amount_usd(trade):
    return (trade.get('size') or 0) * (trade.get('price') or 0)


def build_event(trade, amount_usd):
    return {
        'marketId': trade.get('market_id') or 'unknown',
        'marketTitle': trade.get('market_title') or 'Unknown Market',
        'amountUsd': amount_usd,
        'side': classify_side(trade),
        'oddsBefore': trade.get('price_before'),
        'oddsAfter': trade.get('price'),
        'txHash': trade.get('id') or trade.get('tx_hash'),
    }


class WhaleMonitor:
    def __init__(self, ctx, min_amount=None, send_delay=SEND_DELAY):
        self.ctx = ctx
        self.min_amount = min_amount if min_amount is not None else ctx.config.WHALE_MIN_AMOUNT
        self.send_delay = send_delay

    def detect(self, trades):
        """Whale events in trades that have not been seen before"""
        events = []
        for trade in trades:
            amount = trade_amount_usd(trade)
            if amount < self.min_amount:
                continue
            key = trade.get('id') or trade.get('tx_hash')
            if key and not self.ctx.seen.add(SEEN_NAMESPACE, key, ttl=SEEN_TTL):
                continue
            events.append(build_event(trade, amount))

        self.ctx.seen.prune(SEEN_NAMESPACE, max_entries=SEEN_MAX_ENTRIES,
                            evict_count=SEEN_EVICT_COUNT)
        return events

    def handle_event(self, event):
        emoji, tier = messages.whale_tier(event['amountUsd'])
        logger.info(f"{emoji} {tier} detected: ${event['amountUsd']:,.0f} on {event['side']} "
                    f"for \"{event['marketTitle']}\"")

        try:
            self.ctx.whales.log_event(event)
        except Exception as e:
            logger.error(f"❌ Failed to log whale event: {e}")

        stats = self.ctx.whales.get_market_stats(event['marketId'])
        subscribers = self.ctx.whales.get_subscribers(event['amountUsd'])
        logger.info(f"🐋 {len(subscribers)} subscribers for this whale")

        text = messages.whale_alert(event, stats)
        sent = 0
        for i, (user, _prefs) in enumerate(subscribers):
            if i and self.send_delay:
                time.sleep(self.send_delay)
            try:
                self.ctx.notifier.send_message(user.telegram_id, text)
            except NotificationError as e:
                logger.error(f"❌ Failed to send whale alert to {user.telegram_id}: {e}")
                continue
            self.ctx.whales.record_sent(user.id)
            sent += 1
        return sent

    def run_once(self):
        trades = self.ctx.trades.fetch_recent_trades(limit=100)
        events = self.detect(trades)
        for event in events:
            try:
                self.handle_event(event)
            except Exception as e:
                logger.error(f"❌ Whale event {event['txHash']} failed: {e}")
        return events
