# 📁 polypulse/jobs/smart_alert_monitor.py
import logging
import time
from datetime import timedelta

from polypulse.bot import messages
from polypulse.bot.notifier import NotificationError
from polypulse.core.clock import utcnow
from polypulse.utils.categories import detect_category

logger = logging.getLogger(__name__)

VOLUME_SPIKE_THRESHOLD = 3
VOLUME_NOISE_FLOOR = 1000
MOMENTUM_THRESHOLD = 0.10
MOMENTUM_HOURS = 4
MAX_ALERTS_PER_CHECK = 5
TRACKED_MARKETS_COUNT = 50
SPIKE_COOLDOWN_HOURS = 4
MOMENTUM_COOLDOWN_HOURS = 4
NEW_MARKET_COOLDOWN_HOURS = 24

KNOWN_NAMESPACE = 'known_market'
KNOWN_TTL = timedelta(days=7)
BASELINE_NAMESPACE = 'baseline'
SEND_DELAY = 0.1


def market_key(market):
    return str(market.get('id') or market.get('slug'))


class SmartAlertMonitor:
    """Volume spikes, momentum moves and new markets over the trending batch"""

    def __init__(self, ctx, send_delay=SEND_DELAY):
        self.ctx = ctx
        self.send_delay = send_delay

    def _send(self, recipient, text, alert_type, market_id, data):
        try:
            self.ctx.notifier.send_message(recipient.telegram_id, text)
        except NotificationError as e:
            logger.error(f"❌ Failed to send {alert_type} alert to {recipient.telegram_id}: {e}")
            return False
        self.ctx.smart_alerts.log(recipient.id, alert_type, market_id, data)
        if self.send_delay:
            time.sleep(self.send_delay)
        return True

    def store_snapshots(self, markets):
        for market in markets:
            volume = market.get('volumeNum') or market.get('volume24hr') or 0
            self.ctx.smart_alerts.store_snapshot(market_key(market), float(volume),
                                                 market.get('yesPrice'))

    # ==================== VOLUME SPIKES ====================

    def check_volume_spikes(self, markets):
        subscribers = self.ctx.smart_alerts.get_subscribers('volume_spike')
        if not subscribers:
            return 0

        sent = 0
        for market in markets:
            if sent >= MAX_ALERTS_PER_CHECK:
                break
            market_id = market_key(market)
            average = self.ctx.smart_alerts.get_average_hourly_volume(market_id)
            if not average or average < VOLUME_NOISE_FLOOR:
                continue

            estimate = (market.get('volume24hr') or 0) / 24
            multiplier = estimate / average
            if multiplier < VOLUME_SPIKE_THRESHOLD:
                continue
            logger.info(f"📊 Volume spike: {market.get('question')} ({multiplier:.1f}x)")

            price_change = None
            history = self.ctx.smart_alerts.get_price_history(market_id, hours=1)
            if len(history) >= 2:
                old_price = history[0]['price']
                current = market.get('yesPrice')
                price_change = (current if current is not None else old_price) - old_price

            text = messages.volume_spike_alert(market, estimate, average, multiplier, price_change)
            for sub in subscribers:
                if sent >= MAX_ALERTS_PER_CHECK:
                    break
                user = sub['user']
                if self.ctx.smart_alerts.has_recent(user.id, 'volume_spike', market_id,
                                                    SPIKE_COOLDOWN_HOURS):
                    continue
                if self._send(user, text, 'volume_spike', market_id,
                              {'multiplier': round(multiplier, 2)}):
                    sent += 1
        return sent

    # ==================== MOMENTUM ====================

    def _momentum_moves(self, markets):
        now = utcnow()
        for market in markets:
            current = market.get('yesPrice')
            if not current:
                continue
            history = self.ctx.smart_alerts.get_price_history(market_key(market), hours=MOMENTUM_HOURS)
            if len(history) < 2:
                continue
            oldest = history[0]
            move = current - oldest['price']
            elapsed = (now - oldest['recorded_at']).total_seconds() / 3600
            if abs(move) >= MOMENTUM_THRESHOLD and elapsed <= MOMENTUM_HOURS:
                yield market, oldest['price'], current, elapsed

    def check_momentum(self, markets):
        subscribers = self.ctx.smart_alerts.get_subscribers('momentum')
        sent = 0
        category_sent = 0
        for market, old_price, current, elapsed in self._momentum_moves(markets):
            market_id = market_key(market)
            logger.info(f"🚀 Momentum: {market.get('question')} "
                        f"({(current - old_price) * 100:+.1f}% in {elapsed:.1f}h)")

            if sent < MAX_ALERTS_PER_CHECK:
                text = messages.momentum_alert(market, old_price, current, elapsed)
                for sub in subscribers:
                    if sent >= MAX_ALERTS_PER_CHECK:
                        break
                    user = sub['user']
                    if self.ctx.smart_alerts.has_recent(user.id, 'momentum', market_id,
                                                        MOMENTUM_COOLDOWN_HOURS):
                        continue
                    if self._send(user, text, 'momentum', market_id,
                                  {'priceMove': current - old_price, 'hoursElapsed': elapsed}):
                        sent += 1

            if category_sent < MAX_ALERTS_PER_CHECK:
                category_sent += self._notify_category_move(market, current - old_price,
                                                            MAX_ALERTS_PER_CHECK - category_sent)
        return sent + category_sent

    def _notify_category_move(self, market, change, limit):
        market_id = market_key(market)
        categories = self.ctx.categories.categorize_and_store(market_id, market.get('question') or '')
        sent = 0
        for category in categories:
            text = messages.category_move_alert(market, category, change)
            for user in self.ctx.categories.get_subscribers(category):
                if sent >= limit:
                    return sent
                if self.ctx.smart_alerts.has_recent(user.id, 'category_move', market_id,
                                                    MOMENTUM_COOLDOWN_HOURS):
                    continue
                if self._send(user, text, 'category_move', market_id, {'category': category}):
                    sent += 1
        return sent

    # ==================== NEW MARKETS ====================

    def find_new_markets(self, markets):
        """Markets not seen before; empty on the baseline tick"""
        if not markets:
            return []
        # marker never expires, so the baseline happens once per database
        baseline = self.ctx.seen.add(BASELINE_NAMESPACE, KNOWN_NAMESPACE)
        known = self.ctx.seen.keys(KNOWN_NAMESPACE)
        fresh = [m for m in markets if market_key(m) not in known]
        self.ctx.seen.add_many(KNOWN_NAMESPACE, [market_key(m) for m in markets], ttl=KNOWN_TTL)
        if baseline:
            logger.info(f"🆕 First run: tracking {len(markets)} markets as baseline")
            return []
        return fresh

    def _new_market_recipients(self, category):
        recipients = {}
        for sub in self.ctx.smart_alerts.get_subscribers('new_market'):
            if category in (sub['params'].get('categories') or []):
                recipients.setdefault(sub['user'].id, sub['user'])
        for user in self.ctx.categories.get_subscribers(category):
            recipients.setdefault(user.id, user)
        return list(recipients.values())

    def check_new_markets(self, markets):
        new_markets = self.find_new_markets(markets)
        if not new_markets:
            return 0
        logger.info(f"🆕 Found {len(new_markets)} new markets")

        sent = 0
        for market in new_markets:
            if sent >= MAX_ALERTS_PER_CHECK:
                break
            market_id = market_key(market)
            category = detect_category(market.get('question') or '')
            self.ctx.categories.categorize_and_store(market_id, market.get('question') or '')
            if category == 'other':
                continue

            text = messages.new_market_alert(market, category)
            for user in self._new_market_recipients(category):
                if sent >= MAX_ALERTS_PER_CHECK:
                    break
                if self.ctx.smart_alerts.has_recent(user.id, 'new_market', market_id,
                                                    NEW_MARKET_COOLDOWN_HOURS):
                    continue
                if self._send(user, text, 'new_market', market_id, {'category': category}):
                    sent += 1
        return sent

    # ==================== TICKS ====================

    def run_once(self):
        markets = self.ctx.markets.list_trending(limit=TRACKED_MARKETS_COUNT)
        if not markets:
            logger.info("🧠 No markets to check")
            return {}
        logger.info(f"🧠 Checking smart alerts over {len(markets)} markets")

        self.store_snapshots(markets)
        summary = {
            'volume_spike': self.check_volume_spikes(markets),
            'momentum': self.check_momentum(markets),
            'new_market': self.check_new_markets(markets),
        }
        logger.info(f"✅ Smart alert check complete: {summary}")
        return summary

    def cleanup(self):
        snapshots = self.ctx.smart_alerts.cleanup_old_snapshots(48)
        history = self.ctx.smart_alerts.cleanup_old_history(7)
        keys = self.ctx.seen.prune_expired()
        logger.info(f"🧹 Cleaned up {snapshots} snapshots, {history} history rows, {keys} dedup keys")
