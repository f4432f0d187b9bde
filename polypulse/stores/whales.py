# 📁 polypulse/stores/whales.py
import logging
from datetime import timedelta

from polypulse.accounts.models import User, WhaleEvent, WhalePrefs
from polypulse.accounts.tier_manager import TierManager
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MIN_AMOUNT = 50000
MAX_ALERTS_PER_HOUR_WINDOW = 10


class WhaleStore:
    def __init__(self, db):
        self.db = db

    # ==================== PREFERENCES ====================

    def get_prefs(self, user_id):
        with self.db.session_scope() as session:
            return session.query(WhalePrefs).filter_by(user_id=user_id).first()

    def upsert_prefs(self, user_id, **fields):
        with self.db.session_scope() as session:
            prefs = session.query(WhalePrefs).filter_by(user_id=user_id).first()
            if prefs is None:
                prefs = WhalePrefs(user_id=user_id, enabled=True,
                                   min_amount_usd=DEFAULT_MIN_AMOUNT, alerts_sent_today=0)
                session.add(prefs)
            for key, value in fields.items():
                setattr(prefs, key, value)
            session.flush()
            return prefs

    def set_enabled(self, user_id, enabled, min_amount=None):
        fields = {'enabled': enabled}
        if min_amount is not None:
            fields['min_amount_usd'] = min_amount
        return self.upsert_prefs(user_id, **fields)

    def set_min_amount(self, user_id, amount):
        return self.upsert_prefs(user_id, min_amount_usd=amount, enabled=True)

    def get_subscribers(self, amount_usd, now=None):
        now = now or utcnow()
        with self.db.session_scope() as session:
            rows = (session.query(User, WhalePrefs)
                    .join(WhalePrefs, WhalePrefs.user_id == User.id)
                    .filter(WhalePrefs.enabled.is_(True))
                    .filter(WhalePrefs.min_amount_usd <= amount_usd)
                    .all())

        subscribers = []
        for user, prefs in rows:
            if not TierManager.is_premium(user, now):
                continue
            sent_today = prefs.alerts_sent_today or 0
            if prefs.last_alert_at and prefs.last_alert_at.date() != now.date():
                sent_today = 0
            recent = prefs.last_alert_at and now - prefs.last_alert_at < timedelta(hours=1)
            if recent and sent_today >= MAX_ALERTS_PER_HOUR_WINDOW:
                continue
            subscribers.append((user, prefs))
        return subscribers

    def record_sent(self, user_id):
        now = utcnow()
        with self.db.session_scope() as session:
            prefs = session.query(WhalePrefs).filter_by(user_id=user_id).first()
            if prefs is None:
                return
            if prefs.last_alert_at is None or prefs.last_alert_at.date() != now.date():
                prefs.alerts_sent_today = 1
            else:
                prefs.alerts_sent_today = (prefs.alerts_sent_today or 0) + 1
            prefs.last_alert_at = now

    # ==================== EVENTS ====================

    def log_event(self, event):
        with self.db.session_scope() as session:
            row = WhaleEvent(
                market_id=event.get('marketId'),
                market_title=event.get('marketTitle'),
                amount_usd=event.get('amountUsd'),
                side=event.get('side'),
                odds_before=event.get('oddsBefore'),
                odds_after=event.get('oddsAfter'),
                tx_hash=event.get('txHash'),
            )
            session.add(row)
            session.flush()
            return row

    def get_recent_events(self, hours=12, limit=5):
        since = utcnow() - timedelta(hours=hours)
        with self.db.session_scope() as session:
            return (session.query(WhaleEvent)
                    .filter(WhaleEvent.created_at >= since)
                    .order_by(WhaleEvent.amount_usd.desc())
                    .limit(limit)
                    .all())

    def get_market_stats(self, market_id):
        since = utcnow() - timedelta(hours=24)
        with self.db.session_scope() as session:
            events = (session.query(WhaleEvent)
                      .filter(WhaleEvent.market_id == market_id)
                      .filter(WhaleEvent.created_at >= since)
                      .all())
        stats = {'yesVolume': 0.0, 'noVolume': 0.0, 'count': len(events)}
        for event in events:
            key = 'yesVolume' if event.side == 'YES' else 'noVolume'
            stats[key] += event.amount_usd or 0
        return stats
