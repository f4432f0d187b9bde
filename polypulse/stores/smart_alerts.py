# 📁 polypulse/stores/smart_alerts.py
import logging
from datetime import timedelta

from polypulse.accounts.models import SmartAlertHistory, SmartAlertPrefs, User, VolumeSnapshot
from polypulse.accounts.tier_manager import TierManager
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)

SMART_ALERT_TYPES = {
    'volume_spike': {'name': 'Volume Spikes', 'emoji': '📊',
                     'desc': 'Unusual trading volume (3x+ normal)'},
    'momentum': {'name': 'Price Momentum', 'emoji': '🚀',
                 'desc': 'Big price moves (10%+ in 4h)'},
    'divergence': {'name': 'Whale Divergence', 'emoji': '🔀',
                   'desc': 'Whales betting against the crowd'},
    'new_market': {'name': 'New Markets', 'emoji': '🆕',
                   'desc': 'Fresh markets in your categories'},
}


class SmartAlertStore:
    def __init__(self, db):
        self.db = db

    # ==================== PREFERENCES ====================

    def get_prefs(self, user_id):
        with self.db.session_scope() as session:
            return session.query(SmartAlertPrefs).filter_by(user_id=user_id).all()

    def upsert_pref(self, user_id, alert_type, enabled=None, params=None):
        if alert_type not in SMART_ALERT_TYPES:
            raise ValueError(f"Unknown smart alert type: {alert_type}")
        with self.db.session_scope() as session:
            pref = session.query(SmartAlertPrefs).filter_by(user_id=user_id, alert_type=alert_type).first()
            if pref is None:
                pref = SmartAlertPrefs(user_id=user_id, alert_type=alert_type,
                                       enabled=True, params={})
                session.add(pref)
            if enabled is not None:
                pref.enabled = enabled
            if params is not None:
                pref.params = dict(params)
            session.flush()
            return pref

    def set_enabled(self, user_id, alert_type, enabled):
        return self.upsert_pref(user_id, alert_type, enabled=enabled)

    def get_subscribers(self, alert_type, now=None):
        """[{'user': User, 'telegram_id': int, 'params': dict}] for premium users with the type on"""
        with self.db.session_scope() as session:
            rows = (session.query(User, SmartAlertPrefs)
                    .join(SmartAlertPrefs, SmartAlertPrefs.user_id == User.id)
                    .filter(SmartAlertPrefs.alert_type == alert_type)
                    .filter(SmartAlertPrefs.enabled.is_(True))
                    .all())
        return [{'user': user, 'telegram_id': user.telegram_id, 'params': pref.params or {}}
                for user, pref in rows if TierManager.is_premium(user, now)]

    # ==================== HISTORY ====================

    def has_recent(self, user_id, alert_type, market_id, hours=4):
        since = utcnow() - timedelta(hours=hours)
        with self.db.session_scope() as session:
            return (session.query(SmartAlertHistory)
                    .filter_by(user_id=user_id, alert_type=alert_type, market_id=str(market_id))
                    .filter(SmartAlertHistory.sent_at >= since)
                    .count()) > 0

    def log(self, user_id, alert_type, market_id, data=None):
        with self.db.session_scope() as session:
            session.add(SmartAlertHistory(user_id=user_id, alert_type=alert_type,
                                          market_id=str(market_id), data=data or {}))

    # ==================== SNAPSHOTS ====================

    def store_snapshot(self, market_id, volume, price, recorded_at=None):
        with self.db.session_scope() as session:
            session.add(VolumeSnapshot(market_id=str(market_id), volume=volume, price=price,
                                       recorded_at=recorded_at or utcnow()))

    def get_snapshots(self, market_id, hours=24):
        since = utcnow() - timedelta(hours=hours)
        with self.db.session_scope() as session:
            return (session.query(VolumeSnapshot)
                    .filter(VolumeSnapshot.market_id == str(market_id))
                    .filter(VolumeSnapshot.recorded_at >= since)
                    .order_by(VolumeSnapshot.recorded_at.asc())
                    .all())

    def get_average_hourly_volume(self, market_id):
        snapshots = self.get_snapshots(market_id, hours=24)
        return average_hourly_volume(snapshots)

    def get_price_history(self, market_id, hours=4):
        return [{'price': s.price, 'recorded_at': s.recorded_at}
                for s in self.get_snapshots(market_id, hours=hours)
                if s.price is not None]

    def cleanup_old_snapshots(self, hours=48):
        cutoff = utcnow() - timedelta(hours=hours)
        with self.db.session_scope() as session:
            return (session.query(VolumeSnapshot)
                    .filter(VolumeSnapshot.recorded_at < cutoff)
                    .delete(synchronize_session=False))

    def cleanup_old_history(self, days=7):
        cutoff = utcnow() - timedelta(days=days)
        with self.db.session_scope() as session:
            return (session.query(SmartAlertHistory)
                    .filter(SmartAlertHistory.sent_at < cutoff)
                    .delete(synchronize_session=False))


def average_hourly_volume(snapshots):
    """Sum of positive volume deltas over the hours spanned; None when undefined."""
    if len(snapshots) < 2:
        return None
    hours = (snapshots[-1].recorded_at - snapshots[0].recorded_at).total_seconds() / 3600
    if hours < 1:
        return None
    total = 0.0
    for prev, cur in zip(snapshots, snapshots[1:]):
        delta = (cur.volume or 0) - (prev.volume or 0)
        if delta > 0:
            total += delta
    return total / hours
