# 📁 polypulse/stores/alerts.py
import logging

from polypulse.accounts.models import Alert
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)


class AlertStore:
    def __init__(self, db):
        self.db = db

    def create(self, user_id, chat_id, market_id, market_name, threshold, direction,
               market_slug=None):
        with self.db.session_scope() as session:
            alert = Alert(user_id=user_id, chat_id=chat_id, market_id=str(market_id),
                          market_name=market_name, market_slug=market_slug,
                          threshold=threshold, direction=direction, is_active=True)
            session.add(alert)
            session.flush()
            logger.info(f"🔔 Alert {alert.id[:8]} created for user {user_id}")
            return alert

    def get_user_alerts(self, user_id):
        with self.db.session_scope() as session:
            return (session.query(Alert)
                    .filter_by(user_id=user_id, is_active=True)
                    .order_by(Alert.created_at.desc())
                    .all())

    def get_all_active(self):
        with self.db.session_scope() as session:
            return session.query(Alert).filter_by(is_active=True).all()

    def count_user_alerts(self, user_id):
        with self.db.session_scope() as session:
            return session.query(Alert).filter_by(user_id=user_id, is_active=True).count()

    def trigger(self, alert_id):
        with self.db.session_scope() as session:
            alert = session.get(Alert, alert_id)
            if alert:
                alert.is_active = False
                alert.triggered_at = utcnow()

    def delete(self, alert_id, user_id):
        with self.db.session_scope() as session:
            deleted = (session.query(Alert)
                       .filter_by(id=alert_id, user_id=user_id)
                       .delete(synchronize_session=False))
            return deleted > 0

    def find_by_prefix(self, user_id, prefix):
        with self.db.session_scope() as session:
            return (session.query(Alert)
                    .filter_by(user_id=user_id, is_active=True)
                    .filter(Alert.id.like(f"{prefix}%"))
                    .first())

    def get_triggered_since(self, user_id, since, limit=5):
        with self.db.session_scope() as session:
            return (session.query(Alert)
                    .filter(Alert.user_id == user_id)
                    .filter(Alert.triggered_at.isnot(None))
                    .filter(Alert.triggered_at >= since)
                    .order_by(Alert.triggered_at.desc())
                    .limit(limit)
                    .all())
