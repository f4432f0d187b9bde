# 📁 polypulse/stores/briefing.py
import logging

from polypulse.accounts.models import BriefingPrefs, User
from polypulse.accounts.tier_manager import TierManager
from polypulse.core.clock import utcnow
from polypulse.utils.parsing import local_hour

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'UTC'
DEFAULT_SEND_HOUR = 8


class BriefingStore:
    def __init__(self, db):
        self.db = db

    def get(self, user_id):
        with self.db.session_scope() as session:
            return session.query(BriefingPrefs).filter_by(user_id=user_id).first()

    def upsert(self, user_id, **fields):
        with self.db.session_scope() as session:
            prefs = session.query(BriefingPrefs).filter_by(user_id=user_id).first()
            if prefs is None:
                prefs = BriefingPrefs(user_id=user_id, enabled=True,
                                      timezone=DEFAULT_TIMEZONE, send_hour=DEFAULT_SEND_HOUR,
                                      categories=[])
                session.add(prefs)
            for key, value in fields.items():
                setattr(prefs, key, value)
            session.flush()
            return prefs

    def enable(self, user_id, enabled=True):
        return self.upsert(user_id, enabled=enabled)

    def set_timezone(self, user_id, timezone):
        return self.upsert(user_id, timezone=timezone)

    def set_hour(self, user_id, hour):
        return self.upsert(user_id, send_hour=hour)

    def get_users_for_briefing(self, utc_hour, now=None):
        """(user, prefs) pairs whose local send hour is now and who were not sent today"""
        now = now or utcnow()
        with self.db.session_scope() as session:
            rows = (session.query(User, BriefingPrefs)
                    .join(BriefingPrefs, BriefingPrefs.user_id == User.id)
                    .filter(BriefingPrefs.enabled.is_(True))
                    .all())

        due = []
        for user, prefs in rows:
            if not TierManager.is_premium(user, now):
                continue
            if local_hour(utc_hour, prefs.timezone or DEFAULT_TIMEZONE) != prefs.send_hour:
                continue
            if prefs.last_sent_at and prefs.last_sent_at.date() == now.date():
                continue
            due.append((user, prefs))
        return due

    def mark_sent(self, user_id):
        self.upsert(user_id, last_sent_at=utcnow())
