# 📁 polypulse/accounts/tier_manager.py
import logging
import math
from datetime import timedelta

from polypulse.accounts.models import User
from polypulse.core.clock import utcnow
from polypulse.core.config import Config

logger = logging.getLogger(__name__)

USAGE_WINDOW = timedelta(hours=24)


class TierManager:
    """Free vs premium access and the free-tier daily counters"""

    def __init__(self, db, free_limits=None):
        self.db = db
        self.free_limits = dict(free_limits or Config.FREE_LIMITS)

    @staticmethod
    def is_premium(user, now=None):
        if user is None:
            return False
        if user.subscription_status not in ('premium', 'trial', 'cancelled'):
            return False
        if user.subscription_status == 'cancelled' and user.premium_until is None:
            return False
        if user.premium_until and user.premium_until < (now or utcnow()):
            return False
        return True

    def limit_for(self, feature, premium=False):
        if premium:
            return None
        return self.free_limits.get(feature)

    def check_usage(self, user, feature):
        """Usage state for a rate-limited feature, resetting the window when stale"""
        if self.is_premium(user):
            return {'allowed': True, 'remaining': None, 'limit': None, 'used': 0,
                    'reset_at': None}

        limit = self.free_limits.get(feature, 0)
        now = utcnow()
        with self.db.session_scope() as session:
            row = session.get(User, user.id)
            usage = dict(row.daily_usage or {})
            reset_at = row.usage_reset_at or now
            if now - reset_at > USAGE_WINDOW:
                usage = {}
                reset_at = now
                row.daily_usage = usage
                row.usage_reset_at = reset_at

        used = int(usage.get(feature, 0))
        return {
            'allowed': used < limit,
            'remaining': max(0, limit - used),
            'limit': limit,
            'used': used,
            'reset_at': reset_at,
        }

    def increment_usage(self, user, feature):
        with self.db.session_scope() as session:
            row = session.get(User, user.id)
            usage = dict(row.daily_usage or {})
            usage[feature] = int(usage.get(feature, 0)) + 1
            # reassign so the JSON column is flagged dirty
            row.daily_usage = usage
            return usage[feature]

    @staticmethod
    def hours_until_reset(usage):
        reset_at = usage.get('reset_at')
        if reset_at is None:
            return 24
        hours_since = (utcnow() - reset_at).total_seconds() / 3600
        return max(1, math.ceil(24 - hours_since))
