# 📁 polypulse/accounts/users.py
import logging
from datetime import timedelta

from polypulse.accounts.models import User
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)

DRIP_STEP_DAYS = [1, 3, 5, 7]


class UserStore:
    """Users plus their billing state"""

    def __init__(self, db):
        self.db = db

    def get_or_create(self, telegram_id, username=None):
        with self.db.session_scope() as session:
            user = session.query(User).filter_by(telegram_id=telegram_id).first()
            if user is None:
                user = User(telegram_id=telegram_id, username=username,
                            subscription_status='free', daily_usage={},
                            usage_reset_at=utcnow())
                session.add(user)
                session.flush()
                logger.info(f"🎯 New user: {telegram_id}")
            elif username and user.username != username:
                user.username = username
            return user

    def get(self, telegram_id):
        with self.db.session_scope() as session:
            return session.query(User).filter_by(telegram_id=telegram_id).first()

    def get_by_id(self, user_id):
        with self.db.session_scope() as session:
            return session.get(User, user_id)

    def get_by_stripe_customer(self, customer_id):
        with self.db.session_scope() as session:
            return session.query(User).filter_by(stripe_customer_id=customer_id).first()

    def set_stripe_customer(self, telegram_id, customer_id):
        with self.db.session_scope() as session:
            user = session.query(User).filter_by(telegram_id=telegram_id).first()
            if user:
                user.stripe_customer_id = customer_id
            return user

    # ==================== SUBSCRIPTION STATE ====================

    def activate_premium(self, customer_id, subscription_id):
        with self.db.session_scope() as session:
            user = session.query(User).filter_by(stripe_customer_id=customer_id).first()
            if user is None:
                return None
            self._make_premium(user, subscription_id)
            logger.info(f"✨ Premium activated for {user.telegram_id}")
            return user

    def activate_premium_by_telegram_id(self, telegram_id, customer_id, subscription_id):
        with self.db.session_scope() as session:
            user = session.query(User).filter_by(telegram_id=int(telegram_id)).first()
            if user is None:
                return None
            user.stripe_customer_id = customer_id
            self._make_premium(user, subscription_id)
            logger.info(f"✨ Premium activated for {user.telegram_id} (via metadata)")
            return user

    def _make_premium(self, user, subscription_id):
        user.subscription_status = 'premium'
        user.stripe_subscription_id = subscription_id
        user.premium_until = None

    def start_trial(self, customer_id, subscription_id, telegram_id=None):
        with self.db.session_scope() as session:
            user = session.query(User).filter_by(stripe_customer_id=customer_id).first()
            if user is None and telegram_id:
                user = session.query(User).filter_by(telegram_id=int(telegram_id)).first()
            if user is None:
                return None
            user.stripe_customer_id = customer_id
            user.stripe_subscription_id = subscription_id
            user.premium_until = None
            if user.subscription_status != 'trial':
                user.subscription_status = 'trial'
                user.trial_started_at = utcnow()
                user.drip_step = 0
                logger.info(f"🎁 Trial started for {user.telegram_id}")
            return user

    def cancel_premium(self, customer_id, ends_at):
        with self.db.session_scope() as session:
            user = session.query(User).filter_by(stripe_customer_id=customer_id).first()
            if user is None:
                return None
            user.subscription_status = 'cancelled'
            user.premium_until = ends_at
            logger.info(f"👋 Subscription cancelled for {user.telegram_id}, access until {ends_at}")
            return user

    # ==================== FREE TIER NUDGES ====================

    def _free_users_not_marked(self, column, since):
        with self.db.session_scope() as session:
            return (session.query(User)
                    .filter(User.subscription_status == 'free')
                    .filter((column.is_(None)) | (column < since))
                    .all())

    def get_free_users_for_lite_briefing(self):
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return self._free_users_not_marked(User.last_lite_briefing_at, today)

    def get_free_users_for_whale_teaser(self):
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return self._free_users_not_marked(User.last_whale_teaser_at, today)

    def get_winback_eligible_users(self):
        now = utcnow()
        with self.db.session_scope() as session:
            return (session.query(User)
                    .filter(User.subscription_status == 'cancelled')
                    .filter((User.premium_until.is_(None)) | (User.premium_until < now))
                    .filter((User.last_winback_at.is_(None))
                            | (User.last_winback_at < now - timedelta(days=7)))
                    .all())

    def _mark(self, user_id, field):
        with self.db.session_scope() as session:
            user = session.get(User, user_id)
            if user:
                setattr(user, field, utcnow())

    def mark_lite_briefing_sent(self, user_id):
        self._mark(user_id, 'last_lite_briefing_at')

    def mark_whale_teaser_sent(self, user_id):
        self._mark(user_id, 'last_whale_teaser_at')

    def mark_winback_sent(self, user_id):
        self._mark(user_id, 'last_winback_at')

    # ==================== TRIAL DRIP ====================

    def get_trial_users_for_drip(self):
        with self.db.session_scope() as session:
            return (session.query(User)
                    .filter(User.subscription_status == 'trial')
                    .filter(User.trial_started_at.isnot(None))
                    .filter((User.drip_step.is_(None)) | (User.drip_step < len(DRIP_STEP_DAYS)))
                    .all())

    @staticmethod
    def get_next_drip_step(user, now=None):
        """Next drip step due for a trial user, or None."""
        if not user.trial_started_at:
            return None
        current = user.drip_step or 0
        if current >= len(DRIP_STEP_DAYS):
            return None
        elapsed_days = ((now or utcnow()) - user.trial_started_at).total_seconds() / 86400
        if elapsed_days >= DRIP_STEP_DAYS[current]:
            return current + 1
        return None

    def update_drip_step(self, user_id, step):
        with self.db.session_scope() as session:
            user = session.get(User, user_id)
            if user:
                user.drip_step = step

    def count_by_status(self):
        with self.db.session_scope() as session:
            counts = {}
            for (status,) in session.query(User.subscription_status).all():
                counts[status or 'free'] = counts.get(status or 'free', 0) + 1
            return counts
