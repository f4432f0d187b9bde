# 📁 polypulse/stores/categories.py
import logging

from polypulse.accounts.models import CategorySubscription, MarketCategory, User
from polypulse.accounts.tier_manager import TierManager
from polypulse.utils.categories import categorize_market

logger = logging.getLogger(__name__)


class CategoryStore:
    def __init__(self, db):
        self.db = db

    def get_subs(self, user_id):
        with self.db.session_scope() as session:
            return (session.query(CategorySubscription)
                    .filter_by(user_id=user_id)
                    .order_by(CategorySubscription.created_at.asc())
                    .all())

    def count_subs(self, user_id):
        with self.db.session_scope() as session:
            return session.query(CategorySubscription).filter_by(user_id=user_id).count()

    def add_sub(self, user_id, category):
        category = category.lower()
        with self.db.session_scope() as session:
            sub = session.query(CategorySubscription).filter_by(user_id=user_id, category=category).first()
            if sub is None:
                sub = CategorySubscription(user_id=user_id, category=category)
                session.add(sub)
                session.flush()
            return sub

    def remove_sub(self, user_id, category):
        with self.db.session_scope() as session:
            return (session.query(CategorySubscription)
                    .filter_by(user_id=user_id, category=category.lower())
                    .delete(synchronize_session=False)) > 0

    def get_subscribers(self, category, now=None):
        """Premium users subscribed to a category"""
        with self.db.session_scope() as session:
            users = (session.query(User)
                     .join(CategorySubscription, CategorySubscription.user_id == User.id)
                     .filter(CategorySubscription.category == category.lower())
                     .all())
        return [user for user in users if TierManager.is_premium(user, now)]

    # ==================== MARKET MAPPING ====================

    def store_market_category(self, market_id, category, market_name=None):
        with self.db.session_scope() as session:
            row = session.get(MarketCategory, (str(market_id), category.lower()))
            if row is None:
                session.add(MarketCategory(market_id=str(market_id), category=category.lower(),
                                           market_name=market_name))
            elif market_name:
                row.market_name = market_name

    def categorize_and_store(self, market_id, market_name):
        categories = categorize_market(market_name)
        for category in categories:
            self.store_market_category(market_id, category, market_name)
        return categories
