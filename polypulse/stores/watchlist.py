# 📁 polypulse/stores/watchlist.py
from polypulse.accounts.models import WatchlistItem
from polypulse.core.clock import utcnow


class WatchlistStore:
    def __init__(self, db):
        self.db = db

    def add(self, user_id, market_id, market_name, market_slug=None, added_price=None):
        with self.db.session_scope() as session:
            item = session.query(WatchlistItem).filter_by(user_id=user_id, market_id=str(market_id)).first()
            if item is None:
                item = WatchlistItem(user_id=user_id, market_id=str(market_id))
                session.add(item)
            item.market_name = market_name
            item.market_slug = market_slug
            item.added_price = added_price
            item.added_at = utcnow()
            session.flush()
            return item

    def remove(self, user_id, market_id):
        with self.db.session_scope() as session:
            return (session.query(WatchlistItem)
                    .filter_by(user_id=user_id, market_id=str(market_id))
                    .delete(synchronize_session=False)) > 0

    def list(self, user_id):
        with self.db.session_scope() as session:
            return (session.query(WatchlistItem)
                    .filter_by(user_id=user_id)
                    .order_by(WatchlistItem.added_at.desc())
                    .all())

    def count(self, user_id):
        with self.db.session_scope() as session:
            return session.query(WatchlistItem).filter_by(user_id=user_id).count()

    def find(self, user_id, query):
        """First item whose id starts with, or name contains, the query."""
        needle = (query or '').lower()
        for item in self.list(user_id):
            if item.market_id.lower().startswith(needle) or needle in (item.market_name or '').lower():
                return item
        return None
