# 📁 polypulse/stores/portfolio.py
import logging

from polypulse.accounts.models import Position, Trade
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)


class PositionError(ValueError):
    pass


def _fmt_shares(value):
    return f"{value:g}"


def _like_literal(text):
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


class PortfolioStore:
    def __init__(self, db):
        self.db = db

    def get_positions(self, user_id, status='open'):
        with self.db.session_scope() as session:
            return (session.query(Position)
                    .filter_by(user_id=user_id, status=status)
                    .order_by(Position.opened_at.desc())
                    .all())

    def get_position(self, position_id):
        with self.db.session_scope() as session:
            return session.get(Position, position_id)

    def find_by_market(self, user_id, market_query):
        """Open position whose id or name contains the query"""
        needle = f"%{_like_literal((market_query or '').lower())}%"
        with self.db.session_scope() as session:
            return (session.query(Position)
                    .filter_by(user_id=user_id, status='open')
                    .filter(Position.market_id.ilike(needle, escape='\\')
                            | Position.market_name.ilike(needle, escape='\\'))
                    .first())

    def find_open_position(self, user_id, market_id):
        with self.db.session_scope() as session:
            return (session.query(Position)
                    .filter_by(user_id=user_id, market_id=str(market_id), status='open')
                    .first())

    def count_open(self, user_id):
        with self.db.session_scope() as session:
            return session.query(Position).filter_by(user_id=user_id, status='open').count()

    def create_position(self, user_id, market_id, market_name, side, shares, price,
                        market_slug=None):
        with self.db.session_scope() as session:
            position = Position(user_id=user_id, market_id=str(market_id), market_name=market_name,
                                market_slug=market_slug, side=(side or 'YES').upper(),
                                shares=shares, entry_price=price, status='open')
            session.add(position)
            session.flush()
            session.add(self._trade(position, 'buy', shares, price))
            logger.info(f"💼 Position {position.id} opened for user {user_id}")
            return position

    def add_to_position(self, position_id, shares, price):
        """Buy more; entry becomes the share-weighted average."""
        with self.db.session_scope() as session:
            position = session.get(Position, position_id)
            if position is None:
                raise PositionError("Position not found")
            total = position.shares + shares
            position.entry_price = (position.shares * position.entry_price + shares * price) / total
            position.shares = total
            session.add(self._trade(position, 'buy', shares, price))
            return position

    def reduce_position(self, position_id, shares, price):
        with self.db.session_scope() as session:
            position = session.get(Position, position_id)
            if position is None:
                raise PositionError("Position not found")
            if shares > position.shares + 1e-9:
                raise PositionError(
                    f"Cannot sell {_fmt_shares(shares)} shares, only {_fmt_shares(position.shares)} available"
                )

            pnl = shares * (price - position.entry_price)
            session.add(self._trade(position, 'sell', shares, price, pnl=pnl))

            remaining = position.shares - shares
            fully_closed = remaining <= 1e-9
            if fully_closed:
                position.shares = 0
                position.status = 'closed'
                position.closed_at = utcnow()
            else:
                position.shares = remaining
            return {'position': position, 'pnl': pnl, 'fully_closed': fully_closed}

    def _trade(self, position, action, shares, price, pnl=None):
        return Trade(user_id=position.user_id, position_id=position.id,
                     market_id=position.market_id, market_name=position.market_name,
                     action=action, side=position.side, shares=shares, price=price, pnl=pnl)

    def get_position_trades(self, position_id):
        with self.db.session_scope() as session:
            return (session.query(Trade)
                    .filter_by(position_id=position_id)
                    .order_by(Trade.created_at.asc(), Trade.id.asc())
                    .all())


def calculate_position_pnl(position, current_price):
    shares = float(position.shares or 0)
    entry = float(position.entry_price or 0)
    current = float(current_price if current_price is not None else entry)
    cost_basis = shares * entry
    current_value = shares * current
    pnl = current_value - cost_basis
    pnl_percent = (current_value / cost_basis - 1) * 100 if cost_basis > 0 else 0
    return {
        'shares': shares,
        'entry_price': entry,
        'current_price': current,
        'cost_basis': cost_basis,
        'current_value': current_value,
        'pnl': pnl,
        'pnl_percent': pnl_percent,
    }
