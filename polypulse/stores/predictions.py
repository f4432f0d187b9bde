# 📁 polypulse/stores/predictions.py
import logging

from sqlalchemy.exc import IntegrityError

from polypulse.accounts.models import Prediction, User
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)


def _month_start(now=None):
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _summarize(predictions):
    resolved = [p for p in predictions if p.resolved]
    correct = sum(1 for p in resolved if p.correct)
    return {
        'total': len(predictions),
        'resolved': len(resolved),
        'correct': correct,
        'accuracy': (correct / len(resolved) * 100) if resolved else 0,
    }


class PredictionStore:
    def __init__(self, db):
        self.db = db

    def create(self, user_id, market_id, question, prediction, odds, market_slug=None):
        side = prediction.upper()
        if side not in ('YES', 'NO'):
            raise ValueError("Prediction must be YES or NO")
        try:
            with self.db.session_scope() as session:
                row = Prediction(user_id=user_id, market_id=str(market_id),
                                 market_question=question, market_slug=market_slug,
                                 prediction=side, odds_at_prediction=odds)
                session.add(row)
                session.flush()
                return row
        except IntegrityError:
            return None

    def get_prediction(self, user_id, market_id):
        with self.db.session_scope() as session:
            return session.query(Prediction).filter_by(user_id=user_id, market_id=str(market_id)).first()

    def list(self, user_id, limit=20):
        with self.db.session_scope() as session:
            return (session.query(Prediction)
                    .filter_by(user_id=user_id)
                    .order_by(Prediction.created_at.desc(), Prediction.id.desc())
                    .limit(limit)
                    .all())

    def stats(self, user_id, now=None):
        month_start = _month_start(now)
        with self.db.session_scope() as session:
            rows = session.query(Prediction).filter_by(user_id=user_id).all()
        monthly = [p for p in rows if p.created_at and p.created_at >= month_start]
        return {'allTime': _summarize(rows), 'monthly': _summarize(monthly)}

    def leaderboard(self, limit=10, now=None):
        """This month's resolved predictions ranked by correct calls, then accuracy"""
        month_start = _month_start(now)
        with self.db.session_scope() as session:
            rows = (session.query(Prediction, User)
                    .join(User, User.id == Prediction.user_id)
                    .filter(Prediction.created_at >= month_start)
                    .filter(Prediction.resolved.is_(True))
                    .all())

        board = {}
        for prediction, user in rows:
            entry = board.setdefault(user.id, {
                'user_id': user.id,
                'telegram_id': user.telegram_id,
                'username': user.username,
                'total': 0,
                'correct': 0,
            })
            entry['total'] += 1
            if prediction.correct:
                entry['correct'] += 1

        entries = list(board.values())
        for entry in entries:
            entry['accuracy'] = entry['correct'] / entry['total'] * 100 if entry['total'] else 0
        entries.sort(key=lambda e: (-e['correct'], -e['accuracy'], e['user_id']))
        for rank, entry in enumerate(entries, start=1):
            entry['rank'] = rank
        return entries[:limit] if limit else entries

    def user_rank(self, user_id, now=None):
        for entry in self.leaderboard(limit=None, now=now):
            if entry['user_id'] == user_id:
                return entry['rank']
        return None

    def count_monthly_predictors(self, now=None):
        month_start = _month_start(now)
        with self.db.session_scope() as session:
            return (session.query(Prediction.user_id)
                    .filter(Prediction.created_at >= month_start)
                    .distinct()
                    .count())

    def get_unresolved_market_ids(self):
        with self.db.session_scope() as session:
            return [market_id for (market_id,) in
                    session.query(Prediction.market_id)
                    .filter(Prediction.resolved.is_(False))
                    .distinct()
                    .all()]

    def resolve_market(self, market_id, winning_side):
        """Settle every open prediction on a market; returns how many were settled"""
        now = utcnow()
        with self.db.session_scope() as session:
            rows = (session.query(Prediction)
                    .filter_by(market_id=str(market_id), resolved=False)
                    .all())
            for row in rows:
                row.resolved = True
                row.correct = row.prediction == winning_side
                row.resolved_at = now
            return len(rows)
