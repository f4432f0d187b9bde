import pytest

from polypulse.billing.stripe_service import BillingService
from polypulse.bot.notifier import NotificationError
from polypulse.core.config import Config
from polypulse.core.context import AppContext
from polypulse.core.database import Database


def make_market(market_id, question, yes=0.5, volume24hr=50000, change=0.0, **extra):
    market = {
        'id': str(market_id),
        'question': question,
        'slug': question.lower().replace(' ', '-').strip('?'),
        'outcomes': [{'name': 'Yes', 'price': yes}, {'name': 'No', 'price': round(1 - yes, 4)}],
        'yesPrice': yes,
        'noPrice': round(1 - yes, 4),
        'volume24hr': volume24hr,
        'volumeNum': volume24hr * 10,
        'oneDayPriceChange': change,
    }
    market.update(extra)
    return market


class FakeMarkets:
    def __init__(self, markets=None):
        self.markets = {}
        self.trending = []
        for market in markets or []:
            self.add(market)

    def add(self, market):
        self.markets[market['id']] = market
        self.trending.append(market)

    def list_trending(self, limit=10):
        return self.trending[:limit]

    def fetch_all_markets(self):
        return list(self.markets.values())

    def search(self, query, limit=5):
        needle = query.lower()
        return [m for m in self.markets.values() if needle in m['question'].lower()][:limit]

    def get_market(self, identifier):
        return self.markets.get(str(identifier))

    def get_markets_by_ids(self, ids):
        return [self.markets[str(i)] for i in ids if str(i) in self.markets]

    def get_related_markets(self, market, limit=3):
        keywords = [w for w in market['question'].lower().split() if len(w) > 3][:3]
        return [m for m in self.trending
                if m['id'] != market['id'] and any(k in m['question'].lower() for k in keywords)][:limit]

    def get_new_markets(self, hours=48, limit=10):
        return []

    def close(self):
        pass


class FakeTrades:
    def __init__(self, trades=None):
        self.trades = list(trades or [])

    def fetch_recent_trades(self, limit=100):
        return self.trades[:limit]

    def close(self):
        pass


class RecordingNotifier:
    def __init__(self):
        self.sent = []
        self.blocked = set()

    def send_message(self, chat_id, text, **kwargs):
        if chat_id in self.blocked:
            raise NotificationError('Forbidden: bot was blocked by the user', 403)
        self.sent.append((chat_id, text))
        return {'message_id': len(self.sent)}

    def try_send(self, chat_id, text, **kwargs):
        try:
            self.send_message(chat_id, text, **kwargs)
            return True
        except NotificationError:
            return False

    def to(self, chat_id):
        return [text for cid, text in self.sent if cid == chat_id]

    def close(self):
        pass


@pytest.fixture
def db():
    database = Database("sqlite://")
    yield database
    database.dispose()


@pytest.fixture
def markets():
    return FakeMarkets()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def billing():
    return BillingService(secret_key='sk_test_123', price_id='price_123',
                          webhook_secret='whsec_123', bot_url='https://t.me/GetPolyPulse_bot',
                          public_url='https://polypulse.example.com')


@pytest.fixture
def ctx(db, markets, notifier, billing):
    return AppContext(db=db, markets=markets, trades=FakeTrades(), notifier=notifier,
                      billing=billing, config=Config)


@pytest.fixture
def make_user(ctx):
    def factory(telegram_id, status='free', **fields):
        user = ctx.users.get_or_create(telegram_id, f"user{telegram_id}")
        with ctx.db.session_scope() as session:
            row = session.get(type(user), user.id)
            row.subscription_status = status
            for key, value in fields.items():
                setattr(row, key, value)
        return ctx.users.get_by_id(user.id)
    return factory
