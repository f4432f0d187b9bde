import asyncio
from types import SimpleNamespace

import pytest

from conftest import make_market
from polypulse.bot import handlers, premium_handlers, tracking_handlers


class FakeMessage:
    def __init__(self):
        self.replies = []

    async def reply_text(self, text, **kwargs):
        self.replies.append(text)


class FakeBot:
    async def send_chat_action(self, chat_id, action):
        pass


@pytest.fixture
def chat(ctx):
    """Runs a command handler as telegram user 900 and returns the reply texts"""
    application = SimpleNamespace(bot_data={'polypulse': ctx})

    def run(handler, *args, user_id=900):
        message = FakeMessage()
        update = SimpleNamespace(effective_message=message,
                                 effective_user=SimpleNamespace(id=user_id, username='trader'),
                                 effective_chat=SimpleNamespace(id=user_id))
        context = SimpleNamespace(args=list(args), application=application, bot=FakeBot())
        asyncio.run(handler(update, context))
        return message.replies

    return run


def test_start_creates_the_user(ctx, chat):
    replies = chat(handlers.handle_start)
    assert 'Welcome to PolyPulse' in replies[0]
    assert ctx.users.get(900).subscription_status == 'free'


def test_missing_arguments_show_usage(chat):
    assert chat(handlers.handle_price) == [handlers.messages.USAGE['price']]
    assert chat(tracking_handlers.handle_buy) == [handlers.messages.USAGE['buy']]


def test_free_trending_quota(ctx, chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?'))
    for _ in range(ctx.tiers.limit_for('trending')):
        assert 'Trending Markets' in chat(handlers.handle_trending)[0]
    assert 'free trending queries' in chat(handlers.handle_trending)[0]


def test_alert_is_created_in_the_right_direction(ctx, chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.40))
    replies = chat(handlers.handle_alert, 'bitcoin', '60')

    assert 'Alert set' in replies[0]
    user = ctx.users.get(900)
    alert = ctx.alerts.get_user_alerts(user.id)[0]
    assert (alert.direction, alert.threshold, alert.chat_id) == ('above', 0.6, 900)


def test_alert_threshold_must_be_a_probability(chat):
    assert chat(handlers.handle_alert, 'bitcoin', '120') == ['Price must be between 1\\-99%']


def test_free_alert_limit(ctx, chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.40))
    for threshold in ('50', '60', '70'):
        chat(handlers.handle_alert, 'bitcoin', threshold)
    assert 'Premium feature' in chat(handlers.handle_alert, 'bitcoin', '80')[0]
    assert ctx.alerts.count_user_alerts(ctx.users.get(900).id) == 3


def test_api_outage_gets_a_friendly_reply(chat, markets, monkeypatch):
    def down(*args, **kwargs):
        raise handlers.MarketAPIError('timeout')

    monkeypatch.setattr(markets, 'search', down)
    replies = chat(handlers.handle_search, 'bitcoin')
    assert replies == [handlers.messages.error('apiDown')]


def test_buy_then_sell(ctx, chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.55))
    chat(tracking_handlers.handle_buy, 'bitcoin', '100', '0.50')
    chat(tracking_handlers.handle_buy, 'bitcoin', '100', '0.60')

    user = ctx.users.get(900)
    position = ctx.portfolio.get_positions(user.id)[0]
    assert position.shares == 200
    assert position.entry_price == pytest.approx(0.55)

    replies = chat(tracking_handlers.handle_sell, 'bitcoin', '500', '0.70')
    assert 'only 200 available' in replies[0]

    chat(tracking_handlers.handle_sell, 'bitcoin', '200', '0.70')
    assert ctx.portfolio.count_open(user.id) == 0


def test_buy_merges_only_into_the_same_market(ctx, chat, markets, make_user):
    make_user(900, 'premium')
    markets.add(make_market(512, 'Will it snow in June?', yes=0.5))
    markets.add(make_market(12, 'Will it rain in June?', yes=0.5))
    chat(tracking_handlers.handle_buy, 'snow', '10', '0.5')
    chat(tracking_handlers.handle_buy, 'rain', '10', '0.5')

    user = ctx.users.get(900)
    assert sorted(p.market_id for p in ctx.portfolio.get_positions(user.id)) == ['12', '512']


def test_free_users_track_one_position(chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?'))
    markets.add(make_market(2, 'Fed cut in June?'))
    chat(tracking_handlers.handle_buy, 'bitcoin', '10', '0.5')

    assert 'Premium feature' in chat(tracking_handlers.handle_buy, 'fed', '10', '0.5')[0]
    assert 'Premium feature' not in chat(tracking_handlers.handle_buy, 'bitcoin', '5', '0.5')[0]


def test_free_category_subscription_room(ctx, chat):
    chat(tracking_handlers.handle_subscribe, 'crypto,', 'politics')
    user = ctx.users.get(900)
    assert [s.category for s in ctx.categories.get_subs(user.id)] == ['crypto']

    assert "already subscribed" in chat(tracking_handlers.handle_subscribe, 'crypto')[0]
    chat(tracking_handlers.handle_subscribe, 'sports')
    assert ctx.categories.count_subs(user.id) == 1


def test_prediction_once_per_market(ctx, chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.3))
    chat(tracking_handlers.handle_predict, 'bitcoin', 'yes')
    chat(tracking_handlers.handle_predict, 'bitcoin', 'no')

    user = ctx.users.get(900)
    prediction = ctx.predictions.get_prediction(user.id, '1')
    assert prediction.prediction == 'YES'
    assert prediction.odds_at_prediction == 0.3


def test_whale_alerts_are_premium(ctx, chat, make_user):
    chat(premium_handlers.handle_whale, 'on')
    assert ctx.whales.get_prefs(ctx.users.get(900).id) is None

    premium = make_user(901, 'premium')
    chat(premium_handlers.handle_whale, '250k', user_id=901)
    prefs = ctx.whales.get_prefs(premium.id)
    assert prefs.enabled and prefs.min_amount_usd == 250000


def test_stats_is_admin_only(ctx, chat, monkeypatch):
    monkeypatch.setattr(ctx.config, 'ADMIN_IDS', [42])
    assert 'admins only' in chat(handlers.handle_stats)[0]
    assert 'PolyPulse Status' in chat(handlers.handle_stats, user_id=42)[0]


def test_watchlist_tracks_the_price_at_add(ctx, chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.684))
    chat(handlers.handle_watch, 'bitcoin')
    item = ctx.watchlist.list(ctx.users.get(900).id)[0]
    assert item.added_price == pytest.approx(0.684)

    markets.markets['1']['yesPrice'] = 0.734
    assert 'YES: *73\\.4%* 🟢 \\+5\\.0% since added' in chat(handlers.handle_watchlist)[0]

    # unknown market falls back to the stored price
    del markets.markets['1']
    assert 'YES: *68\\.4%* ⚪ 0\\.0% since added' in chat(handlers.handle_watchlist)[0]


def test_price_suggests_related_markets(chat, markets):
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.62))
    markets.add(make_market(2, 'Will Bitcoin dip below $50k?'))
    markets.add(make_market(3, 'Fed cut in June?'))

    text = chat(handlers.handle_price, 'bitcoin hit')[0]
    assert 'You might also watch' in text
    assert 'Will Bitcoin dip below $50k?' in text
    assert 'Fed cut' not in text
