from types import SimpleNamespace

from conftest import make_market
from polypulse.jobs.alert_engine import AlertEngine, check_trigger


def alert(direction, threshold):
    return SimpleNamespace(direction=direction, threshold=threshold)


def test_trigger_directions():
    assert check_trigger(alert('above', 0.6), 0.6)
    assert not check_trigger(alert('above', 0.6), 0.59)
    assert check_trigger(alert('below', 0.3), 0.25)
    assert not check_trigger(alert('below', 0.3), 0.31)
    assert check_trigger(alert('change', 0.5), 0.7)
    assert not check_trigger(alert('above', 0.6), None)
    assert not check_trigger(alert('sideways', 0.6), 0.9)


def test_triggered_alert_is_sent_once_and_deactivated(ctx, markets, notifier, make_user):
    user = make_user(100)
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.65))
    markets.add(make_market(2, 'Will it snow in Miami?', yes=0.02))
    ctx.alerts.create(user.id, 100, '1', 'Will Bitcoin hit $100k?', 0.6, 'above')
    ctx.alerts.create(user.id, 100, '2', 'Will it snow in Miami?', 0.5, 'above')

    engine = AlertEngine(ctx, fetch_delay=0)
    assert engine.run_once() == 1
    assert len(notifier.to(100)) == 1
    assert 'Alert Triggered' in notifier.to(100)[0]

    remaining = ctx.alerts.get_user_alerts(user.id)
    assert [a.market_id for a in remaining] == ['2']
    assert engine.run_once() == 0


def test_blocked_chat_still_deactivates_alert(ctx, markets, notifier, make_user):
    user = make_user(101)
    notifier.blocked.add(101)
    markets.add(make_market(3, 'Fed cut in June?', yes=0.2))
    ctx.alerts.create(user.id, 101, '3', 'Fed cut in June?', 0.25, 'below')

    assert AlertEngine(ctx, fetch_delay=0).run_once() == 1
    assert ctx.alerts.count_user_alerts(user.id) == 0


def test_missing_market_is_skipped(ctx, make_user):
    user = make_user(102)
    ctx.alerts.create(user.id, 102, 'gone', 'Old market', 0.5, 'above')
    assert AlertEngine(ctx, fetch_delay=0).run_once() == 0
    assert ctx.alerts.count_user_alerts(user.id) == 1
