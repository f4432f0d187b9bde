from datetime import timedelta

import pytest

from conftest import make_market
from polypulse.accounts.models import DedupKey
from polypulse.core.clock import utcnow
from polypulse.jobs.smart_alert_monitor import KNOWN_NAMESPACE, SmartAlertMonitor
from polypulse.stores.smart_alerts import average_hourly_volume


def subscribe(ctx, user, alert_type, params=None):
    ctx.smart_alerts.upsert_pref(user.id, alert_type, enabled=True, params=params)


def snapshot(ctx, market_id, volume, price, hours_ago):
    ctx.smart_alerts.store_snapshot(market_id, volume, price,
                                    recorded_at=utcnow() - timedelta(hours=hours_ago))


def test_average_needs_an_hour_of_snapshots(ctx):
    snapshot(ctx, 'm1', 1000, 0.5, 0.5)
    snapshot(ctx, 'm1', 5000, 0.5, 0.1)
    assert average_hourly_volume(ctx.smart_alerts.get_snapshots('m1')) is None

    snapshot(ctx, 'm2', 100_000, 0.5, 3)
    snapshot(ctx, 'm2', 99_000, 0.5, 2)
    snapshot(ctx, 'm2', 103_000, 0.5, 1)
    # only the positive delta counts, spread over two hours
    assert ctx.smart_alerts.get_average_hourly_volume('m2') == pytest.approx(2000, rel=1e-3)


def test_volume_spike_alerts_premium_subscribers(ctx, make_user, notifier):
    user = make_user(300, 'premium')
    subscribe(ctx, user, 'volume_spike')
    snapshot(ctx, '1', 100_000, 0.5, 3)
    snapshot(ctx, '1', 103_000, 0.5, 1)

    spiking = make_market(1, 'Will Bitcoin hit $100k?', volume24hr=240_000)
    monitor = SmartAlertMonitor(ctx, send_delay=0)

    assert monitor.check_volume_spikes([spiking]) == 1
    assert len(notifier.to(300)) == 1
    assert ctx.smart_alerts.has_recent(user.id, 'volume_spike', '1')
    # cooldown
    assert monitor.check_volume_spikes([spiking]) == 0


def test_normal_volume_is_not_a_spike(ctx, make_user, notifier):
    user = make_user(301, 'premium')
    subscribe(ctx, user, 'volume_spike')
    snapshot(ctx, '1', 100_000, 0.5, 3)
    snapshot(ctx, '1', 103_000, 0.5, 1)

    quiet = make_market(1, 'Will Bitcoin hit $100k?', volume24hr=48_000)
    assert SmartAlertMonitor(ctx, send_delay=0).check_volume_spikes([quiet]) == 0
    assert notifier.sent == []


def test_free_users_get_no_smart_alerts(ctx, make_user, notifier):
    user = make_user(302, 'free')
    subscribe(ctx, user, 'volume_spike')
    snapshot(ctx, '1', 100_000, 0.5, 3)
    snapshot(ctx, '1', 103_000, 0.5, 1)

    spiking = make_market(1, 'Will Bitcoin hit $100k?', volume24hr=240_000)
    assert SmartAlertMonitor(ctx, send_delay=0).check_volume_spikes([spiking]) == 0


def test_momentum_move_over_ten_points(ctx, make_user, notifier):
    user = make_user(303, 'premium')
    subscribe(ctx, user, 'momentum')
    snapshot(ctx, '7', 1000, 0.40, 2)
    snapshot(ctx, '7', 1000, 0.45, 1)
    snapshot(ctx, '8', 1000, 0.40, 2)

    monitor = SmartAlertMonitor(ctx, send_delay=0)
    moving = make_market(7, 'Qwerty zxcv', yes=0.55)
    flat = make_market(8, 'Asdf ghjk', yes=0.42)

    assert monitor.check_momentum([moving, flat]) == 1
    assert len(notifier.to(303)) == 1


def test_first_tick_is_a_baseline(ctx):
    monitor = SmartAlertMonitor(ctx, send_delay=0)
    batch = [make_market(1, 'Will Bitcoin hit $100k?'), make_market(2, 'Fed cut in June?')]

    assert monitor.find_new_markets(batch) == []
    assert monitor.find_new_markets(batch) == []

    fresh = make_market(3, 'Will Ethereum flip Bitcoin?')
    assert [m['id'] for m in monitor.find_new_markets(batch + [fresh])] == ['3']
    assert monitor.find_new_markets(batch + [fresh]) == []


def age_known_markets(ctx, expires_at):
    with ctx.db.session_scope() as session:
        for row in session.query(DedupKey).filter_by(namespace=KNOWN_NAMESPACE).all():
            row.expires_at = expires_at


def test_known_markets_are_extended_on_every_tick(ctx):
    monitor = SmartAlertMonitor(ctx, send_delay=0)
    batch = [make_market(1, 'Will Bitcoin hit $100k?'), make_market(2, 'Fed cut in June?')]
    monitor.find_new_markets(batch)

    age_known_markets(ctx, utcnow() + timedelta(minutes=1))
    assert monitor.find_new_markets(batch) == []
    with ctx.db.session_scope() as session:
        expiries = [row.expires_at for row in session.query(DedupKey).filter_by(namespace=KNOWN_NAMESPACE)]
    assert all(expires_at > utcnow() + timedelta(days=6) for expires_at in expiries)

    fresh = make_market(3, 'Will Ethereum flip Bitcoin?')
    assert [m['id'] for m in monitor.find_new_markets(batch + [fresh])] == ['3']


def test_baseline_is_not_retaken_once_known_keys_lapse(ctx):
    monitor = SmartAlertMonitor(ctx, send_delay=0)
    monitor.find_new_markets([make_market(1, 'Will Bitcoin hit $100k?')])
    age_known_markets(ctx, utcnow() - timedelta(seconds=1))
    ctx.seen.prune_expired()

    fresh = make_market(3, 'Will Ethereum flip Bitcoin?')
    assert [m['id'] for m in monitor.find_new_markets([fresh])] == ['3']
    assert monitor.find_new_markets([fresh]) == []


def test_new_market_alert_goes_to_matching_category(ctx, make_user, notifier):
    crypto_fan = make_user(304, 'premium')
    sports_fan = make_user(305, 'premium')
    subscribe(ctx, crypto_fan, 'new_market', {'categories': ['crypto']})
    subscribe(ctx, sports_fan, 'new_market', {'categories': ['sports']})

    monitor = SmartAlertMonitor(ctx, send_delay=0)
    baseline = [make_market(1, 'Fed cut in June?')]
    monitor.check_new_markets(baseline)

    sent = monitor.check_new_markets(baseline + [make_market(9, 'Will Bitcoin hit $200k?')])
    assert sent == 1
    assert len(notifier.to(304)) == 1
    assert notifier.to(305) == []


def test_category_subscribers_hear_about_new_markets(ctx, make_user, notifier):
    fan = make_user(306, 'premium')
    ctx.categories.add_sub(fan.id, 'crypto')

    monitor = SmartAlertMonitor(ctx, send_delay=0)
    monitor.check_new_markets([make_market(1, 'Fed cut in June?')])
    monitor.check_new_markets([make_market(1, 'Fed cut in June?'),
                               make_market(10, 'Will Solana hit $500?')])
    assert len(notifier.to(306)) == 1
