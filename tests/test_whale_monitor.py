from conftest import FakeTrades
from polypulse.jobs.whale_monitor import SEEN_NAMESPACE, WhaleMonitor, classify_side


def trade(tx, size, price, side='BUY', outcome='Yes', market_id='m1'):
    return {'id': tx, 'size': size, 'price': price, 'side': side, 'outcome': outcome,
            'market_id': market_id, 'market_title': 'Will Bitcoin hit $100k?'}


def test_side_classification():
    assert classify_side({'side': 'BUY', 'outcome': 'Yes'}) == 'YES'
    assert classify_side({'side': 'SELL', 'outcome': 'Yes'}) == 'NO'
    assert classify_side({'side': 'BUY', 'outcome': 'No'}) == 'NO'
    assert classify_side({'side': 'SELL', 'outcome': 'No'}) == 'YES'
    assert classify_side({'side': 'BUY', 'outcome': 'Trump'}) == 'YES'


def test_small_trades_are_ignored(ctx):
    monitor = WhaleMonitor(ctx, send_delay=0)
    events = monitor.detect([trade('0xsmall', 1000, 0.5), trade('0xbig', 200000, 0.5)])
    assert [e['txHash'] for e in events] == ['0xbig']
    assert events[0]['amountUsd'] == 100000


def test_trades_are_reported_once_across_ticks(ctx, make_user, notifier):
    user = make_user(200, 'premium')
    ctx.whales.set_enabled(user.id, True, min_amount=50000)
    ctx.trades = FakeTrades([trade('0xabc', 150000, 0.6)])
    monitor = WhaleMonitor(ctx, send_delay=0)

    assert len(monitor.run_once()) == 1
    assert monitor.run_once() == []
    assert len(notifier.to(200)) == 1
    assert 'WHALE ALERT' in notifier.to(200)[0]
    assert ctx.whales.get_market_stats('m1')['yesVolume'] == 90000


def test_seen_transactions_survive_a_new_monitor(ctx):
    WhaleMonitor(ctx, send_delay=0).detect([trade('0xdup', 200000, 0.5)])
    assert WhaleMonitor(ctx, send_delay=0).detect([trade('0xdup', 200000, 0.5)]) == []


def test_subscribers_filtered_by_threshold_and_tier(ctx, make_user, notifier):
    big = make_user(201, 'premium')
    small = make_user(202, 'premium')
    free = make_user(203, 'free')
    ctx.whales.set_enabled(big.id, True, min_amount=500000)
    ctx.whales.set_enabled(small.id, True, min_amount=50000)
    ctx.whales.set_enabled(free.id, True, min_amount=50000)

    ctx.trades = FakeTrades([trade('0xmid', 200000, 0.5)])
    WhaleMonitor(ctx, send_delay=0).run_once()

    assert len(notifier.to(202)) == 1
    assert notifier.to(201) == []
    assert notifier.to(203) == []


def test_seen_keys_are_capped(ctx):
    for i in range(12):
        ctx.seen.add(SEEN_NAMESPACE, f'0x{i}')
    removed = ctx.seen.prune(SEEN_NAMESPACE, max_entries=10, evict_count=4)

    assert removed == 4
    keys = ctx.seen.keys(SEEN_NAMESPACE)
    assert '0x0' not in keys and '0x3' not in keys
    assert '0x4' in keys and '0x11' in keys


def test_one_failing_event_does_not_stop_the_rest(ctx, make_user, notifier, monkeypatch):
    user = make_user(205, 'premium')
    ctx.whales.set_enabled(user.id, True, min_amount=50000)
    ctx.trades = FakeTrades([trade('0xfirst', 200000, 0.5, market_id='m1'),
                             trade('0xsecond', 200000, 0.5, market_id='m2')])

    real_stats = ctx.whales.get_market_stats
    calls = []

    def flaky_stats(market_id):
        calls.append(market_id)
        if len(calls) == 1:
            raise RuntimeError('database is locked')
        return real_stats(market_id)

    monkeypatch.setattr(ctx.whales, 'get_market_stats', flaky_stats)
    events = WhaleMonitor(ctx, send_delay=0).run_once()

    assert len(events) == 2
    assert len(calls) == 2
    assert len(notifier.to(205)) == 1
