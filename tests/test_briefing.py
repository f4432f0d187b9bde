from datetime import datetime, timedelta

import pytest

from conftest import make_market
from polypulse.core.clock import utcnow
from polypulse.jobs.briefing import BriefingBuilder, top_movers
from polypulse.jobs.briefing_cron import BriefingCron
from polypulse.jobs.drip import send_due_drips


def due_ids(ctx, utc_hour, now):
    return sorted(user.telegram_id for user, _ in ctx.briefings.get_users_for_briefing(utc_hour, now))


def test_briefing_due_in_local_time(ctx, make_user):
    now = datetime(2026, 3, 10, 13, 0)
    eastern = make_user(700, 'premium')
    london = make_user(701, 'premium')
    ctx.briefings.upsert(eastern.id, timezone='EST', send_hour=8)
    ctx.briefings.upsert(london.id, timezone='UTC', send_hour=8)

    assert due_ids(ctx, 13, now) == [700]
    assert due_ids(ctx, 8, now.replace(hour=8)) == [701]


def test_briefing_skips_free_disabled_and_already_sent(ctx, make_user):
    now = datetime(2026, 3, 10, 8, 0)
    free = make_user(702, 'free')
    off = make_user(703, 'premium')
    sent = make_user(704, 'premium')
    ctx.briefings.upsert(free.id)
    ctx.briefings.upsert(off.id, enabled=False)
    ctx.briefings.upsert(sent.id, last_sent_at=now - timedelta(hours=1))

    assert due_ids(ctx, 8, now) == []
    assert due_ids(ctx, 8, now + timedelta(days=1)) == [704]


def test_top_movers_rank_by_absolute_change():
    movers = top_movers([make_market(1, 'A', change=0.02), make_market(2, 'B', change=-0.08),
                         make_market(3, 'C', change=0.05)], limit=2)
    assert [m['question'] for m in movers] == ['B', 'C']
    assert movers[0]['yesterdayPrice'] == pytest.approx(0.58)


def test_empty_briefing_is_not_sent(ctx, make_user):
    user = make_user(705, 'premium')
    assert BriefingBuilder(ctx, lookup_delay=0).build_message(user) is None


def test_briefing_includes_watchlist_prices(ctx, markets, make_user):
    user = make_user(706, 'premium')
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', yes=0.7, change=0.05))
    ctx.watchlist.add(user.id, '1', 'Will Bitcoin hit $100k?', 'bitcoin-100k')

    data = BriefingBuilder(ctx, lookup_delay=0).gather(user)
    assert data['watchlistItems'] == [{'name': 'Will Bitcoin hit $100k?',
                                       'currentPrice': 0.7, 'change': 0.05}]
    assert data['topMovers'][0]['currentPrice'] == 0.7


def test_cron_sends_due_briefings_once(ctx, markets, notifier, make_user):
    now = utcnow().replace(hour=9, minute=0, second=0, microsecond=0)
    user = make_user(707, 'premium')
    ctx.briefings.upsert(user.id, timezone='UTC', send_hour=9)
    markets.add(make_market(1, 'Will Bitcoin hit $100k?', change=0.04))

    cron = BriefingCron(ctx, briefing_delay=0, nudge_delay=0, drip_delay=0)
    assert cron.run_once(now)['briefings'] == 1
    assert cron.run_once(now)['briefings'] == 0
    assert len(notifier.to(707)) == 1


def test_lite_briefing_goes_to_free_users_at_its_hour(ctx, markets, notifier, make_user):
    make_user(708, 'free')
    make_user(709, 'premium')
    markets.add(make_market(1, 'Will Bitcoin hit $100k?'))
    cron = BriefingCron(ctx, briefing_delay=0, nudge_delay=0, drip_delay=0)

    summary = cron.run_once(utcnow().replace(hour=14, minute=0))
    assert summary['lite'] == 1
    assert len(notifier.to(708)) == 1
    assert notifier.to(709) == []
    assert cron.send_lite_briefings() == 0


def test_drip_sends_next_step_when_due(ctx, notifier, make_user):
    now = utcnow()
    user = make_user(710, 'trial', trial_started_at=now - timedelta(days=2), drip_step=0)

    assert send_due_drips(ctx, send_delay=0, now=now) == 1
    assert ctx.users.get_by_id(user.id).drip_step == 1
    assert send_due_drips(ctx, send_delay=0, now=now) == 0
    assert len(notifier.to(710)) == 1


def test_drip_step_advances_for_blocked_chats(ctx, notifier, make_user):
    now = utcnow()
    user = make_user(711, 'trial', trial_started_at=now - timedelta(days=4), drip_step=1)
    notifier.blocked.add(711)

    assert send_due_drips(ctx, send_delay=0, now=now) == 0
    assert ctx.users.get_by_id(user.id).drip_step == 2
