from datetime import timedelta

from polypulse.accounts.models import User
from polypulse.accounts.tier_manager import TierManager
from polypulse.core.clock import utcnow


def test_premium_statuses(make_user):
    now = utcnow()
    assert not TierManager.is_premium(None)
    assert not TierManager.is_premium(make_user(1, 'free'))
    assert TierManager.is_premium(make_user(2, 'premium'))
    assert TierManager.is_premium(make_user(3, 'trial', premium_until=now + timedelta(days=3)))
    assert not TierManager.is_premium(make_user(4, 'trial', premium_until=now - timedelta(hours=1)))


def test_cancelled_users_keep_access_until_period_end(make_user):
    now = utcnow()
    assert TierManager.is_premium(make_user(5, 'cancelled', premium_until=now + timedelta(days=2)))
    assert not TierManager.is_premium(make_user(6, 'cancelled'))
    assert not TierManager.is_premium(make_user(7, 'cancelled', premium_until=now - timedelta(days=1)))


def test_free_usage_counts_up_to_the_limit(ctx, make_user):
    user = make_user(10)
    limit = ctx.tiers.limit_for('trending')

    for _ in range(limit):
        usage = ctx.tiers.check_usage(user, 'trending')
        assert usage['allowed']
        ctx.tiers.increment_usage(user, 'trending')

    usage = ctx.tiers.check_usage(user, 'trending')
    assert not usage['allowed']
    assert usage['remaining'] == 0
    assert usage['used'] == limit


def test_usage_window_resets_after_a_day(ctx, make_user):
    user = make_user(11, daily_usage={'search': 5},
                     usage_reset_at=utcnow() - timedelta(hours=25))

    usage = ctx.tiers.check_usage(user, 'search')
    assert usage['allowed']
    assert usage['used'] == 0

    with ctx.db.session_scope() as session:
        assert session.get(User, user.id).daily_usage == {}


def test_premium_users_are_not_limited(ctx, make_user):
    user = make_user(12, 'premium', daily_usage={'search': 500})
    assert ctx.tiers.check_usage(user, 'search')['allowed']
    assert ctx.tiers.limit_for('search', premium=True) is None


def test_hours_until_reset():
    assert TierManager.hours_until_reset({'reset_at': None}) == 24
    assert TierManager.hours_until_reset({'reset_at': utcnow() - timedelta(hours=20)}) in (4, 5)
    assert TierManager.hours_until_reset({'reset_at': utcnow() - timedelta(hours=30)}) == 1
