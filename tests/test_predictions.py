from conftest import make_market
from polypulse.jobs.prediction_resolver import resolve_predictions, winning_side


def test_winning_side_needs_a_closed_settled_market():
    assert winning_side(make_market(1, 'A', yes=0.995, closed=True)) == 'YES'
    assert winning_side(make_market(1, 'A', yes=0.005, closed=True)) == 'NO'
    assert winning_side(make_market(1, 'A', yes=0.995)) is None
    assert winning_side(make_market(1, 'A', yes=0.6, closed=True)) is None
    assert winning_side(None) is None


def test_one_prediction_per_market(ctx, make_user):
    user = make_user(800)
    assert ctx.predictions.create(user.id, '1', 'Will Bitcoin hit $100k?', 'yes', 0.6) is not None
    assert ctx.predictions.create(user.id, '1', 'Will Bitcoin hit $100k?', 'no', 0.6) is None
    assert ctx.predictions.get_prediction(user.id, '1').prediction == 'YES'


def test_resolver_settles_closed_markets(ctx, markets, make_user):
    alice = make_user(801)
    bob = make_user(802)
    markets.add(make_market(1, 'Fed cut in June?', yes=0.999, closed=True))
    markets.add(make_market(2, 'Will Bitcoin hit $100k?', yes=0.55))
    ctx.predictions.create(alice.id, '1', 'Fed cut in June?', 'YES', 0.4)
    ctx.predictions.create(bob.id, '1', 'Fed cut in June?', 'NO', 0.4)
    ctx.predictions.create(bob.id, '2', 'Will Bitcoin hit $100k?', 'YES', 0.5)

    assert resolve_predictions(ctx) == 2
    assert ctx.predictions.get_prediction(alice.id, '1').correct is True
    assert ctx.predictions.get_prediction(bob.id, '1').correct is False
    assert ctx.predictions.get_unresolved_market_ids() == ['2']
    assert resolve_predictions(ctx) == 0


def test_stats_and_leaderboard(ctx, make_user):
    alice, bob, carol = make_user(803), make_user(804), make_user(805)
    for market_id in ('1', '2'):
        ctx.predictions.create(alice.id, market_id, f'Market {market_id}', 'YES', 0.5)
        ctx.predictions.create(carol.id, market_id, f'Market {market_id}', 'NO' if market_id == '1' else 'YES', 0.5)
    ctx.predictions.create(bob.id, '2', 'Market 2', 'YES', 0.5)
    ctx.predictions.create(bob.id, '3', 'Market 3', 'YES', 0.5)
    ctx.predictions.resolve_market('1', 'YES')
    ctx.predictions.resolve_market('2', 'YES')

    board = ctx.predictions.leaderboard()
    assert [e['telegram_id'] for e in board] == [803, 804, 805]
    assert board[0]['correct'] == 2
    assert board[1]['accuracy'] == 100
    assert board[2]['accuracy'] == 50
    assert ctx.predictions.user_rank(carol.id) == 3

    stats = ctx.predictions.stats(bob.id)
    assert stats['allTime'] == {'total': 2, 'resolved': 1, 'correct': 1, 'accuracy': 100}
    assert ctx.predictions.count_monthly_predictors() == 3
