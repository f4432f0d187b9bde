# 📁 polypulse/bot/tracking_handlers.py
"""Portfolio, category subscription and prediction commands."""
import asyncio
import logging
import re

from telegram import Update
from telegram.ext import ContextTypes

from polypulse.api.polymarket_client import MarketAPIError
from polypulse.bot import messages
from polypulse.bot.handlers import command_args, guarded, load_user, market_key, reply, typing
from polypulse.bot.premium_handlers import no_valid_categories, split_categories
from polypulse.stores.portfolio import PositionError, calculate_position_pnl
from polypulse.utils.categories import is_valid_category
from polypulse.utils.format import escape_markdown

logger = logging.getLogger(__name__)

TRADE_RE = re.compile(r'^(.+?)\s+(\d+(?:\.\d+)?)\s+(\d*\.?\d+)$')

NO_POSITIONS = '📊 *No open positions*\n\n_Log a trade: /buy bitcoin 100 0\\.54_'
NO_POSITION_FOR_MARKET = '❌ No open position found for that market\\. Check /portfolio'


def parse_trade(args):
    """(market query, shares, price) or None"""
    match = TRADE_RE.match(args or '')
    if not match:
        return None
    return match.group(1).strip(), float(match.group(2)), float(match.group(3))


def trade_error(shares, price, example_price):
    if shares <= 0:
        return '❌ Shares must be positive\\.'
    if price <= 0 or price >= 1:
        cents = round(float(example_price) * 100)
        shown = escape_markdown(example_price)
        return f"❌ Price must be between 0 and 1 \\(e\\.g\\., {shown} = {cents}¢\\)\\."
    return None


def _current_price(ctx, position):
    try:
        market = ctx.markets.get_market(position.market_id)
    except MarketAPIError as e:
        logger.warning(f"⚠️ Price lookup failed for position {position.id}: {e}")
        return position.entry_price
    if not market:
        return position.entry_price

    outcomes = market.get('outcomes') or []
    for outcome in outcomes:
        if str(outcome.get('name')).upper() == (position.side or 'YES').upper():
            return outcome.get('price') or position.entry_price
    if outcomes and outcomes[0].get('price'):
        return outcomes[0]['price']
    return position.entry_price


def value_positions(ctx, positions):
    """[(position, pnl)] plus portfolio totals, priced from the Market API"""
    rows = []
    invested = current_value = 0.0
    for position in positions:
        pnl = calculate_position_pnl(position, _current_price(ctx, position))
        rows.append((position, pnl))
        invested += pnl['cost_basis']
        current_value += pnl['current_value']

    totals = {
        'invested': invested,
        'current_value': current_value,
        'pnl': current_value - invested,
        'pnl_percent': (current_value / invested - 1) * 100 if invested > 0 else 0,
    }
    return rows, totals


# ==================== PORTFOLIO ====================

@guarded('portfolio')
async def handle_portfolio(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, _ = await load_user(update, context)
    positions = await asyncio.to_thread(ctx.portfolio.get_positions, user.id)
    if not positions:
        await reply(update, messages.portfolio_upsell())
        return

    await typing(update, context)
    rows, totals = await asyncio.to_thread(value_positions, ctx, positions)
    await reply(update, messages.portfolio(rows, totals))


@guarded('pnl')
async def handle_pnl(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, _ = await load_user(update, context)
    positions = await asyncio.to_thread(ctx.portfolio.get_positions, user.id)
    if not positions:
        await reply(update, NO_POSITIONS)
        return

    await typing(update, context)
    _, totals = await asyncio.to_thread(value_positions, ctx, positions)
    await reply(update, messages.pnl_summary(totals, len(positions)))


@guarded('buy')
async def handle_buy(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context)
    if not args:
        await reply(update, messages.USAGE['buy'])
        return
    parsed = parse_trade(args)
    if parsed is None:
        await reply(update, '❌ Invalid format\\. Use: `/buy market shares price`\n'
                            'Example: `/buy bitcoin 100 0\\.54`')
        return
    query, shares, price = parsed
    problem = trade_error(shares, price, '0.54')
    if problem:
        await reply(update, problem)
        return

    ctx, user, premium = await load_user(update, context)
    limit = ctx.tiers.limit_for('positions', premium)
    if limit is not None:
        count = await asyncio.to_thread(ctx.portfolio.count_open, user.id)
        if count >= limit:
            existing = await asyncio.to_thread(ctx.portfolio.find_by_market, user.id, query)
            if existing is None:
                await reply(update, messages.premium_upsell('portfolio'))
                return

    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.search, query, 1)
    if not markets:
        await reply(update, messages.error('notFound'))
        return

    market = markets[0]
    market_id = market_key(market)
    try:
        existing = await asyncio.to_thread(ctx.portfolio.find_open_position, user.id, market_id)
        if existing:
            position = await asyncio.to_thread(ctx.portfolio.add_to_position, existing.id, shares, price)
        else:
            position = await asyncio.to_thread(ctx.portfolio.create_position, user.id, market_id,
                                               market.get('question'), 'YES', shares, price,
                                               market.get('slug'))
    except PositionError as e:
        await reply(update, f"❌ {escape_markdown(str(e))}")
        return
    await reply(update, messages.buy_confirmation(position, existing is None))


@guarded('sell')
async def handle_sell(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context)
    if not args:
        await reply(update, messages.USAGE['sell'])
        return
    parsed = parse_trade(args)
    if parsed is None:
        await reply(update, '❌ Invalid format\\. Use: `/sell market shares price`\n'
                            'Example: `/sell bitcoin 50 0\\.73`')
        return
    query, shares, price = parsed
    problem = trade_error(shares, price, '0.73')
    if problem:
        await reply(update, problem)
        return

    ctx, user, _ = await load_user(update, context)
    position = await asyncio.to_thread(ctx.portfolio.find_by_market, user.id, query)
    if position is None:
        await reply(update, NO_POSITION_FOR_MARKET)
        return

    try:
        result = await asyncio.to_thread(ctx.portfolio.reduce_position, position.id, shares, price)
    except PositionError as e:
        await reply(update, f"❌ {escape_markdown(str(e))}")
        return
    await reply(update, messages.sell_confirmation(result['position'], shares, price, result['pnl'],
                                                   result['fully_closed']))


# ==================== CATEGORIES ====================

@guarded('categories')
async def handle_categories(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, _ = await load_user(update, context)
    subs = await asyncio.to_thread(ctx.categories.get_subs, user.id)
    await reply(update, messages.categories_list([sub.category for sub in subs]))


@guarded('subscribe')
async def handle_subscribe(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context).lower()
    if not args:
        await reply(update, messages.USAGE['subscribe'])
        return
    requested = split_categories(args)
    if not requested:
        await reply(update, no_valid_categories())
        return

    ctx, user, premium = await load_user(update, context)
    current = {sub.category for sub in await asyncio.to_thread(ctx.categories.get_subs, user.id)}
    new = [c for c in requested if c not in current]
    already = [c for c in requested if c in current]

    limit = ctx.tiers.limit_for('categories', premium)
    if limit is not None and new:
        room = limit - len(current)
        if room <= 0:
            await reply(update, messages.category_upsell())
            return
        new = new[:room]

    added = []
    for category in new:
        await asyncio.to_thread(ctx.categories.add_sub, user.id, category)
        added.append(category)

    if not added:
        await reply(update, f"ℹ️ You're already subscribed to: {escape_markdown(', '.join(already))}")
        return
    logger.info(f"📂 User {user.telegram_id} subscribed to {added}")
    await reply(update, messages.subscribe_confirm(added))


@guarded('unsubscribe')
async def handle_unsubscribe(update: Update, context: ContextTypes.DEFAULT_TYPE):
    category = command_args(context).lower()
    if not category:
        await reply(update, messages.USAGE['unsubscribe'])
        return
    if not is_valid_category(category):
        await reply(update, f"❌ Unknown category: \"{escape_markdown(category)}\"\\. "
                            f"Check /categories for valid options\\.")
        return

    ctx, user, _ = await load_user(update, context)
    removed = await asyncio.to_thread(ctx.categories.remove_sub, user.id, category)
    if not removed:
        await reply(update, f"❌ You're not subscribed to {escape_markdown(category)}\\. Check /mysubs")
        return
    await reply(update, messages.unsubscribe_confirm(category))


@guarded('mysubs')
async def handle_my_subs(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    subs = await asyncio.to_thread(ctx.categories.get_subs, user.id)
    await reply(update, messages.my_subs(subs, premium))


# ==================== PREDICTIONS ====================

@guarded('predict')
async def handle_predict(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context)
    if not args:
        await reply(update, messages.USAGE['predict'])
        return

    parts = args.split()
    side = parts[-1].lower()
    if side not in ('yes', 'no'):
        await reply(update, '❌ End with "yes" or "no"\\. Example: `/predict bitcoin yes`')
        return
    query = ' '.join(parts[:-1])
    if not query:
        await reply(update, '❌ Specify a market\\. Example: `/predict bitcoin\\-100k yes`')
        return

    ctx, user, _ = await load_user(update, context)
    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.search, query, 1)
    if not markets:
        await reply(update, messages.error('notFound'))
        return

    market = markets[0]
    market_id = market_key(market)
    existing = await asyncio.to_thread(ctx.predictions.get_prediction, user.id, market_id)
    if existing:
        await reply(update, messages.already_predicted(existing))
        return

    odds = market.get('yesPrice') or 0.5
    created = await asyncio.to_thread(ctx.predictions.create, user.id, market_id, market.get('question'),
                                      side.upper(), odds, market.get('slug'))
    if created is None:
        existing = await asyncio.to_thread(ctx.predictions.get_prediction, user.id, market_id)
        await reply(update, messages.already_predicted(existing))
        return
    await reply(update, messages.prediction_confirm(market, side.upper(), odds))


@guarded('predictions')
async def handle_predictions(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, _ = await load_user(update, context)
    rows = await asyncio.to_thread(ctx.predictions.list, user.id, 20)
    stats = await asyncio.to_thread(ctx.predictions.stats, user.id)
    await reply(update, messages.predictions(rows, stats))


@guarded('accuracy')
async def handle_accuracy(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, _ = await load_user(update, context)
    stats = await asyncio.to_thread(ctx.predictions.stats, user.id)
    rank = await asyncio.to_thread(ctx.predictions.user_rank, user.id)
    await reply(update, messages.accuracy(stats, rank))


@guarded('leaderboard')
async def handle_leaderboard(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    if not premium:
        stats = await asyncio.to_thread(ctx.predictions.stats, user.id)
        await reply(update, messages.leaderboard_upsell(stats))
        return

    await typing(update, context)
    entries = await asyncio.to_thread(ctx.predictions.leaderboard, 10)
    rank = await asyncio.to_thread(ctx.predictions.user_rank, user.id)
    total = await asyncio.to_thread(ctx.predictions.count_monthly_predictors)
    await reply(update, messages.leaderboard(entries, rank, total))
