# 📁 polypulse/bot/handlers.py
"""
Command handlers for markets, price alerts, the watchlist and the account.

Handlers are async (python-telegram-bot); every store and API call is
blocking, so it goes through asyncio.to_thread.
"""
import asyncio
import functools
import logging
import re

from telegram import LinkPreviewOptions, Update
from telegram.constants import ChatAction, ParseMode
from telegram.ext import ContextTypes

from polypulse.api.polymarket_client import MarketAPIError
from polypulse.bot import messages
from polypulse.utils.format import escape_markdown, truncate

logger = logging.getLogger(__name__)

ALERT_RE = re.compile(r'^(.+?)\s+(\d+(?:\.\d+)?)\s*%?$')

NO_ALERTS = '📭 *No active alerts*\n\n_Set one: /alert bitcoin 60_'
EMPTY_WATCHLIST = '📭 *Your watchlist is empty*\n\n_Add markets: /watch bitcoin_'


def get_app_context(context: ContextTypes.DEFAULT_TYPE):
    return context.application.bot_data['polypulse']


def command_args(context: ContextTypes.DEFAULT_TYPE):
    return ' '.join(context.args or []).strip()


async def reply(update: Update, text, preview=False, markdown=True):
    await update.effective_message.reply_text(
        text,
        parse_mode=ParseMode.MARKDOWN_V2 if markdown else None,
        link_preview_options=LinkPreviewOptions(is_disabled=not preview),
    )


async def typing(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        await context.bot.send_chat_action(chat_id=update.effective_chat.id, action=ChatAction.TYPING)
    except Exception as e:
        logger.debug(f"Chat action failed: {e}")


async def load_user(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """(ctx, user, is_premium) for the sender, creating the user on first contact"""
    ctx = get_app_context(context)
    sender = update.effective_user
    user = await asyncio.to_thread(ctx.users.get_or_create, sender.id, sender.username)
    return ctx, user, ctx.is_premium(user)


def guarded(name):
    """Log and answer with a friendly message when a command fails"""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
            try:
                await func(update, context)
            except MarketAPIError as e:
                logger.error(f"❌ /{name} market data error: {e}")
                await reply(update, messages.error('apiDown'))
            except Exception as e:
                logger.error(f"❌ /{name} error: {e}")
                try:
                    await reply(update, messages.error('generic'))
                except Exception as reply_error:
                    logger.error(f"Fallback response failed: {reply_error}")
        return wrapper

    return decorator


def market_key(market):
    return str(market.get('id') or market.get('slug'))


async def check_quota(update, ctx, user, premium, feature):
    """True when the free-tier counter allows another query; replies otherwise"""
    if premium:
        return True
    usage = await asyncio.to_thread(ctx.tiers.check_usage, user, feature)
    if usage['allowed']:
        return True
    await reply(update, messages.rate_limit(ctx.tiers.hours_until_reset(usage), feature))
    return False


async def count_usage(ctx, user, premium, feature):
    if not premium:
        await asyncio.to_thread(ctx.tiers.increment_usage, user, feature)


# ==================== ONBOARDING ====================

@guarded('start')
async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await load_user(update, context)
    await reply(update, messages.welcome())
    logger.info(f"👤 User started: {update.effective_user.id}")


@guarded('help')
async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await reply(update, messages.HELP_TEXT)


# ==================== MARKETS ====================

@guarded('trending')
async def handle_trending(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    if not await check_quota(update, ctx, user, premium, 'trending'):
        return

    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.list_trending, 5)
    await count_usage(ctx, user, premium, 'trending')
    await reply(update, messages.trending(markets))


@guarded('price')
async def handle_price(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = command_args(context)
    if not query:
        await reply(update, messages.USAGE['price'])
        return

    ctx, user, premium = await load_user(update, context)
    if not await check_quota(update, ctx, user, premium, 'price'):
        return

    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.search, query, 1)
    if not markets:
        await reply(update, messages.error('notFound'))
        return
    await count_usage(ctx, user, premium, 'price')

    main = markets[0]
    history = await asyncio.to_thread(ctx.smart_alerts.get_price_history, market_key(main), 24)
    prices = [point['price'] for point in history]
    try:
        related = await asyncio.to_thread(ctx.markets.get_related_markets, main, 2)
    except MarketAPIError as e:
        logger.warning(f"⚠️ Related markets unavailable for {market_key(main)}: {e}")
        related = []
    await reply(update, messages.price(main, related, prices))


@guarded('search')
async def handle_search(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = command_args(context)
    if not query:
        await reply(update, messages.USAGE['search'])
        return

    ctx, user, premium = await load_user(update, context)
    if not await check_quota(update, ctx, user, premium, 'search'):
        return

    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.search, query, 5)
    if not markets:
        await reply(update, messages.error('notFound'))
        return
    await count_usage(ctx, user, premium, 'search')
    await reply(update, messages.search_results(query, markets))


# ==================== PRICE ALERTS ====================

@guarded('alert')
async def handle_alert(update: Update, context: ContextTypes.DEFAULT_TYPE):
    match = ALERT_RE.match(command_args(context))
    if not match:
        await reply(update, messages.USAGE['alert'])
        return

    query = match.group(1).strip()
    threshold = float(match.group(2)) / 100
    if threshold <= 0 or threshold >= 1:
        await reply(update, 'Price must be between 1\\-99%')
        return

    ctx, user, premium = await load_user(update, context)
    count = await asyncio.to_thread(ctx.alerts.count_user_alerts, user.id)
    limit = ctx.tiers.limit_for('alerts', premium)
    if limit is not None and count >= limit:
        await reply(update, messages.premium_upsell('alerts'))
        return

    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.search, query, 1)
    if not markets:
        await reply(update, messages.error('notFound'))
        return

    market = markets[0]
    current = market.get('yesPrice')
    if current is None:
        await reply(update, messages.error('generic'))
        return

    direction = 'above' if current < threshold else 'below'
    await asyncio.to_thread(ctx.alerts.create, user.id, update.effective_chat.id, market_key(market),
                            market.get('question'), threshold, direction, market.get('slug'))
    await reply(update, messages.alert_created(market, threshold, direction, current))


@guarded('alerts')
async def handle_alerts(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    alerts = await asyncio.to_thread(ctx.alerts.get_user_alerts, user.id)
    if not alerts:
        await reply(update, NO_ALERTS)
        return
    limit = ctx.tiers.limit_for('alerts', premium)
    await reply(update, messages.alerts_list(alerts, '∞' if limit is None else limit))


@guarded('cancelalert')
async def handle_cancel_alert(update: Update, context: ContextTypes.DEFAULT_TYPE):
    prefix = command_args(context)
    if not prefix:
        await reply(update, messages.USAGE['cancelalert'])
        return

    ctx, user, _ = await load_user(update, context)
    alert = await asyncio.to_thread(ctx.alerts.find_by_prefix, user.id, prefix)
    if alert is None:
        await reply(update, '❌ Alert not found\\. Check /alerts for your IDs\\.')
        return
    await asyncio.to_thread(ctx.alerts.delete, alert.id, user.id)
    await reply(update, '✅ Alert cancelled\\.')


# ==================== WATCHLIST ====================

@guarded('watch')
async def handle_watch(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = command_args(context)
    if not query:
        await reply(update, messages.USAGE['watch'])
        return

    ctx, user, premium = await load_user(update, context)
    count = await asyncio.to_thread(ctx.watchlist.count, user.id)
    limit = ctx.tiers.limit_for('watchlist', premium)
    if limit is not None and count >= limit:
        await reply(update, messages.premium_upsell('watchlist'))
        return

    await typing(update, context)
    markets = await asyncio.to_thread(ctx.markets.search, query, 1)
    if not markets:
        await reply(update, messages.error('notFound'))
        return

    market = markets[0]
    current = market.get('yesPrice') or 0
    await asyncio.to_thread(ctx.watchlist.add, user.id, market_key(market), market.get('question'),
                            market.get('slug'), current)
    await reply(update, messages.watch_added(market, current))


def _watchlist_rows(ctx, items):
    rows = []
    for item in items:
        market = None
        try:
            market = ctx.markets.get_market(item.market_id)
        except MarketAPIError as e:
            logger.warning(f"⚠️ Watchlist price lookup failed for {item.market_id}: {e}")
        current = market.get('yesPrice') if market else None
        rows.append({
            'name': item.market_name or item.market_id,
            # last known price stands in when the lookup fails
            'currentPrice': current if current is not None else item.added_price,
            'addedPrice': item.added_price,
        })
    return rows


@guarded('watchlist')
async def handle_watchlist(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    items = await asyncio.to_thread(ctx.watchlist.list, user.id)
    if not items:
        await reply(update, EMPTY_WATCHLIST)
        return

    await typing(update, context)
    rows = await asyncio.to_thread(_watchlist_rows, ctx, items)
    limit = ctx.tiers.limit_for('watchlist', premium)
    await reply(update, messages.watchlist(rows, '∞' if limit is None else limit))


@guarded('unwatch')
async def handle_unwatch(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = command_args(context)
    if not query:
        await reply(update, messages.USAGE['unwatch'])
        return

    ctx, user, _ = await load_user(update, context)
    item = await asyncio.to_thread(ctx.watchlist.find, user.id, query)
    if item is None:
        await reply(update, '❌ Market not found in your watchlist\\. Check /watchlist')
        return
    await asyncio.to_thread(ctx.watchlist.remove, user.id, item.market_id)
    await reply(update, f"✅ Removed from watchlist: _{escape_markdown(truncate(item.market_name, 40))}_")


# ==================== ACCOUNT & BILLING ====================

@guarded('account')
async def handle_account(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    await reply(update, messages.account(user, premium, ctx.tiers.free_limits))


@guarded('upgrade')
async def handle_upgrade(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    if premium:
        await reply(update, "✨ You're already Premium\\! Thank you for your support\\.")
        return
    if not ctx.billing.enabled:
        await reply(update, messages.upgrade_coming_soon())
        return

    await typing(update, context)
    try:
        checkout = await asyncio.to_thread(ctx.billing.create_checkout_session, user.telegram_id,
                                           user.username)
    except Exception as e:
        logger.error(f"❌ Checkout creation failed for {user.telegram_id}: {e}")
        await reply(update, '❌ Could not create checkout\\. Please try again\\.')
        return

    if checkout['customer_id'] != user.stripe_customer_id:
        await asyncio.to_thread(ctx.users.set_stripe_customer, user.telegram_id, checkout['customer_id'])
    await reply(update, messages.upgrade_checkout(checkout['url']), preview=True)


@guarded('manage')
async def handle_manage(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, _ = await load_user(update, context)
    if not ctx.billing.enabled:
        await reply(update, messages.upgrade_coming_soon())
        return
    if not user.stripe_customer_id:
        await reply(update, "You don't have a subscription to manage yet\\. Start one with /upgrade")
        return

    url = await asyncio.to_thread(ctx.billing.create_portal_session, user.stripe_customer_id)
    await reply(update, messages.manage_portal(url))


@guarded('stats')
async def handle_stats(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx = get_app_context(context)
    if update.effective_user.id not in ctx.config.ADMIN_IDS:
        await reply(update, '⛔ This command is for admins only\\.')
        return
    counts = await asyncio.to_thread(ctx.users.count_by_status)
    jobs = ctx.scheduler.status() if ctx.scheduler else {}
    await reply(update, messages.job_stats(counts, jobs))


# ==================== SHORTCUTS ====================

async def handle_market(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await reply(update, 'Use /trending to see trending markets or /price <keyword> to check specific markets.',
                markdown=False)


async def handle_top(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await reply(update, 'Use /trending for top markets or /leaderboard for prediction rankings.',
                markdown=False)


async def handle_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await reply(update, 'To cancel an alert, use /cancelalert <id\\>\\. View your alerts with /alerts first\\.')


async def handle_unknown(update: Update, context: ContextTypes.DEFAULT_TYPE):
    try:
        await reply(update, "🤖 I didn't understand that\\. Use /help for commands\\.")
    except Exception as e:
        logger.error(f"Error in handle_unknown: {e}")


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE):
    logger.error(f"❌ Update {update} caused error: {context.error}")
