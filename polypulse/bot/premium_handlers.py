# 📁 polypulse/bot/premium_handlers.py
import asyncio
import logging
import re

from telegram import Update
from telegram.ext import ContextTypes

from polypulse.bot import messages
from polypulse.bot.handlers import command_args, guarded, load_user, reply
from polypulse.stores.briefing import DEFAULT_SEND_HOUR, DEFAULT_TIMEZONE
from polypulse.stores.whales import DEFAULT_MIN_AMOUNT
from polypulse.utils.categories import VALID_CATEGORIES
from polypulse.utils.format import escape_markdown
from polypulse.utils.parsing import parse_time_string, parse_timezone, parse_whale_amount

logger = logging.getLogger(__name__)

SMART_TYPE_ALIASES = {
    'volume': 'volume_spike',
    'volumespike': 'volume_spike',
    'volume_spike': 'volume_spike',
    'momentum': 'momentum',
    'divergence': 'divergence',
    'newmarket': 'new_market',
    'newmarkets': 'new_market',
    'new_market': 'new_market',
}

ON_WORDS = ('on', 'enable', 'true', '1')
OFF_WORDS = ('off', 'disable', 'false', '0')

TIMEZONE_USAGE = """🌍 *Set Your Timezone*

Type your timezone after /timezone:

`/timezone EST` — Eastern Time
`/timezone PST` — Pacific Time
`/timezone CST` — Central Time
`/timezone UTC` — Coordinated Universal Time

_This sets when you receive your morning briefing\\._"""

WHALE_INVALID = ('❌ Invalid command\\. Try:\n`/whale on` — Enable \\($50K\\+\\)\n'
                 '`/whale 100k` — Only $100K\\+ bets\n`/whale off` — Disable')


def split_categories(text):
    """Valid category keys from a comma or space separated list, in order, without repeats"""
    found = []
    for name in re.split(r'[,\s]+', (text or '').lower()):
        if name in VALID_CATEGORIES and name not in found:
            found.append(name)
    return found


def no_valid_categories():
    return f"❌ No valid categories\\. Available: {escape_markdown(', '.join(VALID_CATEGORIES))}"


# ==================== MORNING BRIEFING ====================

@guarded('digest')
async def handle_digest(update: Update, context: ContextTypes.DEFAULT_TYPE):
    arg = command_args(context).lower()
    ctx, user, premium = await load_user(update, context)
    if not premium:
        await reply(update, messages.premium_upsell('digest'))
        return

    if arg in ('on', 'off'):
        prefs = await asyncio.to_thread(ctx.briefings.enable, user.id, arg == 'on')
        await reply(update, messages.digest_status(arg == 'on', prefs))
        return

    prefs = await asyncio.to_thread(ctx.briefings.get, user.id)
    await reply(update, messages.briefing_settings(prefs, True))


@guarded('briefing')
async def handle_briefing(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context).lower()
    ctx, user, premium = await load_user(update, context)
    if not premium:
        await reply(update, messages.briefing_settings(None, False))
        return

    if args == 'on':
        await asyncio.to_thread(ctx.briefings.enable, user.id, True)
        await reply(update, messages.briefing_enabled())
        return
    if args == 'off':
        await asyncio.to_thread(ctx.briefings.enable, user.id, False)
        await reply(update, messages.briefing_disabled())
        return

    if args.startswith('time'):
        hour = parse_time_string(args[len('time'):])
        if hour is None:
            await reply(update, '❌ Invalid time format\\. Try: `/briefing time 7am` or `/briefing time 14:00`')
            return
        prefs = await asyncio.to_thread(ctx.briefings.set_hour, user.id, hour)
        await reply(update, messages.briefing_time_set(hour, prefs.timezone or DEFAULT_TIMEZONE))
        return

    prefs = await asyncio.to_thread(ctx.briefings.get, user.id)
    await reply(update, messages.briefing_settings(prefs, True))


@guarded('timezone')
async def handle_timezone(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context)
    ctx, user, premium = await load_user(update, context)
    if not premium:
        await reply(update, messages.premium_upsell('briefing'))
        return
    if not args:
        await reply(update, TIMEZONE_USAGE)
        return

    timezone = parse_timezone(args)
    if not timezone:
        await reply(update, '❌ Unknown timezone\\. Try: EST, PST, CST, MST, UTC, GMT, CET, JST')
        return

    prefs = await asyncio.to_thread(ctx.briefings.set_timezone, user.id, timezone)
    hour = prefs.send_hour if prefs.send_hour is not None else DEFAULT_SEND_HOUR
    await reply(update, messages.timezone_set(timezone, hour))


# ==================== WHALE ALERTS ====================

@guarded('whale')
async def handle_whale(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context).lower()
    ctx, user, premium = await load_user(update, context)
    if not premium:
        await reply(update, messages.whale_settings(None, False))
        return

    if not args:
        prefs = await asyncio.to_thread(ctx.whales.get_prefs, user.id)
        await reply(update, messages.whale_settings(prefs, True))
        return

    if args == 'on':
        await asyncio.to_thread(ctx.whales.set_enabled, user.id, True, DEFAULT_MIN_AMOUNT)
        await reply(update, messages.whale_enabled(DEFAULT_MIN_AMOUNT))
        return
    if args == 'off':
        await asyncio.to_thread(ctx.whales.set_enabled, user.id, False)
        await reply(update, messages.whale_disabled())
        return

    amount = parse_whale_amount(args)
    if amount is None:
        await reply(update, WHALE_INVALID)
        return
    await asyncio.to_thread(ctx.whales.set_min_amount, user.id, amount)
    await reply(update, messages.whale_enabled(amount))


# ==================== SMART ALERTS ====================

@guarded('smartalerts')
async def handle_smart_alerts(update: Update, context: ContextTypes.DEFAULT_TYPE):
    ctx, user, premium = await load_user(update, context)
    if not premium:
        await reply(update, messages.smart_alert_settings([], False))
        return
    prefs = await asyncio.to_thread(ctx.smart_alerts.get_prefs, user.id)
    await reply(update, messages.smart_alert_settings(prefs, True))


@guarded('smartalert')
async def handle_smart_alert(update: Update, context: ContextTypes.DEFAULT_TYPE):
    args = command_args(context).lower()
    ctx, user, premium = await load_user(update, context)
    if not premium:
        await reply(update, messages.smart_alert_settings([], False))
        return
    if not args:
        await reply(update, messages.USAGE['smartalert'])
        return

    parts = args.split()
    if parts[0] == 'categories':
        categories = split_categories(' '.join(parts[1:]))
        if not categories:
            await reply(update, no_valid_categories())
            return
        await asyncio.to_thread(ctx.smart_alerts.upsert_pref, user.id, 'new_market', True,
                                {'categories': categories})
        await reply(update, messages.categories_set(categories))
        return

    if len(parts) < 2:
        await reply(update, '❌ Usage: `/smartalert volume on` or `/smartalert momentum off`')
        return

    alert_type = SMART_TYPE_ALIASES.get(parts[0])
    if alert_type is None:
        await reply(update, f"❌ Unknown alert type: \"{escape_markdown(parts[0])}\"\\. "
                            f"Try: volume, momentum, divergence, newmarket")
        return

    action = parts[1]
    if action not in ON_WORDS and action not in OFF_WORDS:
        await reply(update, '❌ Use "on" or "off"\\. Example: `/smartalert volume on`')
        return

    enabled = action in ON_WORDS
    await asyncio.to_thread(ctx.smart_alerts.set_enabled, user.id, alert_type, enabled)
    await reply(update, messages.smart_alert_toggled(alert_type, enabled))
