# 📁 polypulse/bot/messages.py
"""
MarkdownV2 message templates.

Percentages in this module carry one decimal ("73.4%") unless a template
rounds explicitly. Every dynamic value goes through esc() before it is
placed in a message.
"""
import math
from decimal import Decimal, ROUND_HALF_UP

from polypulse.core.config import Config
from polypulse.utils.categories import VALID_CATEGORIES
from polypulse.utils.format import escape_markdown as esc, format_date, truncate
from polypulse.utils.format import format_percent as utils_percent
from polypulse.utils.parsing import format_hour

SPARKLINE = Config.SPARKLINE_CHARS

# (minimum USD, emoji, label), largest first
WHALE_TIERS = [
    (10_000_000, '🌊', 'Tidal Wave'),
    (1_000_000, '🐳', 'Mega Whale'),
    (500_000, '🏦', 'Institution'),
    (100_000, '🦈', 'Shark'),
    (50_000, '🐋', 'Whale'),
    (0, '🐟', 'Fish'),
]


def _num(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _fixed(value, digits=0):
    """Half-up decimal rounding, ties away from zero"""
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(str(value or 0.0)).quantize(quantum, rounding=ROUND_HALF_UP))


def format_volume(volume):
    num = _num(volume)
    if num >= 1_000_000:
        return f"${_fixed(num / 1_000_000, 1)}M"
    if num >= 1_000:
        return f"${_fixed(num / 1_000)}K"
    return f"${_fixed(num)}"


def format_percent(price):
    return f"{_fixed(_num(price) * 100, 1)}%"


def _pct0(price):
    return _fixed(_num(price) * 100)


def _signed_pct(change, digits=1):
    pct = change * 100
    return f"+{_fixed(pct, digits)}%" if pct >= 0 else f"{_fixed(pct, digits)}%"


def _signed_usd(value):
    return f"+${value:.2f}" if value >= 0 else f"-${abs(value):.2f}"


def _money(value):
    return esc(f"{value:.2f}")


def _whole(value):
    return f"{value:.0f}"


def generate_sparkline(prices):
    if not prices or len(prices) < 2:
        return ''
    low, high = min(prices), max(prices)
    span = (high - low) or 1
    chars = []
    for p in prices:
        index = min(len(SPARKLINE) - 1, int(math.floor((p - low) / span * len(SPARKLINE))))
        chars.append(SPARKLINE[index])
    return ''.join(chars)


def get_change_indicator(change):
    pct = _fixed(change * 100, 1)
    if change > 0.001:
        return {'emoji': '🟢', 'arrow': '↑', 'text': f"+{pct}%", 'direction': 'up'}
    if change < -0.001:
        return {'emoji': '🔴', 'arrow': '↓', 'text': f"{pct}%", 'direction': 'down'}
    return {'emoji': '⚪', 'arrow': '→', 'text': '0%', 'direction': 'flat'}


def generate_insight(market):
    change = _num(market.get('oneDayPriceChange'))
    volume = _num(market.get('volume24hr'))
    if abs(change) > 0.1:
        return '🔥 Surging today' if change > 0 else '📉 Sharp decline'
    if volume > 500_000:
        return '💎 High volume activity'
    if abs(change) < 0.01:
        return '📊 Holding steady'
    if change > 0.03:
        return '📈 Gaining momentum'
    if change < -0.03:
        return '⚠️ Trending down'
    return '👀 Worth watching'


def whale_tier(amount_usd):
    for minimum, emoji, label in WHALE_TIERS:
        if amount_usd >= minimum:
            return emoji, label
    return WHALE_TIERS[-1][1], WHALE_TIERS[-1][2]


def _market_ref(market):
    return esc(market.get('slug') or market.get('id') or 'market')


# ==================== ONBOARDING ====================

def welcome():
    return """*Welcome to PolyPulse\\!* 📊

Track prediction markets in real\\-time\\. Get instant odds on elections, crypto, sports, and more\\.

*Quick start:*
/trending — See what's hot right now
/price bitcoin — Check any market
/alert trump 70 — Get notified at your price

*All commands:* /help

_Free to use\\. Premium for unlimited alerts\\._"""


HELP_TEXT = """*📊 PolyPulse — All Commands*

*Check Markets*
/trending — See the hottest markets right now
/price bitcoin — Get current odds on any market
/search election — Find markets by keyword

*Price Alerts*
/alert bitcoin 60 — Notify me when Bitcoin hits 60%
/alerts — See all my active alerts
/cancelalert — Remove an alert

*Watchlist*
/watch trump — Track a market
/watchlist — See my watched markets
/unwatch trump — Stop tracking a market

*Morning Briefing \\(Premium\\)*
/briefing — View briefing settings
/briefing on — Enable daily briefing
/briefing off — Disable briefing
/briefing time 7am — Set delivery time
/timezone EST — Set your timezone

*Whale Alerts \\(Premium\\)*
/whale — View whale alert settings
/whale on — Enable alerts \\($50K\\+\\)
/whale 100k — Only alert $100K\\+ bets
/whale off — Disable alerts

*Portfolio Tracker*
/portfolio — View all positions with P&L
/buy bitcoin 100 0\\.54 — Log buying 100 shares at 54¢
/sell bitcoin 50 0\\.73 — Log selling 50 shares at 73¢
/pnl — Quick P&L summary

*Smart Alerts \\(Premium\\)*
/smartalerts — View smart alert settings
/smartalert volume on — Enable volume spike alerts
/smartalert momentum off — Disable momentum alerts
/smartalert categories crypto,politics — Set new market categories

*Category Subscriptions*
/categories — List available categories
/subscribe crypto — Subscribe to all crypto markets
/subscribe politics,sports — Subscribe to multiple
/unsubscribe crypto — Unsubscribe from a category
/mysubs — View your subscriptions

*Predictions \\& Leaderboard*
/predict bitcoin\\-100k yes — Make a prediction
/predictions — View your prediction history
/accuracy — Your accuracy stats
/leaderboard — Top predictors this month \\(Premium\\)

*Account*
/account — Check my subscription status
/status — Same as /account
/upgrade — Get Premium \\($9\\.99/mo\\)
/manage — Manage or cancel your subscription

*Quick Shortcuts*
/market — Trending markets \\(same as /trending\\)
/top — Top markets or leaderboard
/cancel — How to cancel an alert

_Free: 3 alerts, 5 watchlist, 1 position, 1 category_
_Premium: Unlimited everything \\+ Briefing \\+ Whales_"""


USAGE = {
    'price': """*📊 Check Market Prices*

Type a keyword after /price to find a market:

/price bitcoin — Bitcoin prediction markets
/price trump — Trump\\-related markets
/price ethereum — ETH price predictions

_I'll show you the current odds and recent trends\\._""",
    'search': """*🔍 Search Markets*

Type a keyword after /search to find markets:

/search crypto — Cryptocurrency markets
/search election — Election predictions
/search sports — Sports betting markets

_I'll show you matching markets with current odds\\._""",
    'alert': """*🔔 Price Alerts*

Get notified when a market hits your target price\\.

*How to set an alert:*
`/alert bitcoin 60`

This finds a bitcoin market and alerts you when YES reaches 60%\\.

*Examples:*
• `/alert trump 70` — alert when Trump market hits 70%
• `/alert ethereum 25` — alert when ETH market drops to 25%
• `/alert recession 50` — alert at 50/50 odds

The bot checks every minute\\. When your price hits, you get a message and the alert is removed\\.

_Free: 3 alerts\\. Premium: unlimited\\._""",
    'cancelalert': """*🔕 Cancel an Alert*

To cancel an alert, use the ID shown in /alerts:

1\\. Type /alerts to see your active alerts
2\\. Copy the ID \\(like abc123\\)
3\\. Type /cancelalert abc123

_Each alert shows its ID underneath the market name\\._""",
    'watch': """*📋 Add to Watchlist*

Type a keyword after /watch to track a market:

/watch bitcoin — Track Bitcoin markets
/watch trump — Track Trump markets
/watch recession — Track recession odds

_I'll save it to your watchlist so you can check it anytime with /watchlist\\._""",
    'unwatch': """*📋 Remove from Watchlist*

Type a keyword after /unwatch to stop tracking a market:

/unwatch bitcoin — Stop tracking Bitcoin
/unwatch trump — Stop tracking Trump

_Check /watchlist to see what you're currently tracking\\._""",
    'buy': """*💼 Log a Buy*

`/buy <market> <shares> <price>`

*Example:*
`/buy bitcoin\\-100k 100 0\\.54` — 100 YES shares at 54¢

_Price is per share, between 0 and 1\\._""",
    'sell': """*💼 Log a Sell*

`/sell <market> <shares> <price>`

*Example:*
`/sell bitcoin\\-100k 50 0\\.73` — sell 50 shares at 73¢

_See your positions: /portfolio_""",
    'smartalert': """🧠 *Smart Alerts*

*Usage:*
`/smartalert volume on` — Enable volume spike alerts
`/smartalert momentum off` — Disable momentum alerts
`/smartalert categories crypto,politics` — Set categories

*Alert types:*
• `volume` — 3x\\+ normal volume spikes
• `momentum` — 10%\\+ moves in 4 hours
• `divergence` — Correlated markets decouple
• `newmarket` — New markets in your categories

_View current settings: /smartalerts_""",
    'subscribe': """📂 *Subscribe to Categories*

Subscribe to entire categories instead of individual markets\\.

*Usage:*
`/subscribe crypto` — Subscribe to crypto markets
`/subscribe politics,sports` — Multiple categories

*What you get:*
• Alerts for new markets in your categories
• Category\\-specific updates

*Available:* crypto, politics, sports, tech, economics, entertainment, world

_See all: /categories_""",
    'unsubscribe': """📂 *Unsubscribe from Categories*

*Usage:*
`/unsubscribe crypto` — Unsubscribe from crypto

_Check your subscriptions: /mysubs_""",
    'predict': """🎯 *Make a Prediction*

Predict the outcome of any market — for free\\!

*Usage:*
`/predict bitcoin\\-100k yes` — Predict YES
`/predict trump no` — Predict NO

*How it works:*
• Find a market with /trending or /search
• Make your prediction
• We track your accuracy over time
• Top predictors make the leaderboard 🏆

_Start with: /predict bitcoin yes_""",
}


# ==================== MARKETS ====================

def trending(markets):
    if not markets:
        return '📊 No trending markets found\\. Try again in a moment\\.'

    msg = "*🔥 Trending Markets*\n\n"
    for i, market in enumerate(markets):
        change = get_change_indicator(_num(market.get('oneDayPriceChange')))
        yes = market.get('yesPrice')
        yes_pct = format_percent(yes) if yes is not None else '—'
        msg += f"*{i + 1}\\. {esc(truncate(market.get('question'), 45))}*\n"
        msg += f"   {change['emoji']} *{esc(yes_pct)}* {esc(change['text'])} {change['arrow']}\n"
        msg += (f"   💰 {esc(format_volume(market.get('volume24hr')))} · "
                f"_{esc(generate_insight(market))}_\n\n")
    msg += "_💡 Get details: /price Bitcoin_"
    return msg


def price(market, related=None, history=None):
    change = get_change_indicator(_num(market.get('oneDayPriceChange')))
    sparkline = generate_sparkline(history or [])

    msg = f"*📊 {esc(truncate(market.get('question'), 60))}*\n\n"
    for outcome in market.get('outcomes') or []:
        name = str(outcome.get('name'))
        emoji = '✅' if name.lower() == 'yes' else '❌' if name.lower() == 'no' else '🔹'
        msg += f"{emoji} *{esc(name)}:* {esc(format_percent(outcome.get('price')))}\n"

    msg += "\n"
    trend = f"{esc(sparkline)} " if sparkline else ''
    msg += f"*24h Trend:* {trend}{change['emoji']} {esc(change['text'])}\n"
    msg += (f"*Volume:* {esc(format_volume(market.get('volume24hr')))} today · "
            f"{esc(format_volume(market.get('volumeNum')))} total\n")

    if related:
        msg += "\n_You might also watch:_\n"
        for other in related[:2]:
            msg += f"• {esc(truncate(other.get('question'), 35))}\n"

    slug = market.get('slug') or market.get('id')
    if slug:
        msg += f"\n[View on Polymarket](https://polymarket.com/event/{slug})"
    return msg


def search_results(query, markets):
    msg = f"*🔍 Results for \"{esc(query)}\"*\n\n"
    for i, market in enumerate(markets):
        yes = market.get('yesPrice')
        msg += f"*{i + 1}\\.* {esc(truncate(market.get('question'), 50))}\n"
        msg += f"   YES: *{esc(format_percent(yes) if yes is not None else '—')}*\n\n"
    msg += "_Get details: /price trump_"
    return msg


# ==================== TIERS ====================

def premium_upsell(feature='alerts'):
    feature_emoji = {
        'alerts': '🔔',
        'watchlist': '📋',
        'whale': '🐋',
        'portfolio': '💼',
        'digest': '📬',
    }
    msg = f"{feature_emoji.get(feature, '✨')} *{esc(feature.capitalize())} is a Premium feature\\.*\n\n"
    msg += "Get instant notifications when markets move — so you never miss a trade\\.\n\n"
    msg += "*✨ Premium includes:*\n"
    for item in Config.PREMIUM_FEATURES:
        msg += f"{esc(item)}\n"
    msg += f"\n*{Config.PREMIUM_PRICE_DISPLAY}* — cancel anytime\\.\n"
    msg += "→ /upgrade to start"
    return msg


def rate_limit(hours_left, feature):
    return f"""⏳ *You've used your free {esc(feature)} queries for today\\.*

Resets in ~{hours_left} hours\\.

Upgrade to Premium for unlimited access → /upgrade"""


def error(kind='generic'):
    messages = {
        'notFound': "🔍 Couldn't find that market\\. Try /search election or /trending to browse\\.",
        'apiDown': "⚠️ Polymarket data is temporarily unavailable\\. We're on it — try again in a few minutes\\.",
        'generic': "❌ Something went wrong\\. Please try again in a moment\\.",
    }
    return messages.get(kind, messages['generic'])


def account(user, is_premium, limits=None):
    if is_premium:
        label = 'Premium Trial' if user.subscription_status == 'trial' else 'Premium'
        since = format_date(user.created_at) if user.created_at else 'today'
        msg = f"""*📊 Your Account*

Status: ✨ *{label}*
Member since: {esc(since)}
"""
        if user.premium_until:
            msg += f"Access until: {esc(format_date(user.premium_until))}\n"
        msg += """
*Your Premium perks:*
• Unlimited price queries
• Unlimited alerts
• Daily market digests
• Priority support

_Manage billing: /manage_
_Thank you for your support\\!_"""
        return msg

    limits = limits or Config.FREE_LIMITS
    usage = user.daily_usage or {}
    return f"""*📊 Your Account*

Status: Free tier

*Today's usage:*
• Trending: {usage.get('trending', 0)}/{limits['trending']}
• Price checks: {usage.get('price', 0)}/{limits['price']}
• Searches: {usage.get('search', 0)}/{limits['search']}
• Alerts: {limits['alerts']} max

_Upgrade to Premium for unlimited access → /upgrade_"""


def upgrade_coming_soon():
    features = '\n'.join(f"• {esc(f)}" for f in Config.PREMIUM_FEATURES)
    return f"""*✨ Upgrade to Premium*

{Config.PREMIUM_PRICE_DISPLAY} — cancel anytime\\.

*Premium includes:*
{features}

🚧 _Payment integration coming soon\\!_

We'll notify you when Premium is available\\."""


def upgrade_checkout(url):
    return f"""*✨ Upgrade to Premium*

{Config.PREMIUM_PRICE_DISPLAY} — cancel anytime\\.

Tap below to complete your upgrade:

[🚀 Start Premium →]({url})

_Secure payment via Stripe\\._"""


def upgrade_success():
    return """🎉 *Welcome to Premium\\!*

Your account has been upgraded\\. Here's what's now unlocked:

✅ Unlimited price queries
✅ Unlimited alerts
✅ Watchlist \\& portfolio tracking
✅ Whale movement alerts
✅ Daily market digests

_Your alerts are now active\\._

Need help? Just ask\\!"""


def trial_started():
    return f"""🎁 *Your {Config.TRIAL_DAYS}\\-day Premium trial has started\\!*

Everything is unlocked: unlimited alerts, whale alerts, smart alerts and the morning briefing\\.

_Start with /whale on and /briefing on_"""


def manage_portal(url):
    return f"""*⚙️ Manage Subscription*

Update your card, download invoices or cancel anytime:

[Open billing portal →]({url})"""


def subscription_cancelled(ends_at=None):
    if ends_at:
        return (f"Your Premium subscription has been cancelled\\. "
                f"You'll have access until {esc(format_date(ends_at))}\\.\n\n"
                f"_We'd love to have you back — /upgrade anytime\\._")
    return ("Your Premium subscription has ended\\.\n\n"
            "_We'd love to have you back — /upgrade anytime\\._")


def payment_failed():
    return """⚠️ *Payment Failed*

We couldn't process your subscription payment\\. Please update your payment method to keep Premium access\\.

Contact us or try /upgrade again to update your card\\."""


# ==================== ALERTS ====================

def alert_created(market, threshold, direction, current_price):
    arrow = '📈' if direction == 'above' else '📉'
    direction_text = 'rises to' if direction == 'above' else 'drops to'
    return f"""✅ *Alert set\\!*

📊 *{esc(truncate(market.get('question'), 50))}*

{arrow} I'll message you when YES {direction_text} *{esc(_pct0(threshold) + '%')}*
📍 Currently at *{esc(format_percent(current_price))}*

_Checking every minute\\. View alerts: /alerts_"""


def alerts_list(alerts, max_alerts):
    if not alerts:
        return '📭 *No active alerts*\n\n_Set one: /alert bitcoin 60_'
    msg = f"*🔔 Your Alerts \\({len(alerts)}/{max_alerts}\\)*\n\n"
    for i, alert in enumerate(alerts):
        sign = '≥' if alert.direction == 'above' else '≤'
        msg += f"*{i + 1}\\.* {esc(truncate(alert.market_name, 40))}\n"
        msg += f"   YES {sign} {_pct0(alert.threshold)}%\n"
        msg += f"   _ID: {esc(alert.id[:8])}_\n\n"
    msg += "_Cancel an alert: /cancelalert abc123_"
    return msg


def alert_triggered(alert, market, current_price):
    emoji = '📈' if alert.direction == 'above' else '📉'
    crossed = 'crossed above' if alert.direction == 'above' else 'dropped below'
    name = alert.market_name or market.get('question')
    slug = market.get('slug') or alert.market_slug or ''
    return f"""🔔 *Alert Triggered\\!*

{emoji} *{esc(truncate(name, 50))}*

The market {crossed} your target\\.

🎯 Target: {esc(utils_percent(alert.threshold))}
📍 Current: *{esc(utils_percent(current_price))}*

[View on Polymarket](https://polymarket\\.com/event/{esc(slug)})

_This alert has been removed\\. Set another with /alert_"""


# ==================== WATCHLIST ====================

def watchlist(items, max_items):
    msg = f"*📋 Your Watchlist \\({len(items)}/{max_items}\\)*\n\n"
    for i, item in enumerate(items):
        msg += f"*{i + 1}\\.* {esc(truncate(item['name'], 40))}\n"
        current = item.get('currentPrice')
        if current is None:
            msg += "   YES: *—*\n\n"
            continue
        change = _num(current) - _num(item.get('addedPrice'), _num(current))
        emoji = '🟢' if change > 0.001 else '🔴' if change < -0.001 else '⚪'
        sign = '+' if change > 0 else ''
        since = f"{sign}{_fixed(change * 100, 1)}%"
        msg += f"   YES: *{esc(format_percent(current))}* {emoji} {esc(since)} since added\n\n"
    msg += "_Remove: /unwatch bitcoin_"
    return msg


def watch_added(market, current_price):
    return f"""✅ *Added to watchlist\\!*

📊 {esc(truncate(market.get('question'), 50))}
📍 Current: *{esc(format_percent(current_price))}*

_View your watchlist: /watchlist_"""


# ==================== BRIEFING ====================

def digest_status(enabled, prefs=None):
    if enabled:
        hour = prefs.send_hour if prefs else 8
        tz = prefs.timezone if prefs else 'UTC'
        return f"""✅ *Daily Digest enabled\\!*

You'll receive a market summary every day at {esc(format_hour(hour))} {esc(tz)}\\.

Your digest includes:
• Watchlist price changes
• Triggered alerts summary
• Top movers

_Change the time: /briefing time 7am_
_Disable anytime: /digest off_"""

    return """❌ *Daily Digest disabled*

You won't receive daily summaries\\.

_Enable: /digest on_"""


def _alert_time(value):
    return value.strftime('%I:%M %p').lstrip('0') + ' UTC'


def morning_briefing(data):
    msg = "☀️ *Good morning — here's your PolyPulse briefing*\n\n"

    items = data.get('watchlistItems') or []
    if items:
        msg += "📊 *YOUR WATCHLIST*\n"
        for item in items:
            change = _num(item.get('change'))
            msg += (f"• {esc(truncate(item['name'], 35))} — *{_pct0(item['currentPrice'])}%* "
                    f"\\({esc(_signed_pct(change, 0))} 24h\\)\n")
        msg += "\n"

    alerts = data.get('triggeredAlerts') or []
    if alerts:
        msg += "🔔 *ALERTS TRIGGERED OVERNIGHT*\n"
        for alert in alerts:
            msg += (f"• ⚡ {esc(truncate(alert.market_name, 35))} crossed {_pct0(alert.threshold)}% "
                    f"at {esc(_alert_time(alert.triggered_at))}\n")
        msg += "\n"

    whales = data.get('whaleEvents') or []
    if whales:
        msg += "🐋 *WHALE MOVES \\(Last 12h\\)*\n"
        for whale in whales[:3]:
            line = (f"• {esc(format_volume(whale.amount_usd))} dropped on {esc(whale.side)} "
                    f"for \"{esc(truncate(whale.market_title, 30))}\"")
            if whale.odds_before is not None and whale.odds_after is not None:
                line += f" \\(was {_pct0(whale.odds_before)}%, now {_pct0(whale.odds_after)}%\\)"
            msg += line + "\n"
        msg += "\n"

    movers = data.get('topMovers') or []
    if movers:
        msg += "🔥 *BIGGEST MOVERS \\(24h\\)*\n"
        for mover in movers[:5]:
            before = mover.get('yesterdayPrice') or 0.5
            now = mover.get('currentPrice') or 0.5
            msg += (f"• \"{esc(truncate(mover['question'], 35))}\" — {_pct0(before)}% → {_pct0(now)}% "
                    f"\\({esc(_signed_pct(now - before, 0))}\\)\n")
        msg += "\n"

    for section in data.get('categoryDigests') or []:
        msg += category_digest(section) + "\n"

    new_markets = data.get('newMarkets') or []
    if new_markets:
        msg += "📈 *NEW MARKETS WORTH WATCHING*\n"
        for market in new_markets[:3]:
            msg += (f"• \"{esc(truncate(market.get('question'), 40))}\" — opened at "
                    f"{_pct0(market.get('yesPrice') or 0.5)}%\n")
        msg += "\n"

    msg += "Have a great day\\! Reply /price \\[market\\] for real\\-time odds\\."
    return msg


def lite_briefing(markets):
    msg = "☀️ *Today's top markets*\n\n"
    for i, market in enumerate(markets[:3]):
        yes = market.get('yesPrice')
        msg += (f"*{i + 1}\\.* {esc(truncate(market.get('question'), 45))} — "
                f"*{esc(format_percent(yes) if yes is not None else '—')}*\n")
    msg += ("\n_Premium members get a personal briefing with their watchlist, alerts and whale "
            "moves every morning\\._\n→ /upgrade — 7 days free")
    return msg


def whale_teaser(amount_usd, title):
    return (f"🐋 *{esc(format_volume(amount_usd))} bet just placed* on \"{esc(truncate(title, 40))}\"\n\n"
            f"Want real\\-time whale alerts? /upgrade — 7 days free")


def winback(market=None):
    snippet = 'top markets are moving fast'
    if market:
        yes = market.get('yesPrice')
        if yes is not None:
            snippet = f"{truncate(market.get('question'), 40)} is at {format_percent(yes)} YES"
    return (f"📊 *Here's what you missed:* {esc(snippet)}\n\n"
            f"Start your free trial to never miss a move → /upgrade")


BRIEFING_INCLUDES = """*What's included:*
• Your watchlist with overnight changes
• Alerts triggered while you slept
• 🐋 Whale moves \\(big money bets\\)
• Top 5 movers \\(24h\\)
• New markets worth watching"""


def briefing_settings(prefs, is_premium):
    if not is_premium:
        return """☀️ *Morning Briefing*

This premium feature delivers a personalized market digest every morning\\.

*What you'll receive:*
• Your watchlist with overnight changes
• Any alerts that triggered while you slept
• 🐋 Whale moves \\(big money bets\\)
• Top movers \\(biggest % changes\\)
• New markets worth watching

_Upgrade to Premium to enable → /upgrade_"""

    enabled = bool(prefs and prefs.enabled)
    tz = (prefs.timezone if prefs else None) or 'UTC'
    hour = prefs.send_hour if prefs and prefs.send_hour is not None else 8

    msg = "☀️ *Morning Briefing*\n\n"
    msg += f"Status: {'✅ Enabled' if enabled else '❌ Disabled'}\n"
    msg += f"Timezone: {esc(tz)}\n"
    msg += f"Delivery time: {esc(format_hour(hour))} {esc(tz)}\n\n"
    msg += BRIEFING_INCLUDES + "\n\n"
    msg += "*Commands:*\n"
    msg += "`/briefing on` — Enable daily briefing\n"
    msg += "`/briefing off` — Disable briefing\n"
    msg += "`/briefing time 7am` — Set delivery time\n"
    msg += "`/timezone PST` — Set your timezone"
    return msg


def briefing_enabled():
    return "✅ *Morning briefing enabled\\!*\n\n_You'll receive your daily digest every morning\\._"


def briefing_disabled():
    return "❌ *Morning briefing disabled*\n\n_Re\\-enable anytime: /briefing on_"


def timezone_set(tz, hour):
    return f"""🌍 *Timezone updated\\!*

Your timezone: *{esc(tz)}*
Briefing time: *{esc(format_hour(hour))} {esc(tz)}*

_Your morning briefing will arrive at this time daily\\._"""


def briefing_time_set(hour, tz):
    return f"""⏰ *Briefing time updated\\!*

New delivery time: *{esc(format_hour(hour))} {esc(tz)}*

_Your morning briefing will arrive at this time daily\\._"""


# ==================== WHALES ====================

def _threshold_display(amount):
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    return f"${amount / 1000:.0f}K"


def whale_alert(event, stats=None):
    amount = event['amountUsd']
    emoji, _ = whale_tier(amount)
    before, after = event.get('oddsBefore'), event.get('oddsAfter')

    msg = f"{emoji} *WHALE ALERT*\n\n"
    msg += f"*{esc(format_volume(amount))}* just dropped on *{esc(event['side'])}*\n"
    msg += f"Market: _{esc(truncate(event.get('marketTitle'), 80))}_\n"
    if before and after:
        move = f"{'+' if after >= before else ''}{(after - before) * 100:.1f}%"
        msg += (f"Odds moved: {esc(format_percent(before))} → {esc(format_percent(after))} "
                f"\\({esc(move)}\\)\n")
    msg += "Time: Just now\n"

    if stats and stats.get('count', 0) > 0:
        msg += f"\n_This is whale \\#{stats['count']} on this market today\\._\n"
        msg += (f"_24h whale volume: {esc(format_volume(stats['yesVolume']))} YES / "
                f"{esc(format_volume(stats['noVolume']))} NO_")
    return msg


def whale_settings(prefs, is_premium):
    if not is_premium:
        return """🐋 *Whale Alerts — Premium Only*

Get instant notifications when whales \\($50K\\+\\) make big moves on Polymarket\\.

*What you'll see:*
• 🐋 Whale moves \\($50K\\+\\)
• 🦈 Shark moves \\($100K\\+\\)
• 🏦 Institution moves \\($500K\\+\\)
• 🐳 Mega whales \\($1M\\+\\)
• Market impact \\(odds before/after\\)

_Upgrade to Premium to enable → /upgrade_"""

    enabled = bool(prefs and prefs.enabled)
    minimum = prefs.min_amount_usd if prefs and prefs.min_amount_usd else 50000

    msg = "🐋 *Whale Alerts*\n\n"
    msg += f"Status: {'✅ Enabled' if enabled else '❌ Disabled'}\n"
    msg += f"Minimum bet: {esc(_threshold_display(minimum))}\n"
    msg += "Rate limit: 10 alerts/hour max\n\n"
    msg += "*Commands:*\n"
    msg += "`/whale on` — Enable alerts \\($50K\\+\\)\n"
    msg += "`/whale 100k` — Only alert $100K\\+ bets\n"
    msg += "`/whale 500k` — Only alert $500K\\+ bets\n"
    msg += "`/whale off` — Disable alerts"
    return msg


def whale_enabled(min_amount):
    emoji, _ = whale_tier(min_amount)
    return f"""{emoji} *Whale alerts enabled\\!*

Minimum bet: *{esc(_threshold_display(min_amount))}*
Rate limit: 10 alerts/hour max

_You'll be notified instantly when big money moves markets\\._"""


def whale_disabled():
    return "❌ *Whale alerts disabled*\n\n_Re\\-enable anytime: /whale on_"


# ==================== PORTFOLIO ====================

def portfolio(rows, totals):
    """rows: [(position, pnl_dict)]"""
    if not rows:
        return """💼 *Your Portfolio*

_No open positions\\._

*Log a trade:*
`/buy bitcoin\\-100k 100 0\\.54` — Log buying 100 shares at 54¢
`/sell bitcoin\\-100k 50 0\\.73` — Log selling 50 shares at 73¢

_Track your real Polymarket positions and see real\\-time P&L\\._"""

    msg = "💼 *YOUR PORTFOLIO*\n\n"
    for i, (position, pnl) in enumerate(rows):
        emoji = '🟢' if pnl['pnl'] >= 0 else '🔴'
        msg += f"*{i + 1}\\.* {esc(truncate(position.market_name, 35))}\n"
        msg += (f"   {esc(position.side)} {pnl['shares']:.0f} @ {_pct0(pnl['entry_price'])}¢ → "
                f"{_pct0(pnl['current_price'])}¢\n")
        msg += (f"   {emoji} *{esc(_signed_usd(pnl['pnl']))}* "
                f"\\({esc(_signed_pct(pnl['pnl_percent'] / 100))}\\)\n\n")

    msg += "━━━━━━━━━━━━━━━━━━━━\n"
    msg += f"💰 *Total invested:* ${_money(totals['invested'])}\n"
    msg += f"📊 *Current value:* ${_money(totals['current_value'])}\n"
    total_emoji = '🟢' if totals['pnl'] >= 0 else '🔴'
    msg += (f"{total_emoji} *Total P&L:* {esc(_signed_usd(totals['pnl']))} "
            f"\\({esc(_signed_pct(totals['pnl_percent'] / 100))}\\)\n\n")

    if len(rows) > 1:
        ordered = sorted(rows, key=lambda row: row[1]['pnl_percent'], reverse=True)
        best, worst = ordered[0], ordered[-1]
        if best[1]['pnl_percent'] > 0:
            msg += (f"📈 *Best:* {esc(truncate(best[0].market_name, 25))} "
                    f"\\({esc(_signed_pct(best[1]['pnl_percent'] / 100))}\\)\n")
        if worst[1]['pnl_percent'] < 0:
            msg += (f"📉 *Worst:* {esc(truncate(worst[0].market_name, 25))} "
                    f"\\({esc(_signed_pct(worst[1]['pnl_percent'] / 100))}\\)\n")
    return msg


def pnl_summary(totals, position_count):
    emoji = '🟢' if totals['pnl'] >= 0 else '🔴'
    msg = f"{emoji} *Quick P&L*\n\n"
    msg += (f"*Total P&L:* {esc(_signed_usd(totals['pnl']))} "
            f"\\({esc(_signed_pct(totals['pnl_percent'] / 100))}\\)\n")
    msg += f"*Invested:* ${_money(totals['invested'])}\n"
    msg += f"*Current:* ${_money(totals['current_value'])}\n"
    msg += f"*Positions:* {position_count} open\n\n"
    msg += "_See details: /portfolio_"
    return msg


def buy_confirmation(position, is_new):
    cost = position.shares * position.entry_price
    msg = f"✅ *{'Position opened' if is_new else 'Added to position'}\\!*\n\n"
    msg += f"📊 {esc(truncate(position.market_name, 50))}\n"
    msg += f"{esc(position.side)} {position.shares:.0f} shares @ {_pct0(position.entry_price)}¢\n"
    msg += f"Cost basis: ${_money(cost)}\n\n"
    msg += "_View portfolio: /portfolio_"
    return msg


def sell_confirmation(position, sold_shares, sell_price, pnl, fully_closed):
    proceeds = sold_shares * sell_price
    emoji = '🟢' if pnl >= 0 else '🔴'
    msg = f"✅ *{'Position closed' if fully_closed else 'Partial sell'}\\!*\n\n"
    msg += f"📊 {esc(truncate(position.market_name, 50))}\n"
    msg += f"Sold {sold_shares:.0f} shares @ {_pct0(sell_price)}¢\n"
    msg += f"Proceeds: ${_money(proceeds)}\n"
    msg += f"{emoji} P&L on sale: {esc(_signed_usd(pnl))}\n"
    if not fully_closed:
        msg += f"\n_{position.shares:.0f} shares remaining\\._"
    msg += "\n\n_View portfolio: /portfolio_"
    return msg


def portfolio_upsell():
    return """💼 *Portfolio Tracker*

Track your real Polymarket positions with real\\-time P&L\\.

*What you can do:*
• Log buys and sells
• See live P&L on each position
• Get alerts when positions hit targets

*Free:* 1 position max
*Premium:* Unlimited positions \\+ P&L alerts

_Upgrade to track your full portfolio → /upgrade_"""


# ==================== SMART ALERTS ====================

SMART_TYPE_LABELS = {
    'volume_spike': {'name': 'Volume Spike', 'emoji': '📊', 'desc': '3x+ normal volume'},
    'momentum': {'name': 'Momentum', 'emoji': '🚀', 'desc': '10%+ in 4 hours'},
    'divergence': {'name': 'Divergence', 'emoji': '⚠️', 'desc': 'Correlated markets decouple'},
    'new_market': {'name': 'New Market', 'emoji': '🆕', 'desc': 'Markets in your categories'},
}


def smart_alert_settings(prefs, is_premium):
    if not is_premium:
        return """🧠 *Smart Alerts — Premium Only*

Get notified about patterns that signal something big is happening\\.

*Alert types:*
📊 *Volume Spike* — 3x\\+ normal volume in an hour
🚀 *Momentum* — 10%\\+ move in 4 hours
⚠️ *Divergence* — Correlated markets decouple
🆕 *New Market* — New markets in your categories

_Upgrade to Premium to enable → /upgrade_"""

    by_type = {pref.alert_type: pref for pref in prefs or []}
    msg = "🧠 *Smart Alerts*\n\n"
    for key, label in SMART_TYPE_LABELS.items():
        pref = by_type.get(key)
        status = '✅' if pref and pref.enabled else '❌'
        msg += f"{label['emoji']} *{esc(label['name'])}*: {status}\n"
        msg += f"   _{esc(label['desc'])}_\n"
        categories = (pref.params or {}).get('categories') if pref else None
        if key == 'new_market' and categories:
            msg += f"   Categories: {esc(', '.join(categories))}\n"
        msg += "\n"

    msg += "*Commands:*\n"
    msg += "`/smartalert volume on` — Enable volume alerts\n"
    msg += "`/smartalert momentum off` — Disable momentum\n"
    msg += "`/smartalert categories crypto,politics`\n"
    msg += "`/smartalerts` — View this status"
    return msg


def smart_alert_toggled(alert_type, enabled):
    label = SMART_TYPE_LABELS.get(alert_type, {'name': alert_type, 'emoji': '🔔'})
    if enabled:
        return (f"{label['emoji']} *{esc(label['name'])} alerts enabled\\!*\n\n"
                f"_You'll be notified when these patterns are detected\\._")
    return (f"❌ *{esc(label['name'])} alerts disabled*\n\n"
            f"_Re\\-enable anytime: /smartalert {esc(alert_type.replace('_', ''))} on_")


def categories_set(categories):
    return f"""🆕 *New Market categories updated\\!*

You'll receive alerts for new markets in:
{esc(', '.join(categories))}

_Available: crypto, politics, sports, tech, economics, entertainment, world_"""


def volume_spike_alert(market, current_volume, avg_volume, multiplier, price_change):
    msg = "📊 *VOLUME SPIKE*\n\n"
    msg += (f"\"{esc(truncate(market.get('question'), 60))}\" just saw "
            f"*{esc(f'{multiplier:.1f}')}x* normal volume\\!\n\n")
    msg += f"*This hour:* {esc(format_volume(current_volume))}\n"
    msg += f"*Avg hourly:* {esc(format_volume(avg_volume))}\n"
    if price_change is not None:
        emoji = '📈' if price_change > 0 else '📉' if price_change < 0 else ''
        msg += f"{emoji} *Price change:* {esc(_signed_pct(price_change, 0))}\n"
    msg += "\n_Something is happening\\. Check the news\\._\n"
    msg += f"→ /price {_market_ref(market)}"
    return msg


def momentum_alert(market, old_price, new_price, hours_elapsed):
    change = new_price - old_price
    emoji = '🚀' if change > 0 else '📉'
    direction = 'surged' if change > 0 else 'dropped'
    msg = f"{emoji} *MOMENTUM ALERT*\n\n"
    msg += (f"\"{esc(truncate(market.get('question'), 60))}\" has {direction} "
            f"*{esc(f'{abs(change) * 100:.0f}')}%* in {esc(f'{hours_elapsed:.1f}')} hours\\!\n\n")
    msg += f"*Then:* {_pct0(old_price)}%\n"
    msg += f"*Now:* {_pct0(new_price)}%\n"
    msg += f"*Move:* {esc(_signed_pct(change, 0))}\n\n"
    msg += "_One of the fastest moves in this market today\\._\n"
    msg += f"→ /price {_market_ref(market)}"
    return msg


def new_market_alert(market, category):
    price = market.get('yesPrice') or 0.5
    volume = _num(market.get('volume24hr')) or _num(market.get('volumeNum'))
    msg = "🆕 *NEW MARKET IN YOUR CATEGORIES*\n\n"
    msg += f"Category: {esc(category)}\n"
    msg += f"\"{esc(truncate(market.get('question'), 60))}\"\n\n"
    msg += f"*Opening odds:* {_pct0(price)}% YES\n"
    if volume > 0:
        msg += f"*Volume so far:* {esc(format_volume(volume))}\n"
    msg += f"\n→ /price {_market_ref(market)}\n"
    msg += f"→ /watch {_market_ref(market)}"
    return msg


# ==================== CATEGORIES ====================

def _category_info(category):
    return VALID_CATEGORIES.get(category, {'emoji': '📊', 'name': category})


def categories_list(subscribed=None):
    subscribed = set(subscribed or [])
    msg = "📂 *Available Categories*\n\n"
    msg += "Subscribe to entire categories to get:\n"
    msg += "• Daily category digest in morning briefing\n"
    msg += "• Alerts when any market moves 10%\\+\n"
    msg += "• Notifications for new markets\n\n"
    for key, info in VALID_CATEGORIES.items():
        mark = ' ✅' if key in subscribed else ''
        msg += f"{info['emoji']} *{esc(info['name'])}*{mark}\n"
        msg += f"   _{esc(info['desc'])}_\n\n"
    msg += "*Commands:*\n"
    msg += "`/subscribe crypto` — Subscribe to a category\n"
    msg += "`/subscribe politics,sports` — Multiple at once\n"
    msg += "`/unsubscribe crypto` — Unsubscribe\n"
    msg += "`/mysubs` — View your subscriptions\n\n"
    msg += "_Free: 1 category\\. Premium: unlimited\\._"
    return msg


def my_subs(subs, is_premium):
    if not subs:
        return """📭 *No category subscriptions*

Subscribe to categories to get daily digests and alerts for all markets in that category\\.

_See available: /categories_"""

    limit = '∞' if is_premium else str(Config.FREE_LIMITS['categories'])
    msg = f"📂 *Your Subscriptions \\({len(subs)}/{limit}\\)*\n\n"
    for sub in subs:
        info = _category_info(sub.category)
        since = f"{sub.created_at.strftime('%b')} {sub.created_at.day}" if sub.created_at else 'today'
        msg += f"{info['emoji']} *{esc(info['name'])}*\n"
        msg += f"   _Since {esc(since)}_\n\n"
    msg += "*What you get:*\n"
    msg += "• Category digest in morning briefing\n"
    msg += "• Alerts when markets move 10%\\+\n"
    msg += "• New market notifications\n\n"
    msg += "_Unsubscribe: /unsubscribe crypto_"
    return msg


def subscribe_confirm(categories):
    perks = """You'll now receive:
• Daily digest in morning briefing
• Alerts when markets move 10%\\+
• New market notifications

_View all: /mysubs_"""
    if len(categories) == 1:
        info = _category_info(categories[0])
        return f"✅ *Subscribed to {info['emoji']} {esc(info['name'])}\\!*\n\n{perks}"

    lines = ''.join(f"{_category_info(c)['emoji']} {esc(_category_info(c)['name'])}\n" for c in categories)
    return f"✅ *Subscribed to {len(categories)} categories\\!*\n\n{lines}\n{perks}"


def unsubscribe_confirm(category):
    info = _category_info(category)
    return f"""❌ *Unsubscribed from {info['emoji']} {esc(info['name'])}*

You'll no longer receive alerts for this category\\.

_Re\\-subscribe: /subscribe {esc(category)}_"""


def category_upsell():
    return """📂 *Category Subscriptions*

Free tier: *1 category*
Premium: *Unlimited categories*

You're at your limit\\. Upgrade to subscribe to more categories, or unsubscribe from one first\\.

_Upgrade → /upgrade_
_Current subs → /mysubs_"""


def category_move_alert(market, category, change):
    info = _category_info(category)
    emoji = '🚀' if change > 0 else '📉'
    msg = f"{emoji} *CATEGORY ALERT*\n\n"
    msg += f"{info['emoji']} *{esc(info['name'])}*\n\n"
    msg += (f"\"{esc(truncate(market.get('question'), 60))}\" moved "
            f"*{esc(_signed_pct(change, 0))}*\n\n")
    msg += f"→ /price {_market_ref(market)}"
    return msg


def category_digest(section):
    info = _category_info(section['category'])
    msg = f"{info['emoji']} *{esc(info['name'].upper())}*\n"
    for mover in (section.get('topMovers') or [])[:3]:
        change = (mover.get('currentPrice') or 0) - (mover.get('yesterdayPrice') or 0)
        msg += f"• {esc(truncate(mover['question'], 35))} — {esc(_signed_pct(change, 0))}\n"
    new_markets = section.get('newMarkets') or []
    if new_markets:
        msg += "_New:_\n"
        for market in new_markets[:2]:
            msg += (f"• {esc(truncate(market.get('question'), 35))} — "
                    f"{_pct0(market.get('yesPrice') or 0.5)}%\n")
    return msg


# ==================== PREDICTIONS ====================

def prediction_confirm(market, prediction, odds):
    side_odds = odds if prediction == 'YES' else 1 - odds
    return f"""🎯 *Prediction locked in\\!*

📊 {esc(truncate(market.get('question'), 60))}
Your call: *{prediction}*
Market odds for {prediction}: *{esc(format_percent(side_odds))}*

_We'll score it when the market resolves\\. Track it: /predictions_"""


def already_predicted(existing):
    return f"""ℹ️ *You already predicted this market*

📊 {esc(truncate(existing.market_question, 60))}
Your call: *{existing.prediction}* at {esc(format_percent(existing.odds_at_prediction))}

_One prediction per market\\. See all: /predictions_"""


def _prediction_status(prediction):
    if not prediction.resolved:
        return '⏳'
    return '✅' if prediction.correct else '❌'


def predictions(rows, stats):
    if not rows:
        return "🎯 *No predictions yet*\n\n_Make your first: /predict bitcoin yes_"
    all_time = stats['allTime']
    msg = f"🎯 *Your Predictions \\({all_time['total']}\\)*\n\n"
    for prediction in rows:
        msg += (f"{_prediction_status(prediction)} *{prediction.prediction}* — "
                f"{esc(truncate(prediction.market_question, 45))}\n")
    msg += f"\n*Accuracy:* {_whole(all_time['accuracy'])}% "
    msg += f"\\({all_time['correct']}/{all_time['resolved']} resolved\\)\n"
    msg += "_Details: /accuracy_"
    return msg


def accuracy(stats, rank=None):
    monthly, all_time = stats['monthly'], stats['allTime']
    msg = "📈 *Your Prediction Accuracy*\n\n"
    msg += "*This month:*\n"
    msg += f"• Predictions: {monthly['total']}\n"
    msg += f"• Correct: {monthly['correct']}/{monthly['resolved']}\n"
    msg += f"• Accuracy: {_whole(monthly['accuracy'])}%\n\n"
    msg += "*All time:*\n"
    msg += f"• Predictions: {all_time['total']}\n"
    msg += f"• Correct: {all_time['correct']}/{all_time['resolved']}\n"
    msg += f"• Accuracy: {_whole(all_time['accuracy'])}%\n"
    if rank:
        msg += f"\n🏆 Leaderboard rank: *\\#{rank}*"
    else:
        msg += "\n_Get a prediction resolved this month to join the leaderboard\\._"
    return msg


def leaderboard(entries, user_rank, total_predictors):
    if not entries:
        return "🏆 *Leaderboard*\n\n_No resolved predictions this month yet\\._"
    medals = {1: '🥇', 2: '🥈', 3: '🥉'}
    msg = "🏆 *Top Predictors This Month*\n\n"
    for entry in entries:
        name = f"@{entry['username']}" if entry.get('username') else f"Predictor {str(entry['telegram_id'])[-4:]}"
        badge = medals.get(entry['rank'], f"{entry['rank']}\\.")
        msg += (f"{badge} {esc(name)} — {entry['correct']} correct "
                f"\\({_whole(entry['accuracy'])}%\\)\n")
    msg += f"\n_{total_predictors} predictors this month_"
    if user_rank:
        msg += f"\n_Your rank: \\#{user_rank}_"
    return msg


def leaderboard_upsell(stats):
    monthly = stats['monthly']
    return f"""🏆 *Leaderboard — Premium*

See how you stack up against the top predictors this month\\.

*Your month so far:* {monthly['correct']}/{monthly['resolved']} correct \\({_whole(monthly['accuracy'])}%\\)

_Upgrade to see the full leaderboard → /upgrade_"""


# ==================== ADMIN ====================

def job_stats(user_counts, job_health):
    msg = "🛠 *PolyPulse Status*\n\n*Users:*\n"
    for status, count in sorted(user_counts.items()):
        msg += f"• {esc(status)}: {count}\n"
    msg += "\n*Jobs:*\n"
    for name, health in sorted(job_health.items()):
        icon = '✅' if not health['consecutive_failures'] else '⚠️'
        msg += (f"{icon} {esc(name)}: {health['runs']} runs, "
                f"{health['consecutive_failures']} failing in a row\n")
        if health.get('last_error'):
            msg += f"   _{esc(truncate(health['last_error'], 80))}_\n"
    return msg
