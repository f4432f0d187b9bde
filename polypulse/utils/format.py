# 📁 polypulse/utils/format.py
"""
Compact display helpers for market data.

Percentages here are whole numbers ("73%"); the message templates in
polypulse.bot.messages use one decimal place ("73.4%") and the two
conventions are kept apart on purpose.
"""
import math
import re

_MD_SPECIAL = re.compile(r'([_*\[\]()~`>#+\-=|{}.!\\])')


def _js_round(value):
    return int(math.floor(value + 0.5))


def _to_float(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def format_percent(price):
    """0.65 -> "65%"."""
    if price is None:
        return '—'
    pct = _to_float(price, None)
    if pct is None:
        return '—'
    return f'{_js_round(pct * 100)}%'


def truncate(text, max_length=50):
    if not text:
        return ''
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + '...'


def escape_markdown(text):
    """Escape Telegram MarkdownV2 special characters."""
    if text is None or text == '':
        return ''
    return _MD_SPECIAL.sub(r'\\\1', str(text))


def format_date(value):
    """Mon D, YYYY"""
    return f"{value.strftime('%b')} {value.day}, {value.year}"
