# 📁 polypulse/utils/parsing.py
import math
import re

TIMEZONE_OFFSETS = {
    'UTC': 0, 'GMT': 0,
    'EST': -5, 'EDT': -4,
    'CST': -6, 'CDT': -5,
    'MST': -7, 'MDT': -6,
    'PST': -8, 'PDT': -7,
    'PT': -8, 'ET': -5, 'CT': -6, 'MT': -7,
    'CET': 1, 'CEST': 2,
    'WET': 0, 'EET': 2,
    'BST': 1,
    'IST': 5.5,
    'JST': 9, 'KST': 9,
    'HKT': 8, 'SGT': 8,
    'AEST': 10, 'AEDT': 11, 'AWST': 8,
}

TIMEZONE_ALIASES = {
    'EASTERN': 'EST',
    'PACIFIC': 'PST',
    'CENTRAL': 'CST',
    'MOUNTAIN': 'MST',
}

_TIME_RE = re.compile(r'^(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$')
_WHALE_AMOUNT_RE = re.compile(r'^(\d+)k?$')

WHALE_MIN_THRESHOLD = 50000
WHALE_MAX_THRESHOLD = 10000000


def normalize_timezone(tz):
    return re.sub(r'[^A-Z]', '', (tz or '').upper())


def parse_timezone(value):
    """Canonical timezone code or None."""
    tz = normalize_timezone(value)
    tz = TIMEZONE_ALIASES.get(tz, tz)
    return tz if tz in TIMEZONE_OFFSETS else None


def local_hour(utc_hour, tz):
    offset = TIMEZONE_OFFSETS.get(normalize_timezone(tz), 0)
    return int(math.floor((utc_hour + offset) % 24))


def parse_time_string(value):
    """'7am', '7:00 pm', '14:00' -> hour 0..23, or None."""
    match = _TIME_RE.match((value or '').strip().lower())
    if not match:
        return None
    hour = int(match.group(1))
    meridiem = match.group(3)
    if meridiem == 'pm' and hour != 12:
        hour += 12
    elif meridiem == 'am' and hour == 12:
        hour = 0
    if hour < 0 or hour > 23:
        return None
    return hour


def format_hour(hour):
    if hour == 0:
        return '12am'
    if hour < 12:
        return f'{hour}am'
    if hour == 12:
        return '12pm'
    return f'{hour - 12}pm'


def parse_whale_amount(value):
    """'100k' or '250000' -> clamped USD threshold, or None."""
    match = _WHALE_AMOUNT_RE.match((value or '').strip().lower())
    if not match:
        return None
    amount = int(match.group(1))
    if amount <= 1000:
        amount *= 1000
    return max(WHALE_MIN_THRESHOLD, min(WHALE_MAX_THRESHOLD, amount))
