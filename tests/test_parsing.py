from polypulse.bot.premium_handlers import split_categories
from polypulse.bot.tracking_handlers import parse_trade, trade_error
from polypulse.bot.handlers import ALERT_RE
from polypulse.utils.categories import categorize_market, detect_category
from polypulse.utils.parsing import (
    format_hour, local_hour, parse_time_string, parse_timezone, parse_whale_amount,
)


def test_time_strings():
    assert parse_time_string('7am') == 7
    assert parse_time_string('7 am') == 7
    assert parse_time_string('7:00pm') == 19
    assert parse_time_string('14:00') == 14
    assert parse_time_string('12am') == 0
    assert parse_time_string('12pm') == 12
    assert parse_time_string('25:00') is None
    assert parse_time_string('soon') is None


def test_timezones_and_local_hour():
    assert parse_timezone('est') == 'EST'
    assert parse_timezone('Pacific') == 'PST'
    assert parse_timezone('Mars') is None
    assert local_hour(13, 'EST') == 8
    assert local_hour(2, 'PST') == 18
    assert local_hour(3, 'IST') == 8


def test_format_hour():
    assert format_hour(0) == '12am'
    assert format_hour(7) == '7am'
    assert format_hour(12) == '12pm'
    assert format_hour(19) == '7pm'


def test_whale_amount_parsing_and_clamping():
    assert parse_whale_amount('100k') == 100_000
    assert parse_whale_amount('250000') == 250_000
    assert parse_whale_amount('10') == 50_000
    assert parse_whale_amount('99999999') == 10_000_000
    assert parse_whale_amount('lots') is None


def test_alert_command_pattern():
    match = ALERT_RE.match('bitcoin 100k 60%')
    assert match.group(1) == 'bitcoin 100k'
    assert match.group(2) == '60'
    assert ALERT_RE.match('bitcoin') is None


def test_trade_command_pattern():
    assert parse_trade('bitcoin-100k 100 0.54') == ('bitcoin-100k', 100.0, 0.54)
    assert parse_trade('trump wins 200 .31') == ('trump wins', 200.0, 0.31)
    assert parse_trade('bitcoin 100') is None


def test_trade_validation_messages():
    assert trade_error(100, 0.54, '0.54') is None
    assert 'positive' in trade_error(0, 0.54, '0.54')
    assert 'between 0 and 1' in trade_error(10, 1.2, '0.54')


def test_category_lists_keep_only_valid_names():
    assert split_categories('crypto, politics sports,bogus crypto') == ['crypto', 'politics', 'sports']
    assert split_categories('nothing') == []


def test_category_detection():
    assert detect_category('Will Bitcoin hit $100k?') == 'crypto'
    assert detect_category('Qwerty zxcv') == 'other'
    assert 'politics' in categorize_market('Will Trump win the election?')
    assert categorize_market(None) == []
