from polypulse.bot import messages
from polypulse.utils import format as fmt


def test_volume_display_compacts_millions_and_keeps_small_values():
    assert messages.format_volume(2_450_000) == '$2.5M'
    assert messages.format_volume(850) == '$850'


def test_message_rounding_sends_halves_up():
    assert messages.format_volume(2500) == '$3K'
    assert messages.format_volume(850.5) == '$851'
    assert messages.format_percent(0.0125) == '1.3%'
    assert messages.get_change_indicator(-0.0125)['text'] == '-1.3%'


def test_percent_conventions_differ_between_utils_and_messages():
    assert fmt.format_percent(0.734) == '73%'
    assert messages.format_percent(0.734) == '73.4%'


def test_utils_percent_handles_missing_price():
    assert fmt.format_percent(None) == '—'


def test_escape_markdown_escapes_every_reserved_character():
    assert fmt.escape_markdown('Will BTC hit $100k (2025)?') == 'Will BTC hit $100k \\(2025\\)?'
    assert fmt.escape_markdown('a.b-c!') == 'a\\.b\\-c\\!'
    assert fmt.escape_markdown(None) == ''


def test_truncate_adds_ellipsis_only_when_needed():
    assert fmt.truncate('short', 10) == 'short'
    assert fmt.truncate('a' * 20, 10) == 'a' * 7 + '...'


def test_sparkline_needs_two_points_in_messages():
    assert messages.generate_sparkline([0.5]) == ''
    line = messages.generate_sparkline([0.1, 0.5, 0.9])
    assert len(line) == 3
    assert line[0] == '▁' and line[-1] == '█'


def test_change_indicator():
    assert messages.get_change_indicator(0.05)['text'] == '+5.0%'
    assert messages.get_change_indicator(-0.05)['emoji'] == '🔴'
    assert messages.get_change_indicator(0.0)['text'] == '0%'


def test_whale_tier_ladder():
    assert messages.whale_tier(60_000)[1] == 'Whale'
    assert messages.whale_tier(150_000)[1] == 'Shark'
    assert messages.whale_tier(600_000)[1] == 'Institution'
    assert messages.whale_tier(2_000_000)[1] == 'Mega Whale'
    assert messages.whale_tier(10_000)[1] == 'Fish'
    assert messages.whale_tier(12_000_000)[1] == 'Tidal Wave'


def test_trending_message_escapes_market_questions():
    text = messages.trending([{'question': 'Fed cut (June)?', 'yesPrice': 0.42,
                               'volume24hr': 1_200_000, 'oneDayPriceChange': 0.02}])
    assert 'Fed cut \\(June\\)?' in text
    assert '42\\.0%' in text
    assert '$1\\.2M' in text


def test_trending_message_when_empty():
    assert 'No trending markets' in messages.trending([])


def test_watchlist_shows_change_since_added():
    text = messages.watchlist([
        {'name': 'Bitcoin 100k', 'currentPrice': 0.734, 'addedPrice': 0.684},
        {'name': 'Fed cut', 'currentPrice': 0.40, 'addedPrice': 0.45},
        {'name': 'Flat', 'currentPrice': 0.5, 'addedPrice': 0.5},
    ], 10)
    assert 'YES: *73\\.4%* 🟢 \\+5\\.0% since added' in text
    assert '🔴 \\-5\\.0% since added' in text
    assert '⚪ 0\\.0% since added' in text
