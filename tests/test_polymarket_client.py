import pytest
import requests

from polypulse.api.polymarket_client import (
    MarketAPIError, PolymarketClient, enrich_market, parse_datetime, score_market,
)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, routes=None):
        self.headers = {}
        self.routes = routes or {}
        self.calls = []
        self.fail = False

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        if self.fail:
            raise requests.ConnectionError('connection refused')
        path = url.split('.com', 1)[-1]
        handler = self.routes.get(path)
        if handler is None:
            return FakeResponse({}, 404)
        return FakeResponse(handler(params or {}))

    def close(self):
        pass


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def raw_market(market_id, question, yes='0.6', volume='1000'):
    return {'id': market_id, 'question': question, 'slug': question.lower().replace(' ', '-'),
            'outcomes': '["Yes", "No"]', 'outcomePrices': f'["{yes}", "0.4"]',
            'volume24hr': volume}


def make_client(session, clock=None, **kwargs):
    return PolymarketClient(base_url='https://gamma-api.example.com', session=session,
                            clock=clock or FakeClock(), trending_ttl=60, catalog_ttl=300,
                            request_delay=0, **kwargs)


def test_enrich_parses_outcome_prices():
    market = enrich_market(raw_market('1', 'Will Bitcoin hit 100k?', yes='0.65', volume='2500'))
    assert market['yesPrice'] == 0.65
    assert market['noPrice'] == 0.4
    assert market['volume24hr'] == 2500.0
    assert market['outcomes'][0] == {'name': 'Yes', 'price': 0.65}


def test_enrich_tolerates_bad_json():
    market = enrich_market({'id': '1', 'question': 'Odd market', 'outcomes': 'not json'})
    assert market['outcomes'] == []
    assert market['yesPrice'] is None
    assert market['slug'] == 'odd-market'


def test_volume_bonus_only_applies_to_matches():
    busy = {'question': 'Will Bitcoin hit 100k?', 'slug': 'bitcoin-100k', 'volume24hr': 2_000_000}
    assert score_market(busy, 'bitcoin') == 10 + 100 + 5 + 5 + 10
    assert score_market(busy, 'ethereum') == 0


def test_parse_datetime_returns_naive_utc():
    parsed = parse_datetime('2025-01-02T03:04:05Z')
    assert parsed.tzinfo is None
    assert (parsed.hour, parsed.minute) == (3, 4)
    assert parse_datetime('yesterday') is None


def test_trending_is_cached_within_ttl():
    session = FakeSession({'/markets': lambda p: [raw_market('1', 'A', volume='10'),
                                                  raw_market('2', 'B', volume='99')]})
    clock = FakeClock()
    client = make_client(session, clock)

    assert [m['id'] for m in client.list_trending()] == ['2', '1']
    client.list_trending()
    assert len(session.calls) == 1

    clock.now += 61
    client.list_trending()
    assert len(session.calls) == 2


def test_stale_trending_served_when_refresh_fails():
    session = FakeSession({'/markets': lambda p: [raw_market('1', 'A')]})
    clock = FakeClock()
    client = make_client(session, clock)
    client.list_trending()

    clock.now += 120
    session.fail = True
    assert [m['id'] for m in client.list_trending()] == ['1']


def test_error_without_cache_raises():
    session = FakeSession()
    session.fail = True
    with pytest.raises(MarketAPIError):
        make_client(session).list_trending()


def test_catalog_pages_until_short_page():
    def page(params):
        offset = params['offset']
        if offset >= 4:
            return [raw_market('9', 'Last')]
        return [raw_market(str(offset + i), f'Market {offset + i}') for i in range(2)]

    session = FakeSession({'/markets': page})
    client = make_client(session, max_pages=5, page_size=2)

    assert len(client.fetch_all_markets()) == 5
    assert len(session.calls) == 3


def test_search_ranks_by_relevance():
    session = FakeSession({'/markets': lambda p: [
        raw_market('1', 'Will Ethereum flip Bitcoin?'),
        raw_market('2', 'Bitcoin above 100k?'),
        raw_market('3', 'Fed cut in June?'),
    ]})
    client = make_client(session, page_size=100)

    results = client.search('bitcoin 100k')
    assert [m['id'] for m in results] == ['2', '1']
    assert client.search('   ') == []


def test_get_market_falls_back_to_slug_lookup():
    session = FakeSession({'/markets': lambda p: [raw_market('7', 'Fed cut in June?')]
                           if p.get('slug') == 'fed-cut' else []})
    client = make_client(session)

    assert client.get_market('fed-cut')['id'] == '7'
    assert client.get_market('') is None


def test_related_markets_rank_by_shared_keywords():
    session = FakeSession({'/markets': lambda p: [
        raw_market('1', 'Will Bitcoin hit $100k in 2025?', volume='900'),
        raw_market('2', 'Will Bitcoin hit $150k in 2025?', volume='500'),
        raw_market('3', 'Bitcoin ETF approved?', volume='400'),
        raw_market('4', 'Fed cut in June?', volume='300'),
    ]})
    client = make_client(session)
    main = client.list_trending(limit=1)[0]

    related = client.get_related_markets(main, limit=2)
    assert [m['id'] for m in related] == ['2', '3']
