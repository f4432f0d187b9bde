# 📁 polypulse/api/polymarket_client.py
import json
import logging
import re
import threading
import time
from datetime import datetime, timedelta, timezone

import requests

from polypulse.core.clock import utcnow
from polypulse.core.config import Config

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r'[^a-z0-9]+')


class MarketAPIError(Exception):
    pass


def _load_json_list(value):
    if isinstance(value, list):
        return value
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return []
    return parsed if isinstance(parsed, list) else []


def _to_float(value, default=None):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_datetime(value):
    """ISO timestamps from the API as naive UTC"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def enrich_market(market):
    """Add outcomes, yesPrice/noPrice and a slug to a raw market record"""
    if not market:
        return market
    names = _load_json_list(market.get('outcomes'))
    prices = _load_json_list(market.get('outcomePrices'))

    outcomes = []
    for i, name in enumerate(names):
        price = _to_float(prices[i]) if i < len(prices) else None
        outcomes.append({'name': name, 'price': price})

    def price_of(label):
        for outcome in outcomes:
            if str(outcome['name']).lower() == label:
                return outcome['price']
        return None

    enriched = dict(market)
    enriched['outcomes'] = outcomes
    enriched['yesPrice'] = price_of('yes')
    enriched['noPrice'] = price_of('no')
    enriched['volume24hr'] = _to_float(market.get('volume24hr'), 0.0)
    if not enriched.get('slug'):
        enriched['slug'] = _SLUG_RE.sub('-', (market.get('question') or '').lower())
    return enriched


def score_market(market, query):
    """Relevance of a market to a lowercased search query; 0 means no match"""
    question = (market.get('question') or '').lower()
    slug = (market.get('slug') or '').lower()
    description = (market.get('description') or '').lower()

    score = 0
    if query in question:
        score += 100
    for word in query.split():
        if word in question:
            score += 10
        if word in slug:
            score += 5
        if word in description:
            score += 2

    if score > 0:
        volume = market.get('volume24hr') or 0
        if volume > 100_000:
            score += 5
        if volume > 1_000_000:
            score += 10
    return score


class _CachedValue:
    """Single cached value with a TTL; keeps the last good value for stale reads"""

    def __init__(self, ttl):
        self.ttl = ttl
        self.value = None
        self.fetched_at = None

    def fresh(self, now):
        return self.fetched_at is not None and now - self.fetched_at < self.ttl

    def set(self, value, now):
        self.value = value
        self.fetched_at = now


class PolymarketClient:
    def __init__(self, base_url=None, timeout=None, trending_ttl=None, catalog_ttl=None,
                 max_pages=None, page_size=None, session=None, clock=time.monotonic,
                 request_delay=0.1):
        self.base_url = (base_url or Config.POLYMARKET_API_URL).rstrip('/')
        self.timeout = timeout or Config.API_TIMEOUT
        self.max_pages = max_pages or Config.CATALOG_MAX_PAGES
        self.page_size = page_size or Config.CATALOG_PAGE_SIZE
        self.request_delay = request_delay
        self.clock = clock

        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': Config.USER_AGENT,
        })

        self._lock = threading.Lock()
        self._trending = _CachedValue(trending_ttl or Config.TRENDING_CACHE_TTL)
        self._catalog = _CachedValue(catalog_ttl or Config.CATALOG_CACHE_TTL)

    def close(self):
        self.session.close()

    def _get(self, path, params=None):
        url = f"{self.base_url}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _cached(self, cache, loader, label):
        now = self.clock()
        with self._lock:
            if cache.fresh(now):
                return cache.value
        try:
            value = loader()
        except (requests.RequestException, ValueError) as e:
            with self._lock:
                if cache.value is not None:
                    logger.warning(f"⚠️ {label} refresh failed, serving cached copy: {e}")
                    return cache.value
            logger.error(f"❌ {label} fetch failed: {e}")
            raise MarketAPIError(str(e)) from e
        with self._lock:
            cache.set(value, self.clock())
        return value

    # ==================== LISTINGS ====================

    def _load_trending(self):
        data = self._get('/markets', {'closed': 'false', 'active': 'true', 'limit': 100})
        markets = [enrich_market(m) for m in data or []]
        markets.sort(key=lambda m: m.get('volume24hr') or 0, reverse=True)
        return markets

    def list_trending(self, limit=10):
        markets = self._cached(self._trending, self._load_trending, 'Trending markets')
        return markets[:limit]

    def _load_catalog(self):
        markets = []
        for page in range(self.max_pages):
            batch = self._get('/markets', {
                'closed': 'false',
                'active': 'true',
                'limit': self.page_size,
                'offset': page * self.page_size,
            }) or []
            markets.extend(enrich_market(m) for m in batch)
            if len(batch) < self.page_size:
                break
        logger.info(f"📚 Market catalog refreshed: {len(markets)} markets")
        return markets

    def fetch_all_markets(self):
        return self._cached(self._catalog, self._load_catalog, 'Market catalog')

    def search(self, query, limit=5):
        needle = (query or '').lower().strip()
        if not needle:
            return []
        scored = []
        for market in self.fetch_all_markets():
            score = score_market(market, needle)
            if score > 0:
                scored.append((score, market))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [market for _, market in scored[:limit]]

    # ==================== SINGLE MARKETS ====================

    def get_market(self, identifier):
        identifier = str(identifier or '').strip()
        if not identifier:
            return None
        try:
            data = self._get(f'/markets/{identifier}')
            if data and isinstance(data, dict) and data.get('id'):
                return enrich_market(data)
        except (requests.RequestException, ValueError) as e:
            logger.debug(f"Market lookup by id failed for {identifier}: {e}")

        try:
            data = self._get('/markets', {'slug': identifier})
        except (requests.RequestException, ValueError) as e:
            raise MarketAPIError(str(e)) from e
        if isinstance(data, list) and data:
            return enrich_market(data[0])
        return None

    def get_markets_by_ids(self, ids):
        markets = []
        for i, market_id in enumerate(ids):
            if i and self.request_delay:
                time.sleep(self.request_delay)
            try:
                market = self.get_market(market_id)
            except MarketAPIError as e:
                logger.error(f"❌ Failed to fetch market {market_id}: {e}")
                continue
            if market:
                markets.append(market)
        return markets

    def get_related_markets(self, market, limit=3):
        words = [w for w in re.split(r'\s+', (market.get('question') or '').lower()) if len(w) > 3]
        keywords = words[:3]
        if not keywords:
            return []

        scored = []
        for candidate in self.list_trending(limit=100):
            if candidate.get('id') == market.get('id'):
                continue
            question = (candidate.get('question') or '').lower()
            hits = sum(1 for k in keywords if k in question)
            if hits:
                scored.append((hits, candidate))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [candidate for _, candidate in scored[:limit]]

    def get_new_markets(self, hours=48, limit=10):
        cutoff = utcnow() - timedelta(hours=hours)
        fresh = []
        for market in self.fetch_all_markets():
            created = parse_datetime(market.get('createdAt') or market.get('startDate'))
            if created and created >= cutoff:
                fresh.append((created, market))
        fresh.sort(key=lambda pair: pair[0], reverse=True)
        return [market for _, market in fresh[:limit]]

    def health_check(self):
        try:
            response = self.session.get(f"{self.base_url}/markets", params={'limit': 1},
                                        timeout=self.timeout)
            return response.status_code == 200
        except requests.RequestException as e:
            logger.error(f"❌ Market API health check failed: {e}")
            return False
