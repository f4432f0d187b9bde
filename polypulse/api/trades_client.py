# 📁 polypulse/api/trades_client.py
import logging

import requests

from polypulse.core.config import Config

logger = logging.getLogger(__name__)


def _first(trade, *keys):
    for key in keys:
        value = trade.get(key)
        if value not in (None, ''):
            return value
    return None


def _to_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_trade(trade):
    """Map either feed's field names onto one trade shape"""
    return {
        'id': _first(trade, 'id'),
        'tx_hash': _first(trade, 'transaction_hash', 'transactionHash'),
        'market_id': _first(trade, 'market', 'condition_id', 'conditionId'),
        'market_title': _first(trade, 'question', 'title', 'market_slug', 'slug'),
        'slug': _first(trade, 'market_slug', 'slug', 'eventSlug'),
        'side': (_first(trade, 'side') or '').upper(),
        'outcome': _first(trade, 'outcome'),
        'size': _to_float(_first(trade, 'size', 'amount')),
        'price': _to_float(_first(trade, 'price')),
        'price_before': _to_float(_first(trade, 'price_before', 'priceBefore')),
        'wallet': _first(trade, 'proxyWallet', 'maker', 'taker'),
        'timestamp': _first(trade, 'timestamp', 'created_at'),
    }


class TradesClient:
    def __init__(self, base_url=None, timeout=None, session=None):
        self.base_url = (base_url or Config.POLYMARKET_TRADES_URL).rstrip('/')
        self.timeout = timeout or Config.API_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': Config.USER_AGENT,
        })

    def close(self):
        self.session.close()

    def fetch_recent_trades(self, limit=100):
        response = self.session.get(f"{self.base_url}/trades", params={'limit': limit},
                                    timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict):
            data = data.get('data') or data.get('trades') or []
        return [normalize_trade(t) for t in data or []]
