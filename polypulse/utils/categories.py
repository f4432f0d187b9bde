# 📁 polypulse/utils/categories.py
import re

VALID_CATEGORIES = {
    'crypto': {
        'name': 'Crypto', 'emoji': '🪙',
        'desc': 'Bitcoin, Ethereum, DeFi, regulations',
        'keywords': ['bitcoin', 'btc', 'ethereum', 'eth', 'crypto', 'defi', 'nft', 'solana',
                     'sol', 'xrp', 'dogecoin', 'doge', 'altcoin', 'blockchain', 'token', 'coin'],
    },
    'politics': {
        'name': 'Politics', 'emoji': '🏛️',
        'desc': 'US elections, policy, international',
        'keywords': ['election', 'trump', 'biden', 'president', 'senate', 'congress', 'vote',
                     'democrat', 'republican', 'governor', 'mayor', 'political', 'policy',
                     'campaign'],
    },
    'sports': {
        'name': 'Sports', 'emoji': '⚽',
        'desc': 'UFC, NFL, NBA, soccer, Olympics',
        'keywords': ['ufc', 'nfl', 'nba', 'mlb', 'soccer', 'football', 'basketball', 'baseball',
                     'tennis', 'golf', 'olympics', 'championship', 'super bowl', 'world cup',
                     'match', 'game', 'fight'],
    },
    'tech': {
        'name': 'Tech', 'emoji': '💻',
        'desc': 'Product launches, IPOs, AI milestones',
        'keywords': ['apple', 'google', 'microsoft', 'ai', 'artificial intelligence', 'openai',
                     'nvidia', 'tesla', 'meta', 'amazon', 'ipo', 'launch', 'product',
                     'software', 'hardware'],
    },
    'world': {
        'name': 'World Events', 'emoji': '🌍',
        'desc': 'Geopolitics, climate, science',
        'keywords': ['war', 'peace', 'climate', 'treaty', 'united nations', 'nato', 'china',
                     'russia', 'ukraine', 'israel', 'middle east', 'europe', 'asia', 'africa',
                     'geopolitical'],
    },
    'economics': {
        'name': 'Economics', 'emoji': '💰',
        'desc': 'Fed, inflation, GDP, employment',
        'keywords': ['fed', 'federal reserve', 'interest rate', 'inflation', 'gdp',
                     'unemployment', 'recession', 'economy', 'stock', 'market', 'bond',
                     'treasury', 'central bank'],
    },
    'entertainment': {
        'name': 'Entertainment', 'emoji': '🎬',
        'desc': 'Awards, box office, celebrity',
        'keywords': ['oscar', 'grammy', 'emmy', 'movie', 'film', 'music', 'celebrity', 'award',
                     'box office', 'album', 'concert', 'netflix', 'disney', 'streaming'],
    },
}

# Single-label detection for new-market alerts, checked in order
_DETECTORS = [
    ('crypto', re.compile(r'bitcoin|btc|ethereum|eth|crypto|defi|solana|sol|nft|blockchain|binance|coinbase')),
    ('politics', re.compile(r'trump|biden|election|president|congress|senate|democrat|republican|vote|governor|mayor|political')),
    ('sports', re.compile(r'nba|nfl|ufc|mlb|nhl|soccer|football|basketball|tennis|golf|olympics|super bowl|world cup|champion')),
    ('tech', re.compile(r'apple|google|microsoft|meta|nvidia|ai|artificial intelligence|openai|chatgpt|tesla|spacex|iphone|android')),
    ('economics', re.compile(r'fed|federal reserve|inflation|gdp|interest rate|recession|unemployment|economy|stock|s&p|nasdaq')),
    ('entertainment', re.compile(r'oscar|grammy|emmy|movie|film|actor|actress|celebrity|tv show|netflix|disney|box office|album')),
    ('world', re.compile(r'war|ukraine|russia|china|climate|un|united nations|nato|treaty|summit')),
]


def is_valid_category(category):
    return (category or '').lower() in VALID_CATEGORIES


def detect_category(title):
    lower = (title or '').lower()
    for category, pattern in _DETECTORS:
        if pattern.search(lower):
            return category
    return 'other'


def categorize_market(title):
    """Every category with at least one keyword in the title."""
    lower = (title or '').lower()
    return [key for key, info in VALID_CATEGORIES.items()
            if any(keyword in lower for keyword in info['keywords'])]
