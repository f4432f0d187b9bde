# 📁 polypulse/accounts/models.py
import uuid

from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, Float, JSON, Text,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base

from polypulse.core.clock import utcnow

Base = declarative_base()


def _uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String(100))
    subscription_status = Column(String(20), default='free')  # free, trial, premium, cancelled
    daily_usage = Column(JSON, default=dict)
    usage_reset_at = Column(DateTime, default=utcnow)
    stripe_customer_id = Column(String(100), index=True)
    stripe_subscription_id = Column(String(100))
    premium_until = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

    # Trial drip + free-tier nudges
    trial_started_at = Column(DateTime)
    drip_step = Column(Integer, default=0)
    last_lite_briefing_at = Column(DateTime)
    last_whale_teaser_at = Column(DateTime)
    last_winback_at = Column(DateTime)


class Alert(Base):
    __tablename__ = 'alerts'

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Integer, nullable=False, index=True)
    chat_id = Column(BigInteger, nullable=False)
    market_id = Column(String(200), nullable=False)
    market_name = Column(Text)
    market_slug = Column(String(300))
    threshold = Column(Float, nullable=False)
    direction = Column(String(10), nullable=False)  # above, below, change
    is_active = Column(Boolean, default=True, index=True)
    triggered_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)


class WatchlistItem(Base):
    __tablename__ = 'watchlist'
    __table_args__ = (UniqueConstraint('user_id', 'market_id'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    market_id = Column(String(200), nullable=False)
    market_name = Column(Text)
    market_slug = Column(String(300))
    added_price = Column(Float)
    added_at = Column(DateTime, default=utcnow)


class BriefingPrefs(Base):
    __tablename__ = 'briefing_prefs'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, unique=True, nullable=False)
    enabled = Column(Boolean, default=True)
    timezone = Column(String(20), default='UTC')
    send_hour = Column(Integer, default=8)
    categories = Column(JSON, default=list)
    last_sent_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class WhalePrefs(Base):
    __tablename__ = 'whale_prefs'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, unique=True, nullable=False)
    enabled = Column(Boolean, default=True)
    min_amount_usd = Column(Float, default=50000)
    alerts_sent_today = Column(Integer, default=0)
    last_alert_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class WhaleEvent(Base):
    __tablename__ = 'whale_events'

    id = Column(Integer, primary_key=True)
    market_id = Column(String(200), index=True)
    market_title = Column(Text)
    amount_usd = Column(Float, nullable=False)
    side = Column(String(5))
    odds_before = Column(Float)
    odds_after = Column(Float)
    tx_hash = Column(String(200))
    created_at = Column(DateTime, default=utcnow, index=True)


class Position(Base):
    __tablename__ = 'positions'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    market_id = Column(String(200), nullable=False)
    market_name = Column(Text)
    market_slug = Column(String(300))
    side = Column(String(5), default='YES')
    shares = Column(Float, nullable=False)
    entry_price = Column(Float, nullable=False)
    status = Column(String(10), default='open')  # open, closed
    opened_at = Column(DateTime, default=utcnow)
    closed_at = Column(DateTime)


class Trade(Base):
    __tablename__ = 'trades'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    position_id = Column(Integer, index=True)
    market_id = Column(String(200))
    market_name = Column(Text)
    action = Column(String(4))  # buy, sell
    side = Column(String(5))
    shares = Column(Float)
    price = Column(Float)
    pnl = Column(Float)
    created_at = Column(DateTime, default=utcnow)


class SmartAlertPrefs(Base):
    __tablename__ = 'smart_alert_prefs'
    __table_args__ = (UniqueConstraint('user_id', 'alert_type'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    alert_type = Column(String(20), nullable=False)
    enabled = Column(Boolean, default=True)
    params = Column(JSON, default=dict)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class SmartAlertHistory(Base):
    __tablename__ = 'smart_alert_history'
    __table_args__ = (Index('ix_smart_history_lookup', 'user_id', 'alert_type', 'market_id'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    alert_type = Column(String(20), nullable=False)
    market_id = Column(String(200), nullable=False)
    data = Column(JSON, default=dict)
    sent_at = Column(DateTime, default=utcnow, index=True)


class VolumeSnapshot(Base):
    __tablename__ = 'volume_snapshots'
    __table_args__ = (Index('ix_snapshot_market_time', 'market_id', 'recorded_at'),)

    id = Column(Integer, primary_key=True)
    market_id = Column(String(200), nullable=False)
    volume = Column(Float)
    price = Column(Float)
    recorded_at = Column(DateTime, default=utcnow)


class CategorySubscription(Base):
    __tablename__ = 'category_subs'
    __table_args__ = (UniqueConstraint('user_id', 'category'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    category = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=utcnow)


class MarketCategory(Base):
    __tablename__ = 'market_categories'

    market_id = Column(String(200), primary_key=True)
    category = Column(String(20), primary_key=True)
    market_name = Column(Text)
    created_at = Column(DateTime, default=utcnow)


class Prediction(Base):
    __tablename__ = 'predictions'
    __table_args__ = (UniqueConstraint('user_id', 'market_id'),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    market_id = Column(String(200), nullable=False)
    market_question = Column(Text)
    market_slug = Column(String(300))
    prediction = Column(String(3), nullable=False)  # YES, NO
    odds_at_prediction = Column(Float)
    resolved = Column(Boolean, default=False)
    correct = Column(Boolean)
    created_at = Column(DateTime, default=utcnow)
    resolved_at = Column(DateTime)


class DedupKey(Base):
    __tablename__ = 'dedup_keys'
    __table_args__ = (UniqueConstraint('namespace', 'key'),)

    id = Column(Integer, primary_key=True)
    namespace = Column(String(40), nullable=False, index=True)
    key = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    expires_at = Column(DateTime)
