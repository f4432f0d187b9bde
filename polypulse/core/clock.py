from datetime import datetime, timezone


def utcnow():
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(ts):
    return datetime.fromtimestamp(ts, timezone.utc).replace(tzinfo=None)
