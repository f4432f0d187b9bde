# 📁 polypulse/stores/dedup.py
import logging

from sqlalchemy.exc import IntegrityError

from polypulse.accounts.models import DedupKey
from polypulse.core.clock import utcnow

logger = logging.getLogger(__name__)


class SeenStore:
    """Durable 'already seen' keys, grouped by namespace, with expiry and a FIFO cap"""

    def __init__(self, db):
        self.db = db

    def _live(self, session, namespace, now):
        return (session.query(DedupKey)
                .filter(DedupKey.namespace == namespace)
                .filter((DedupKey.expires_at.is_(None)) | (DedupKey.expires_at > now)))

    def contains(self, namespace, key):
        with self.db.session_scope() as session:
            return self._live(session, namespace, utcnow()).filter(DedupKey.key == str(key)).count() > 0

    def add(self, namespace, key, ttl=None):
        """Record a key; False if it was already present and unexpired."""
        now = utcnow()
        expires_at = now + ttl if ttl else None
        try:
            with self.db.session_scope() as session:
                row = session.query(DedupKey).filter_by(namespace=namespace, key=str(key)).first()
                if row is not None:
                    if row.expires_at is None or row.expires_at > now:
                        return False
                    # expired entry is reused and moves to the back of the queue
                    session.delete(row)
                    session.flush()
                session.add(DedupKey(namespace=namespace, key=str(key),
                                     created_at=now, expires_at=expires_at))
            return True
        except IntegrityError:
            return False

    def add_many(self, namespace, keys, ttl=None):
        """Union keys in, refreshing the expiry of ones already stored; returns how many were new or expired."""
        now = utcnow()
        expires_at = now + ttl if ttl else None
        with self.db.session_scope() as session:
            existing = {row.key: row for row in session.query(DedupKey).filter_by(namespace=namespace).all()}
            added = 0
            for key in dict.fromkeys(str(k) for k in keys):
                row = existing.get(key)
                if row is not None:
                    if row.expires_at is not None and row.expires_at <= now:
                        added += 1
                    row.expires_at = expires_at
                    continue
                session.add(DedupKey(namespace=namespace, key=key,
                                     created_at=now, expires_at=expires_at))
                added += 1
            return added

    def keys(self, namespace):
        with self.db.session_scope() as session:
            return {row.key for row in self._live(session, namespace, utcnow()).all()}

    def count(self, namespace):
        with self.db.session_scope() as session:
            return self._live(session, namespace, utcnow()).count()

    def prune(self, namespace, max_entries=None, evict_count=0):
        """Drop expired keys, then the oldest evict_count if over max_entries."""
        now = utcnow()
        with self.db.session_scope() as session:
            removed = (session.query(DedupKey)
                       .filter(DedupKey.namespace == namespace)
                       .filter(DedupKey.expires_at.isnot(None))
                       .filter(DedupKey.expires_at <= now)
                       .delete(synchronize_session=False))

            if max_entries is not None:
                total = session.query(DedupKey).filter_by(namespace=namespace).count()
                if total > max_entries:
                    oldest = [row_id for (row_id,) in
                              session.query(DedupKey.id)
                              .filter_by(namespace=namespace)
                              .order_by(DedupKey.id.asc())
                              .limit(evict_count or total - max_entries)
                              .all()]
                    removed += (session.query(DedupKey)
                                .filter(DedupKey.id.in_(oldest))
                                .delete(synchronize_session=False))
        if removed:
            logger.info(f"🧹 Pruned {removed} {namespace} keys")
        return removed

    def prune_expired(self):
        with self.db.session_scope() as session:
            return (session.query(DedupKey)
                    .filter(DedupKey.expires_at.isnot(None))
                    .filter(DedupKey.expires_at <= utcnow())
                    .delete(synchronize_session=False))
