# 📁 polypulse/core/database.py
import logging
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from polypulse.accounts.models import Base

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, url: str = "sqlite:///data/polypulse.db"):
        self.url = url
        self.engine = self._create_engine(url)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._init_tables()

    def _create_engine(self, url):
        if not url.startswith("sqlite"):
            return create_engine(url, pool_pre_ping=True)

        if url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection so every session sees the same memory db
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        db_path = url.replace("sqlite:///", "", 1)
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})

    def _init_tables(self):
        Base.metadata.create_all(self.engine)
        logger.info("Database tables initialized")

    @contextmanager
    def session_scope(self):
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            session.close()

    def ping(self):
        with self.engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return True

    def dispose(self):
        self.engine.dispose()
