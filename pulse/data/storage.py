"""Key/value state storage using SQLAlchemy.

This module provides the persistence port used by the portfolio store, the
scheduler and the digest history. Values are JSON documents keyed by name and
every ``set`` replaces the stored value in a single transaction, so readers
always see either the previous or the new value.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ..contracts import Digest

logger = logging.getLogger(__name__)

# SQLAlchemy Base
Base = declarative_base()


class StateEntry(Base):
    """Persisted value for one state key.

    Attributes:
        key: Unique state key (e.g. 'pulse_portfolio').
        value: JSON-encoded payload.
        updated_at: Timestamp of the last write.
    """

    __tablename__ = 'pulse_state'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<StateEntry(key='{self.key}', updated_at='{self.updated_at}')>"


class StateStore:
    """Database-backed implementation of the persistence port.

    Example:
        >>> store = StateStore("sqlite:///./data/pulse.db")
        >>> store.set("pulse_timer_enabled", True)
        >>> store.get("pulse_timer_enabled")
        True
    """

    def __init__(self, db_url: str = "sqlite:///./data/pulse.db") -> None:
        logger.info(f"Initializing state store: {db_url.split('@')[-1]}")

        if db_url.startswith('postgresql'):
            self.engine = create_engine(
                db_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                echo=False
            )
        elif db_url.startswith('sqlite'):
            if db_url in ('sqlite://', 'sqlite:///:memory:'):
                # one shared connection so every thread sees the same database
                self.engine = create_engine(
                    db_url,
                    connect_args={'check_same_thread': False},
                    poolclass=StaticPool,
                    echo=False
                )
            else:
                db_path = db_url.split('sqlite:///', 1)[-1]
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
                self.engine = create_engine(
                    db_url,
                    connect_args={'check_same_thread': False},
                    echo=False
                )
        else:
            self.engine = create_engine(db_url, echo=False)

        self.Session = sessionmaker(bind=self.engine)
        self._write_lock = threading.Lock()
        Base.metadata.create_all(self.engine)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for ``key`` or ``default`` when absent."""
        session = self.Session()
        try:
            entry = session.get(StateEntry, key)
            if entry is None:
                return default
            return json.loads(entry.value)
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Failed to read state key {key}: {e}")
            raise
        finally:
            session.close()

    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""
        payload = json.dumps(value)
        with self._write_lock:
            session = self.Session()
            try:
                entry = session.get(StateEntry, key)
                if entry is None:
                    session.add(StateEntry(key=key, value=payload))
                else:
                    entry.value = payload
                    entry.updated_at = datetime.utcnow()
                session.commit()
                logger.debug(f"Saved state key {key} ({len(payload)} bytes)")
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to save state key {key}: {e}")
                raise
            finally:
                session.close()

    def delete(self, key: str) -> None:
        with self._write_lock:
            session = self.Session()
            try:
                entry = session.get(StateEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to delete state key {key}: {e}")
                raise
            finally:
                session.close()


class DigestHistory:
    """Append-only digest history, most recent first."""

    def __init__(self, store: StateStore, key: str = "pulse_digests", max_history: int = 50):
        self.store = store
        self.key = key
        self.max_history = max_history

    def _raw(self) -> List[Dict]:
        return self.store.get(self.key, []) or []

    def list(self) -> List[Digest]:
        digests = []
        for payload in self._raw():
            try:
                digests.append(Digest.from_dict(payload))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping unreadable digest in history: {e}")
        return digests

    def latest(self) -> Optional[Digest]:
        raw = self._raw()
        return Digest.from_dict(raw[0]) if raw else None

    def add(self, digest: Digest) -> None:
        raw = [digest.to_dict()] + self._raw()
        if self.max_history and len(raw) > self.max_history:
            raw = raw[:self.max_history]
        self.store.set(self.key, raw)
        logger.info(f"Digest {digest.id} stored ({len(raw)} in history)")

    def has_document(self, document_id: str) -> bool:
        return any(d.get("source_document_id") == document_id for d in self._raw())

    def __len__(self) -> int:
        return len(self._raw())
