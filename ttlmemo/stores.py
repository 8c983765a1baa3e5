"""Storage for memoized results.

A store maps cache keys to `CacheItem`s. Stores only need `has()`, `get()`, `set()` and
`delete()`; `clear()` is optional, and memoized functions whose store lacks it cannot be cleared.
You don't need to subclass `CacheStore` to write your own store, any object with these methods
will do.
"""

from __future__ import annotations

import logging
import threading

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Iterator

import sqlalchemy as sa

from sqlalchemy.pool import StaticPool

from ttlmemo.constants import KeyT, NEVER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheItem:
    """A cached result and the time (in ms, on the memoizer's clock) at which it expires.

    An `expires_at` of `NEVER` means the item never expires.
    """
    data: Any
    expires_at: float = NEVER

    @property
    def never_expires(self) -> bool:
        return self.expires_at == NEVER

    def is_valid(self, now: float) -> bool:
        """Returns whether this item is still usable at time `now`."""
        return self.never_expires or now < self.expires_at


class CacheStore(ABC, Generic[KeyT]):
    """Base class for cache stores.

    Each individual operation must be atomic with respect to the others, since expiry timers
    call `delete()` from their own threads while lookups may be in progress.
    """
    def has(self, key: KeyT) -> bool:
        """Returns whether `key` is in the store, regardless of expiry.

        By default this does a `get()`, but subclasses can do something cheaper.
        """
        return self.get(key) is not None

    @abstractmethod
    def get(self, key: KeyT) -> CacheItem|None:
        """Returns the item for `key`, or None if there isn't one."""
        pass

    @abstractmethod
    def set(self, key: KeyT, item: CacheItem) -> None:
        """Stores `item` under `key`, replacing anything already there."""
        pass

    @abstractmethod
    def delete(self, key: KeyT) -> None:
        """Removes `key` from the store. Missing keys are ignored."""
        pass


class MemoryStore(CacheStore[KeyT]):
    """Store that keeps everything in a dict in memory.

    This is the default store. Keys must be hashable.
    """
    def __init__(self):
        self._items: dict[KeyT, CacheItem] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def iter_keys(self) -> Iterator[KeyT]:
        """Iterate over a snapshot of all keys in the store."""
        with self._lock:
            keys = list(self._items)
        yield from keys

    def has(self, key: KeyT) -> bool:
        with self._lock:
            return key in self._items

    def get(self, key: KeyT) -> CacheItem|None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: KeyT, item: CacheItem) -> None:
        with self._lock:
            self._items[key] = item

    def delete(self, key: KeyT) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        """Removes all items."""
        with self._lock:
            self._items.clear()


class SQLStore(CacheStore[KeyT]):
    """Store that keeps items in a SQL table, using sqlalchemy.

    Rows are keyed by `repr(key)`, so keys must have a stable, distinguishing repr. The data is
    pickled. By default this creates a private in-memory SQLite database that is shared by all
    threads (so expiry timers see the same data as callers).
    """
    def __init__(self, url: str='sqlite://', table_name: str='memoize_cache', **engine_kwargs):
        """Initializes this store, creating the table if it doesn't exist.

        Args:
        - url: Database URL (e.g. 'sqlite:///cache.sqlite'). Defaults to in-memory SQLite.
        - table_name: Name of the table to store items in
        - engine_kwargs: Passed through to `sa.create_engine()`
        """
        if url.startswith('sqlite:///'):
            db_path = url.replace('sqlite:///', '')
            if db_path and db_path != ':memory:':
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # a single shared connection, otherwise each thread gets its own empty database
            engine_kwargs.setdefault('poolclass', StaticPool)
            engine_kwargs.setdefault('connect_args', {'check_same_thread': False})
        self.engine = sa.create_engine(url, **engine_kwargs)
        metadata = sa.MetaData()
        self.table = sa.Table(
            table_name,
            metadata,
            sa.Column('key', sa.String, primary_key=True),
            sa.Column('expires_at', sa.Double, nullable=True), # NULL means never
            sa.Column('data', sa.PickleType),
        )
        metadata.create_all(self.engine)
        self._lock = threading.RLock()
        logger.info(f'Initialized SQLStore with table {table_name} in {url}')

    @staticmethod
    def _db_key(key: KeyT) -> str:
        return repr(key)

    def has(self, key: KeyT) -> bool:
        with self._lock, self.engine.connect() as conn:
            row = conn.execute(
                sa.select(self.table.c.key)
                .where(self.table.c.key == self._db_key(key))
            ).first()
        return row is not None

    def get(self, key: KeyT) -> CacheItem|None:
        with self._lock, self.engine.connect() as conn:
            row = conn.execute(
                sa.select(self.table.c.expires_at, self.table.c.data)
                .where(self.table.c.key == self._db_key(key))
            ).first()
        if row is None:
            return None
        expires_at = NEVER if row.expires_at is None else row.expires_at
        return CacheItem(data=row.data, expires_at=expires_at)

    def set(self, key: KeyT, item: CacheItem) -> None:
        db_key = self._db_key(key)
        expires_at = None if item.never_expires else item.expires_at
        with self._lock, self.engine.begin() as conn:
            conn.execute(self.table.delete().where(self.table.c.key == db_key))
            conn.execute(
                self.table.insert()
                .values(key=db_key, expires_at=expires_at, data=item.data)
            )

    def delete(self, key: KeyT) -> None:
        with self._lock, self.engine.begin() as conn:
            conn.execute(self.table.delete().where(self.table.c.key == self._db_key(key)))

    def clear(self) -> None:
        """Deletes all rows in our table."""
        with self._lock, self.engine.begin() as conn:
            conn.execute(self.table.delete())

    def iter_keys(self) -> Iterator[str]:
        """Iterate over all stored keys (as their `repr()` strings)."""
        with self._lock, self.engine.connect() as conn:
            rows = conn.execute(sa.select(self.table.c.key)).all()
        for row in rows:
            yield row.key
