"""
Stable Maps and the Ledger

A stable map is a dumb ordered mapping from an unsigned 64-bit key to a
value, offering get / insert / len and ascending key iteration. There is no
delete and no validation; business rules live in the voting engine.

Two backends share one contract:
  - MemoryStableMap  (in-process, used by tests and ephemeral nodes)
  - SQLiteStableMap  (durable, one table partitioned by map id)

The Ledger bundles the proposal map and the participation map and is the
handle handed to the voting engine at service start.
"""

import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from bisect import insort
from typing import Dict, Generic, Iterator, List, Optional, TypeVar

from ..constants import PARTICIPATION_MAP_ID, PROPOSAL_MAP_ID
from ..exceptions import StoreError
from ..logger import get_logger
from .codec import PARTICIPATION_CODEC, PROPOSAL_CODEC, RecordCodec
from .proposals import Proposal

logger = get_logger(__name__)

V = TypeVar("V")

# SQLite integers are signed 64-bit; keys are shifted so ordering is kept
_SQL_KEY_OFFSET = 1 << 63


class StableMap(ABC, Generic[V]):
    """Ordered key -> value map over encoded records."""

    def __init__(self, codec: RecordCodec):
        self.codec = codec

    def get(self, key: int) -> Optional[V]:
        data = self.get_raw(key)
        if data is None:
            return None
        return self.codec.decode(data)

    def insert(self, key: int, value: V) -> Optional[V]:
        """Store *value* at *key* and return the value it displaced, if any."""
        previous = self.insert_raw(key, self.codec.encode(value))
        if previous is None:
            return None
        return self.codec.decode(previous)

    def __contains__(self, key: int) -> bool:
        return self.get_raw(key) is not None

    @abstractmethod
    def get_raw(self, key: int) -> Optional[bytes]:
        """Encoded record at *key*."""

    @abstractmethod
    def insert_raw(self, key: int, data: bytes) -> Optional[bytes]:
        """Write encoded bytes, returning the encoded bytes displaced."""

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def keys(self) -> Iterator[int]:
        """Keys in ascending order."""

    def __iter__(self) -> Iterator[int]:
        return self.keys()


class MemoryStableMap(StableMap[V]):
    """In-process stable map. Holds bytes so callers never share a record."""

    def __init__(self, codec: RecordCodec):
        super().__init__(codec)
        self._data: Dict[int, bytes] = {}
        self._keys: List[int] = []
        self._lock = threading.Lock()

    def get_raw(self, key: int) -> Optional[bytes]:
        return self._data.get(key)

    def insert_raw(self, key: int, data: bytes) -> Optional[bytes]:
        with self._lock:
            previous = self._data.get(key)
            if previous is None:
                insort(self._keys, key)
            self._data[key] = data
        return previous

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> Iterator[int]:
        with self._lock:
            snapshot = list(self._keys)
        return iter(snapshot)


class SQLiteStableMap(StableMap[V]):
    """Durable stable map stored in partition *map_id* of a shared database."""

    def __init__(self, codec: RecordCodec, connection: sqlite3.Connection,
                 lock: threading.RLock, map_id: int):
        super().__init__(codec)
        self._conn = connection
        self._lock = lock
        self.map_id = map_id

    def get_raw(self, key: int) -> Optional[bytes]:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT value FROM stable_map WHERE map_id = ? AND key = ?",
                    (self.map_id, key - _SQL_KEY_OFFSET),
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Read of key {key} in map {self.map_id} failed: {e}") from e
        return None if row is None else bytes(row[0])

    def insert_raw(self, key: int, data: bytes) -> Optional[bytes]:
        sql_key = key - _SQL_KEY_OFFSET
        with self._lock:
            try:
                with self._conn:
                    row = self._conn.execute(
                        "SELECT value FROM stable_map WHERE map_id = ? AND key = ?",
                        (self.map_id, sql_key),
                    ).fetchone()
                    self._conn.execute(
                        "INSERT OR REPLACE INTO stable_map (map_id, key, value) VALUES (?, ?, ?)",
                        (self.map_id, sql_key, data),
                    )
            except sqlite3.Error as e:
                raise StoreError(f"Write of key {key} in map {self.map_id} failed: {e}") from e
        logger.debug(f"map {self.map_id}: wrote key {key} ({len(data)} bytes)")
        return None if row is None else bytes(row[0])

    def __len__(self) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM stable_map WHERE map_id = ?", (self.map_id,)
            ).fetchone()
        return row[0]

    def keys(self) -> Iterator[int]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM stable_map WHERE map_id = ? ORDER BY key",
                (self.map_id,),
            ).fetchall()
        return iter([r[0] + _SQL_KEY_OFFSET for r in rows])


ProposalStore = StableMap[Proposal]
ParticipationStore = StableMap[int]


class Ledger:
    """
    Both stable maps of a running service.

    Created once at startup (`Ledger.memory()` or `Ledger.sqlite(path)`),
    passed to the VotingEngine, closed on shutdown.
    """

    def __init__(self, proposals: ProposalStore, participation: ParticipationStore,
                 connection: Optional[sqlite3.Connection] = None):
        self.proposals = proposals
        self.participation = participation
        self._conn = connection

    @classmethod
    def memory(cls) -> "Ledger":
        return cls(
            proposals=MemoryStableMap(PROPOSAL_CODEC),
            participation=MemoryStableMap(PARTICIPATION_CODEC),
        )

    @classmethod
    def sqlite(cls, db_path: str, wal_mode: bool = True) -> "Ledger":
        """Open (or create) the ledger database at *db_path*."""
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            conn = sqlite3.connect(db_path, check_same_thread=False)
            if wal_mode:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS stable_map (
                    map_id INTEGER NOT NULL,
                    key INTEGER NOT NULL,
                    value BLOB NOT NULL,
                    PRIMARY KEY (map_id, key)
                );
                """
            )
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open ledger database {db_path}: {e}") from e

        lock = threading.RLock()
        logger.info(f"SQLite ledger initialized: {db_path}")
        return cls(
            proposals=SQLiteStableMap(PROPOSAL_CODEC, conn, lock, PROPOSAL_MAP_ID),
            participation=SQLiteStableMap(PARTICIPATION_CODEC, conn, lock, PARTICIPATION_MAP_ID),
            connection=conn,
        )

    @property
    def is_durable(self) -> bool:
        return self._conn is not None

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("SQLite ledger closed")

    def __repr__(self) -> str:
        backend = "sqlite" if self.is_durable else "memory"
        return f"<Ledger backend={backend} proposals={len(self.proposals)}>"
