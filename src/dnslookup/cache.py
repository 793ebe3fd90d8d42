from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .records import DNSNode, ResourceRecord

""" Record cache where each record carries its own TTL. """


@dataclass(frozen=True)
class CacheEntry:
    record: ResourceRecord
    expires_at: float


class RecordCache:
    """
    Thread-safe in-memory store of resource records with per-record TTLs.

    Inputs:
        now: Optional callable returning the current time in seconds; defaults
            to time.time. Tests inject a controllable clock.
    Outputs:
        RecordCache instance

    Notes:
        Keys are DNSNode(owner, type); each key maps to a set of records, so
        several A records for one name coexist. Records are told apart by
        value: inserting a record whose value is already cached refreshes its
        expiry instead of adding a duplicate.
        All operations are synchronized with an RLock. Expired entries are
        dropped opportunistically from the bucket being read or written;
        purge_expired() sweeps the whole store.

    Example use:
        >>> from dnslookup.records import RecordType, ResourceRecord
        >>> cache = RecordCache()
        >>> rr = ResourceRecord("ns1.example", RecordType.NS, 60, "a.example")
        >>> cache.insert(rr)
        >>> cache.lookup(rr.node) == frozenset({rr})
        True
    """

    def __init__(self, now: Optional[Callable[[], float]] = None) -> None:
        self._now: Callable[[], float] = now or time.time
        self._store: Dict[DNSNode, Dict[str, CacheEntry]] = {}
        self._lock = threading.RLock()

    def insert(self, record: ResourceRecord) -> None:
        """
        Stores a record under (record owner, record type) until now + TTL.

        Inputs:
            record: Decoded ResourceRecord.
        Outputs:
            None
        """
        now = self._now()
        expiry = now + max(0, int(record.ttl))
        with self._lock:
            bucket = self._store.setdefault(record.node, {})
            bucket[record.text_value] = CacheEntry(record=record, expires_at=expiry)
            # Only this key's bucket; other keys are swept as they are read.
            self._live_records_locked(record.node, bucket, now)

    def lookup(self, node: DNSNode) -> FrozenSet[ResourceRecord]:
        """
        Returns every live record for the exact key.

        Inputs:
            node: DNSNode key.
        Outputs:
            frozenset of ResourceRecord, empty when nothing live is cached.
        """
        now = self._now()
        with self._lock:
            bucket = self._store.get(node)
            if not bucket:
                return frozenset()
            live = self._live_records_locked(node, bucket, now)
            return frozenset(live)

    def for_each(self, visitor: Callable[[DNSNode, FrozenSet[ResourceRecord]], None]) -> None:
        """
        Calls visitor(node, records) for every key that still has live records.

        The visitor runs on a snapshot taken under the lock, so it may call
        back into the cache.
        """
        for node, records in self.snapshot():
            visitor(node, records)

    def snapshot(self) -> List[Tuple[DNSNode, FrozenSet[ResourceRecord]]]:
        """
        Returns live (node, records) pairs sorted by hostname then type.
        """
        now = self._now()
        out: List[Tuple[DNSNode, FrozenSet[ResourceRecord]]] = []
        with self._lock:
            for node, bucket in list(self._store.items()):
                live = self._live_records_locked(node, bucket, now)
                if live:
                    out.append((node, frozenset(live)))
        out.sort(key=lambda item: (item[0].hostname, int(item[0].rtype)))
        return out

    def purge_expired(self) -> int:
        """Remove all expired entries.

        Inputs:
            None
        Outputs:
            Number of records removed.
        """
        with self._lock:
            return self._purge_expired_locked(now=self._now())

    def __len__(self) -> int:
        return len(self.snapshot())

    def _live_records_locked(
        self, node: DNSNode, bucket: Dict[str, CacheEntry], now: float
    ) -> List[ResourceRecord]:
        live: List[ResourceRecord] = []
        for value, entry in list(bucket.items()):
            if now >= entry.expires_at:
                del bucket[value]
            else:
                live.append(entry.record)
        if not bucket:
            self._store.pop(node, None)
        return live

    def _purge_expired_locked(self, now: float) -> int:
        """Remove expired entries while holding the lock.

        Inputs:
            now: Current time as float epoch seconds
        Outputs:
            Number of records removed
        """
        removed = 0
        # Iterate on a list of items to avoid runtime dict size change issues
        for node, bucket in list(self._store.items()):
            for value, entry in list(bucket.items()):
                if entry.expires_at <= now:
                    del bucket[value]
                    removed += 1
            if not bucket:
                del self._store[node]
        return removed
