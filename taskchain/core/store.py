"""
ChainStore — task_id → chain mapping with per-entry locking

Holds no business logic. Provides:
- exact-match lookup by task_id
- atomic add (fails if the id is taken)
- per-chain exclusivity through locked(task_id)
- retention: idle expiry and a capacity cap

Thread Safety:
- One lock guards the mapping itself
- Each entry has its own RLock, held for the length of one operation
- Chains are independent; there is no cross-chain locking
- An entry whose lock is held is never evicted
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

from .chain import Chain


logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    chain: Chain
    touched: float
    lock: threading.RLock = field(default_factory=threading.RLock)


class ChainStore:
    """
    Process-local store of chains, lifetime of the hosting session.

    Args:
        max_chains: Capacity cap (0 = unbounded). Adding past the cap
            evicts the least recently used finished chain, or failing
            that the least recently used chain.
        ttl_seconds: Idle time after which a chain expires (0 = never)
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        max_chains: int = 0,
        ttl_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic
    ):
        self._max_chains = max_chains
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._entries

    def task_ids(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def get(self, task_id: str) -> Optional[Chain]:
        """Return the live chain, or None. Mutate it only via locked()."""
        with self._lock:
            entry = self._entries.get(task_id)
            return entry.chain if entry else None

    def add(self, chain: Chain) -> bool:
        """
        Store a new chain.

        Returns:
            False if a chain with the same task_id already exists
        """
        with self._lock:
            if chain.task_id in self._entries:
                return False
            if self._max_chains and len(self._entries) >= self._max_chains:
                self._evict_for_capacity()
            self._entries[chain.task_id] = _Entry(chain=chain, touched=self._clock())
            return True

    def remove(self, task_id: str) -> Optional[Chain]:
        with self._lock:
            entry = self._entries.pop(task_id, None)
            return entry.chain if entry else None

    @contextmanager
    def locked(self, task_id: str) -> Iterator[Optional[Chain]]:
        """
        Hold the chain's lock for the duration of the block.

        Yields None if the chain does not exist, or was evicted while
        this caller waited for the lock.
        """
        with self._lock:
            entry = self._entries.get(task_id)
        if entry is None:
            yield None
            return

        with entry.lock:
            with self._lock:
                current = self._entries.get(task_id)
                if current is entry:
                    entry.touched = self._clock()
            if current is not entry:
                yield None
                return
            yield entry.chain

    def evict_expired(self) -> List[str]:
        """Drop chains idle longer than the TTL. Returns evicted ids."""
        if not self._ttl:
            return []
        now = self._clock()
        evicted = []
        with self._lock:
            for task_id, entry in list(self._entries.items()):
                if now - entry.touched < self._ttl:
                    continue
                if not entry.lock.acquire(blocking=False):
                    continue
                try:
                    del self._entries[task_id]
                    evicted.append(task_id)
                finally:
                    entry.lock.release()
        if evicted:
            logger.info("Evicted %d idle chain(s): %s", len(evicted), ", ".join(evicted))
        return evicted

    def _evict_for_capacity(self) -> None:
        """Free one slot. Caller holds self._lock."""
        by_age = sorted(self._entries.items(), key=lambda item: item[1].touched)
        finished = [(tid, e) for tid, e in by_age if e.chain.is_finished]
        for task_id, entry in finished + by_age:
            if not entry.lock.acquire(blocking=False):
                continue
            try:
                del self._entries[task_id]
            finally:
                entry.lock.release()
            if entry.chain.is_finished:
                logger.info("Store full, evicted finished chain %s", task_id)
            else:
                logger.warning("Store full, evicted running chain %s", task_id)
            return
        logger.warning("Store full and every chain is busy; growing past %d", self._max_chains)
