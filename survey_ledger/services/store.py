"""Keyed ledger store: transactional batches over a durable key space."""

from __future__ import annotations

import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from dataclasses import dataclass
from typing import Any, Literal

from survey_ledger.config import settings
from survey_ledger.services.keys import DataKey, KeyKind
from survey_ledger.utils.errors import EntryArchivedError, InvalidInputError, WriteConflictError
from survey_ledger.utils.time import LedgerClock, SystemLedgerClock

logger = logging.getLogger(__name__)

OpName = Literal["set", "increment", "append", "expect_absent", "expect_value"]
GUARD_OPS = frozenset({"expect_absent", "expect_value"})


@dataclass(frozen=True)
class WriteOp:
    """One buffered operation of a transaction batch."""

    op: OpName
    key: DataKey
    value: Any = None

    @property
    def is_guard(self) -> bool:
        return self.op in GUARD_OPS

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the batch RPC."""
        return {
            "op": self.op,
            "key": self.key.encode(),
            "kind": self.key.kind.value,
            "value": self.value,
        }


class Transaction:
    """Buffer of writes and guards committed all-or-nothing.

    Reads go straight to the store; writes are only visible after commit.
    """

    def __init__(self, store: KeyedStore) -> None:
        self.store = store
        self.ops: list[WriteOp] = []

    def get(self, key: DataKey, default: Any = None) -> Any:
        return self.store.get(key, default)

    def has(self, key: DataKey) -> bool:
        return self.store.has(key)

    def set(self, key: DataKey, value: Any) -> None:
        self.ops.append(WriteOp("set", key, value))

    def increment(self, key: DataKey, delta: int = 1) -> None:
        self.ops.append(WriteOp("increment", key, delta))

    def append(self, key: DataKey, item: Any) -> None:
        self.ops.append(WriteOp("append", key, item))

    def expect_absent(self, key: DataKey) -> None:
        """Fail the commit if ``key`` exists when the batch is applied."""
        self.ops.append(WriteOp("expect_absent", key))

    def expect_value(self, key: DataKey, value: Any) -> None:
        """Fail the commit unless ``key`` still holds ``value``."""
        self.ops.append(WriteOp("expect_value", key, value))


class KeyedStore(ABC):
    """Durable mapping from :class:`DataKey` to JSON-compatible values.

    Every write refreshes the entry lifetime to ``lifetime_seconds`` from the
    current ledger time. Reading an entry whose lifetime has lapsed raises
    :class:`EntryArchivedError`; lapsed entries never read as absent.
    """

    def __init__(
        self,
        clock: LedgerClock | None = None,
        lifetime_seconds: int | None = None,
    ) -> None:
        self.clock = clock or SystemLedgerClock()
        self.lifetime_seconds = (
            settings.ttl_extend_to_seconds if lifetime_seconds is None else lifetime_seconds
        )

    @abstractmethod
    def has(self, key: DataKey) -> bool:
        """Return whether ``key`` holds a value."""

    @abstractmethod
    def get(self, key: DataKey, default: Any = None) -> Any:
        """Return the value for ``key`` or ``default`` when absent."""

    @abstractmethod
    def extend_ttl(self, key: DataKey, threshold: int, extend_to: int) -> bool:
        """Extend the lifetime of ``key`` to ``extend_to`` seconds when it has
        less than ``threshold`` seconds left. Returns False when absent."""

    @abstractmethod
    def keys(self, kind: KeyKind | None = None) -> list[DataKey]:
        """Return live keys, optionally restricted to one namespace."""

    @abstractmethod
    def _commit(self, ops: list[WriteOp]) -> None:
        """Apply a batch atomically or raise without applying anything."""

    def _transaction_guard(self) -> AbstractContextManager[Any]:
        return nullcontext()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Yield a transaction; commit on clean exit, discard on error."""
        with self._transaction_guard():
            tx = Transaction(self)
            yield tx
            if not tx.ops:
                return
            started = time.perf_counter()
            self._commit(tx.ops)
            elapsed_ms = (time.perf_counter() - started) * 1000
            threshold_ms = settings.slow_query_log_threshold_ms
            if threshold_ms > 0 and elapsed_ms >= threshold_ms:
                logger.warning("Slow ledger commit %.1fms (%s ops)", elapsed_ms, len(tx.ops))


@dataclass
class _Entry:
    value: Any
    live_until: int


class InMemoryStore(KeyedStore):
    """Process-local store.

    A store-wide re-entrant lock is held for the whole of each transaction,
    so read-check-write sequences on the same key are serialized.
    """

    def __init__(
        self,
        clock: LedgerClock | None = None,
        lifetime_seconds: int | None = None,
    ) -> None:
        super().__init__(clock, lifetime_seconds)
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.RLock()

    def _transaction_guard(self) -> AbstractContextManager[Any]:
        return self._lock

    def _live_entry(self, encoded: str) -> _Entry | None:
        entry = self._entries.get(encoded)
        if entry is None:
            return None
        if entry.live_until < self.clock.now():
            raise EntryArchivedError(encoded)
        return entry

    def has(self, key: DataKey) -> bool:
        with self._lock:
            return self._live_entry(key.encode()) is not None

    def get(self, key: DataKey, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key.encode())
            if entry is None:
                return default
            return copy.deepcopy(entry.value)

    def ttl(self, key: DataKey) -> int | None:
        """Return the remaining lifetime of ``key`` in seconds."""
        with self._lock:
            entry = self._entries.get(key.encode())
            if entry is None:
                return None
            return entry.live_until - self.clock.now()

    def extend_ttl(self, key: DataKey, threshold: int, extend_to: int) -> bool:
        with self._lock:
            entry = self._live_entry(key.encode())
            if entry is None:
                return False
            now = self.clock.now()
            if entry.live_until - now < threshold:
                entry.live_until = now + extend_to
            return True

    def keys(self, kind: KeyKind | None = None) -> list[DataKey]:
        with self._lock:
            now = self.clock.now()
            decoded = [
                DataKey.decode(encoded)
                for encoded, entry in self._entries.items()
                if entry.live_until >= now
            ]
        if kind is None:
            return decoded
        return [key for key in decoded if key.kind == kind]

    def _commit(self, ops: list[WriteOp]) -> None:
        with self._lock:
            for op in ops:
                if not op.is_guard:
                    continue
                encoded = op.key.encode()
                if op.op == "expect_absent":
                    if encoded in self._entries:
                        raise WriteConflictError(encoded)
                else:
                    entry = self._live_entry(encoded)
                    current = None if entry is None else entry.value
                    if current != op.value:
                        raise WriteConflictError(encoded)

            staged: dict[str, Any] = {}
            for op in ops:
                if op.is_guard:
                    continue
                encoded = op.key.encode()
                if encoded in staged:
                    current = staged[encoded]
                else:
                    entry = self._live_entry(encoded)
                    current = None if entry is None else copy.deepcopy(entry.value)

                if op.op == "set":
                    staged[encoded] = copy.deepcopy(op.value)
                elif op.op == "increment":
                    base = current or 0
                    if not isinstance(base, int):
                        raise InvalidInputError(f"Cannot increment non-integer entry {encoded}")
                    staged[encoded] = base + op.value
                else:
                    base = current if current is not None else []
                    if not isinstance(base, list):
                        raise InvalidInputError(f"Cannot append to non-list entry {encoded}")
                    staged[encoded] = [*base, copy.deepcopy(op.value)]

            live_until = self.clock.now() + self.lifetime_seconds
            for encoded, value in staged.items():
                self._entries[encoded] = _Entry(value=value, live_until=live_until)
