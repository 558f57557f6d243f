"""Supabase-backed ledger store."""

from __future__ import annotations

import logging
import time
from typing import Any

from postgrest import APIError

from survey_ledger.config import settings
from survey_ledger.services.keys import DataKey, KeyKind
from survey_ledger.services.store import KeyedStore, WriteOp
from survey_ledger.utils.errors import EntryArchivedError, InvalidInputError, WriteConflictError
from survey_ledger.utils.time import LedgerClock
from supabase import Client

logger = logging.getLogger(__name__)

GUARD_FAILED_PREFIX = "ledger guard failed: "


def is_guard_violation(exc: APIError) -> bool:
    """Return True when a batch failed on an ``expect_*`` guard."""
    message = str(getattr(exc, "message", "")).lower()
    code = str(getattr(exc, "code", "")).lower()
    return code == "23505" or "duplicate key value" in message or "ledger guard failed" in message


class SupabaseStore(KeyedStore):
    """Ledger entries in one Postgres table, batches applied by RPC.

    Expects ``public.ledger_state`` and ``public.apply_ledger_batch`` from
    ``supabase/migrations``. The RPC runs every batch inside a single Postgres
    transaction, so guards and writes succeed or fail together.
    """

    def __init__(
        self,
        client: Client,
        clock: LedgerClock | None = None,
        lifetime_seconds: int | None = None,
        table: str | None = None,
        page_size: int | None = None,
    ) -> None:
        super().__init__(clock, lifetime_seconds)
        self.client = client
        self.table = table or settings.ledger_table
        self.page_size = page_size or settings.ledger_page_size

    def execute(self, query, default: Any = None) -> Any:
        """Execute a PostgREST query and normalize API errors."""
        started = time.perf_counter()
        try:
            response = query.execute()
            elapsed_ms = (time.perf_counter() - started) * 1000
            threshold_ms = settings.slow_query_log_threshold_ms
            if threshold_ms > 0 and elapsed_ms >= threshold_ms:
                logger.warning("Slow Supabase query %.1fms", elapsed_ms)
            data = response.data
            return default if data is None and default is not None else data
        except APIError as exc:
            message = getattr(exc, "message", "Database request failed")
            raise InvalidInputError(str(message)) from exc

    def _row(self, key: DataKey, columns: str) -> dict[str, Any] | None:
        encoded = key.encode()
        rows = self.execute(
            self.client.table(self.table).select(columns).eq("key", encoded).limit(1),
            default=[],
        )
        if not rows:
            return None
        row = rows[0]
        if int(row["live_until"]) < self.clock.now():
            raise EntryArchivedError(encoded)
        return row

    def has(self, key: DataKey) -> bool:
        return self._row(key, "key,live_until") is not None

    def get(self, key: DataKey, default: Any = None) -> Any:
        row = self._row(key, "value,live_until")
        if row is None:
            return default
        return row["value"]

    def extend_ttl(self, key: DataKey, threshold: int, extend_to: int) -> bool:
        if self._row(key, "key,live_until") is None:
            return False
        now = self.clock.now()
        self.execute(
            self.client.table(self.table)
            .update({"live_until": now + extend_to})
            .eq("key", key.encode())
            .lt("live_until", now + threshold),
            default=[],
        )
        return True

    def keys(self, kind: KeyKind | None = None) -> list[DataKey]:
        """Return live keys, paging past the PostgREST ``max-rows`` cap."""
        now = self.clock.now()
        found: list[DataKey] = []
        start = 0
        while True:
            query = self.client.table(self.table).select("key").gte("live_until", now)
            if kind is not None:
                query = query.eq("kind", kind.value)
            rows = self.execute(
                query.order("key").range(start, start + self.page_size - 1),
                default=[],
            )
            found.extend(DataKey.decode(str(row["key"])) for row in rows)
            if len(rows) < self.page_size:
                return found
            start += self.page_size

    def _commit(self, ops: list[WriteOp]) -> None:
        now = self.clock.now()
        query = self.client.rpc(
            "apply_ledger_batch",
            {
                "p_ops": [op.to_payload() for op in ops],
                "p_live_until": now + self.lifetime_seconds,
            },
        )
        try:
            query.execute()
        except APIError as exc:
            if is_guard_violation(exc):
                message = str(getattr(exc, "message", ""))
                _, _, key = message.partition(GUARD_FAILED_PREFIX)
                raise WriteConflictError(key or "ledger batch") from exc
            message = getattr(exc, "message", "Database request failed")
            raise InvalidInputError(str(message)) from exc
