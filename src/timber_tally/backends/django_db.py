from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Mapping

from django.db import DatabaseError, connections

from ..conf import get_setting
from ..counters import StockCounter, decode_counters, encode_counters
from ..exceptions import StoreError
from ..scheduler import WORKER_THREAD_PREFIX

logger = logging.getLogger(__name__)

OnChange = Callable[[dict[str, StockCounter]], None]


class DjangoStockStore:
    """
    Stock store kept in a Django database.

    The whole sheet lives in a single row (one "document"), keyed by a
    document id, so a write replaces the full counter map in one statement.

    Table layout
    ------------
    - doc_id: document id, "currentStock" by default
    - stock_status: JSON object ``{key: {"canRun": int, "cantRun": int}}``
    - version: bumped on every write and reset
    - last_updated: ISO-8601 UTC timestamp of the last write
    - updated_by: actor id of the last writer

    Change notification
    -------------------
    There is no push channel in a plain SQL database, so `subscribe`
    polls the row version. Each subscription owns one daemon thread that
    checks every ``poll_interval`` seconds and calls ``on_change`` when the
    version moved. With ``poll=False`` no thread is started and the caller
    drives the subscription through `Subscription.check`.

    Consistency
    -----------
    Writes are plain upserts: the last writer wins, across every process
    sharing the database. Works on PostgreSQL and SQLite (3.24+).

    Connections
    -----------
    Django connections are per thread. The poller thread closes its own
    connection when it stops; debounce timer threads close theirs after
    each operation.
    """

    def __init__(
        self,
        *,
        using: str | None = None,
        table: str | None = None,
        document_id: str | None = None,
        poll: bool = True,
        poll_interval: float | None = None,
    ) -> None:
        self.using = using or get_setting("DATABASE_ALIAS")
        self.table = table or get_setting("TABLE_NAME")
        self.document_id = document_id or get_setting("DOCUMENT_ID")
        self.poll = poll
        if poll_interval is None:
            poll_interval = float(get_setting("POLL_INTERVAL"))
        self.poll_interval = poll_interval

    # ---------- schema ----------
    def ensure_table(self) -> None:
        """Create the stock table if it does not exist yet."""
        with self._cursor() as (cursor, table):
            cursor.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    doc_id VARCHAR(64) PRIMARY KEY,
                    stock_status TEXT NOT NULL,
                    version BIGINT NOT NULL,
                    last_updated VARCHAR(40) NOT NULL,
                    updated_by VARCHAR(128) NOT NULL
                )
                """
            )

    # ---------- StockStore ----------
    def read_counters(self) -> dict[str, StockCounter]:
        counters, _version = self._fetch()
        return counters

    def write_counters(self, counters: Mapping[str, StockCounter], actor_id: str | None) -> None:
        self._put(encode_counters(counters), actor_id)
        logger.debug("Wrote %d stock lines to %s/%s", len(counters), self.table, self.document_id)

    def reset_counters(self, actor_id: str | None) -> None:
        self._put({}, actor_id)

    def subscribe(self, on_change: OnChange) -> Subscription:
        subscription = Subscription(self, on_change)
        if self.poll:
            subscription.start(self.poll_interval)
        return subscription

    # ---------- extras ----------
    def last_updated(self) -> datetime | None:
        """Time of the last write or reset, None if the document does not exist."""
        with self._cursor() as (cursor, table):
            cursor.execute(
                f"SELECT last_updated FROM {table} WHERE doc_id = %s",
                [self.document_id],
            )
            row = cursor.fetchone()

        if row is None:
            return None
        return datetime.fromisoformat(row[0])

    # ---------- internals ----------
    @contextmanager
    def _cursor(self) -> Iterator[tuple]:
        connection = connections[self.using]
        try:
            with connection.cursor() as cursor:
                yield cursor, connection.ops.quote_name(self.table)
        except DatabaseError as e:
            raise StoreError(
                f"timber_tally: stock store query failed on database '{self.using}': {e}"
            ) from e
        finally:
            if threading.current_thread().name == f"{WORKER_THREAD_PREFIX}-timer":
                connection.close()

    def _fetch(self) -> tuple[dict[str, StockCounter], int]:
        """Current counters and version; a missing document reads as empty, version 0."""
        with self._cursor() as (cursor, table):
            cursor.execute(
                f"SELECT stock_status, version FROM {table} WHERE doc_id = %s",
                [self.document_id],
            )
            row = cursor.fetchone()

        if row is None:
            return {}, 0

        raw, version = row
        try:
            return decode_counters(json.loads(raw)), int(version)
        except (AttributeError, TypeError, ValueError) as e:
            raise StoreError(
                f"timber_tally: stock document '{self.document_id}' could not be decoded: {e}"
            ) from e

    def _put(self, stock_status: dict, actor_id: str | None) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._cursor() as (cursor, table):
            cursor.execute(
                f"""
                INSERT INTO {table} (doc_id, stock_status, version, last_updated, updated_by)
                VALUES (%s, %s, 1, %s, %s)
                ON CONFLICT (doc_id) DO UPDATE SET
                    stock_status = EXCLUDED.stock_status,
                    version = {table}.version + 1,
                    last_updated = EXCLUDED.last_updated,
                    updated_by = EXCLUDED.updated_by
                """,
                [self.document_id, json.dumps(stock_status), now, actor_id or "anonymous"],
            )


class Subscription:
    """
    Version-polling subscription to a `DjangoStockStore` document.

    Calling the subscription (or `unsubscribe`) stops it. The first check
    always delivers the current snapshot.
    """

    def __init__(self, store: DjangoStockStore, on_change: OnChange) -> None:
        self._store = store
        self._on_change = on_change
        self._seen_version: int | None = None
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()

    def check(self) -> bool:
        """
        Poll once. Returns True if ``on_change`` was called.

        Store errors are logged and swallowed so a flaky database does not
        end the subscription; the next poll tries again.
        """
        if self._stopped.is_set():
            return False

        try:
            counters, version = self._store._fetch()
        except StoreError:
            logger.exception("Error in stock subscription")
            return False

        if version == self._seen_version:
            return False

        self._seen_version = version
        self._on_change(counters)
        return True

    def start(self, interval: float) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            args=(interval,),
            name=f"{WORKER_THREAD_PREFIX}-poller",
            daemon=True,
        )
        self._thread.start()

    def unsubscribe(self) -> None:
        self._stopped.set()

    __call__ = unsubscribe

    def _run(self, interval: float) -> None:
        try:
            while not self._stopped.is_set():
                self.check()
                self._stopped.wait(interval)
        finally:
            connections[self._store.using].close()
