"""
Passage store using SQLite.

A Store keeps short passages of text with a caller-defined payload and
answers two kinds of query:
- full-text search, ranked by FTS5 bm25()
- embedding search, ranked by cosine similarity against a vector index

Working state lives in an in-memory SQLite database (the ``record``
table plus an external-content FTS5 index kept in sync by triggers)
and an in-memory ``id -> Embedding`` index. ``save()`` writes a
snapshot of the database to ``<location>/records.sqlite``; a new Store
at the same location loads it back.

Every public operation runs on a single worker thread, one at a time,
in submission order. Compound operations (group replacement) are
therefore atomic with respect to every other caller.
"""

import atexit
import logging
import os
import sqlite3
import threading
import weakref
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from heapq import nlargest
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from .config import DEFAULT_LIMIT, StoreConfig, load_or_create_config, save_config
from .embedding import Embedding
from .errors import EmbedderError, EncodingError, StorageError, StoreError, log_exception
from .logging_config import configure_ops_log, enable_debug_mode, remove_ops_log
from .providers.base import Embedder, get_registry
from .text import build_fts_query
from .types import Record, format_utc_timestamp, parse_utc_timestamp, validate_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

DB_FILENAME = "records.sqlite"
SCHEMA_VERSION = 1

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS record (
        id TEXT PRIMARY KEY NOT NULL,
        "group" TEXT,
        date TEXT NOT NULL,
        seq INTEGER NOT NULL,
        text TEXT NOT NULL,
        embedding TEXT NOT NULL,
        data TEXT NOT NULL
    )
    """,
    'CREATE INDEX IF NOT EXISTS record_group ON record("group")',
    "CREATE INDEX IF NOT EXISTS record_date ON record(date, seq)",
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS record_ft USING fts5(
        text, content='record', content_rowid='rowid'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS record_ai AFTER INSERT ON record BEGIN
        INSERT INTO record_ft(rowid, text) VALUES (new.rowid, new.text);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS record_ad AFTER DELETE ON record BEGIN
        INSERT INTO record_ft(record_ft, rowid, text) VALUES ('delete', old.rowid, old.text);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS record_au AFTER UPDATE ON record BEGIN
        INSERT INTO record_ft(record_ft, rowid, text) VALUES ('delete', old.rowid, old.text);
        INSERT INTO record_ft(rowid, text) VALUES (new.rowid, new.text);
    END
    """,
    """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY NOT NULL,
        value TEXT NOT NULL
    )
    """,
)

_RECORD_COLUMNS = 'id, "group", date, seq, text, data'
_RECORD_COLUMNS_QUALIFIED = (
    'record.id, record."group", record.date, record.seq, record.text, record.data'
)


@dataclass
class _IndexEntry:
    """Vector index entry; date and seq are kept for tie-breaking."""
    embedding: Embedding
    date: str
    seq: int


def _save_at_exit(ref: "weakref.ref[Store]") -> None:
    # The executor has been shut down by now, so no operation is running
    store = ref()
    if store is None or store._closed:
        return
    try:
        store._save()
    except Exception as e:
        log_exception(e, "save at exit", store._location)


class Store(Generic[T]):
    """
    Durable, queryable collection of Records.

    Args:
        location: Directory for persisted state, or None for in-memory only
        embedder: Produces embeddings for inserted text and search queries
        data_type: Type of the record payload (anything pydantic can
            serialize: JSON values, dataclasses, TypedDicts, models)
        half_precision: Persist embeddings as 16-bit floats
        default_limit: Result count for searches called without a limit
        save_on_exit: Flush to ``location`` when the interpreter exits

    Raises:
        StorageError: If persisted state exists but cannot be opened
    """

    def __init__(
        self,
        location: Optional[str | Path],
        embedder: Embedder,
        data_type: Any = Any,
        *,
        half_precision: bool = True,
        default_limit: int = DEFAULT_LIMIT,
        save_on_exit: bool = False,
    ):
        if embedder is None:
            raise TypeError("Store requires an embedder")
        if default_limit < 1:
            raise ValueError(f"default_limit must be positive, got {default_limit}")

        self._location = Path(location).expanduser() if location is not None else None
        self._embedder = embedder
        self._adapter = TypeAdapter(data_type)
        self._half_precision = half_precision
        self._default_limit = default_limit

        self._conn: Optional[sqlite3.Connection] = None
        self._vectors: dict[str, _IndexEntry] = {}
        self._seq = 0
        self._closed = False
        self._config: Optional[StoreConfig] = None
        self._ops_handler: Optional[logging.Handler] = None
        self._atexit_hook: Optional[Callable[[], None]] = None

        self._worker_ident: Optional[int] = None
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="passagestore",
            initializer=self._mark_worker,
        )
        try:
            self._run(self._open)
        except BaseException:
            self._closed = True
            self._executor.shutdown(wait=True)
            raise

        if save_on_exit and self._location is not None:
            self._atexit_hook = _make_exit_hook(self)
            atexit.register(self._atexit_hook)

    @classmethod
    def open(
        cls,
        path: str | Path,
        embedder: Optional[Embedder] = None,
        data_type: Any = Any,
        *,
        save_on_exit: bool = False,
    ) -> "Store":
        """
        Open a store configured by ``<path>/passagestore.toml``.

        Missing config means defaults; it is written on first save. When no
        embedder is given, one is built from the configured provider.
        """
        if os.environ.get("PASSAGESTORE_DEBUG"):
            enable_debug_mode()

        path = Path(path).expanduser()
        try:
            config = load_or_create_config(path)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read store config in {path}: {e}") from e

        if embedder is None:
            embedder = get_registry().create_embedder(
                config.embedding.name, config.embedding.params
            )

        store = cls(
            path,
            embedder,
            data_type,
            half_precision=config.half_precision,
            default_limit=config.default_limit,
            save_on_exit=save_on_exit,
        )
        store._config = config
        if config.ops_log:
            store._ops_handler = configure_ops_log(path)
        return store

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def _mark_worker(self) -> None:
        self._worker_ident = threading.get_ident()

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Queue an operation on the worker. FIFO, one at a time."""
        if self._closed:
            raise StoreError("Store is closed")
        try:
            return self._executor.submit(fn, *args)
        except RuntimeError as e:
            raise StoreError(f"Store is closed: {e}") from e

    def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run an operation on the worker and wait for its result."""
        if threading.get_ident() == self._worker_ident:
            # Re-entrant call (e.g. from an embedder): already serialized
            return fn(*args)
        return self._submit(fn, *args).result()

    @contextmanager
    def _transaction(self):
        """BEGIN IMMEDIATE ... COMMIT, rolled back on any error."""
        conn = self._require_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise StorageError(f"Cannot start transaction: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise StorageError(f"Store write failed: {e}") from e
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Store is closed")
        return self._conn

    # -------------------------------------------------------------------------
    # Open / Load
    # -------------------------------------------------------------------------

    def _open(self) -> None:
        if self._location is not None and self._location.exists() and not self._location.is_dir():
            raise StorageError(f"Store location is not a directory: {self._location}")

        try:
            conn = sqlite3.connect(":memory:", check_same_thread=False, isolation_level=None)
            conn.row_factory = sqlite3.Row
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        except sqlite3.Error as e:
            raise StorageError(f"Cannot initialize store database: {e}") from e
        self._conn = conn

        db_path = self._db_path
        if db_path is not None and db_path.exists():
            self._load(db_path)
        else:
            logger.debug("Opened empty store at %s", self._location or ":memory:")

    @property
    def _db_path(self) -> Optional[Path]:
        return self._location / DB_FILENAME if self._location is not None else None

    def _load(self, db_path: Path) -> None:
        """
        Copy persisted rows into the working database.

        A row whose embedding or payload cannot be decoded is skipped.
        Anything else that goes wrong is a StorageError.
        """
        try:
            src = sqlite3.connect(f"{db_path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {db_path}: {e}") from e

        loaded = skipped = 0
        try:
            src.row_factory = sqlite3.Row
            version = src.execute("PRAGMA user_version").fetchone()[0]
            if version > SCHEMA_VERSION:
                raise StorageError(
                    f"{db_path} has schema version {version}, newer than supported ({SCHEMA_VERSION})"
                )
            has_table = src.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'record'"
            ).fetchone()
            if has_table is None:
                raise StorageError(f"{db_path} is not a passage store (no record table)")

            stored_provider = None
            if src.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'meta'"
            ).fetchone():
                row = src.execute("SELECT value FROM meta WHERE key = 'provider'").fetchone()
                stored_provider = row["value"] if row else None

            with self._transaction() as conn:
                cursor = src.execute(
                    'SELECT id, "group", date, seq, text, embedding, data FROM record ORDER BY seq'
                )
                for row in cursor:
                    try:
                        entry = self._decode_row(row)
                    except (EncodingError, ValidationError, ValueError, TypeError) as e:
                        skipped += 1
                        logger.warning("Skipping unreadable record %r in %s: %s", row["id"], db_path, e)
                        continue
                    conn.execute(
                        'INSERT INTO record (id, "group", date, seq, text, embedding, data) '
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (row["id"], row["group"], entry.date, entry.seq,
                         row["text"], row["embedding"], row["data"]),
                    )
                    self._vectors[row["id"]] = entry
                    self._seq = max(self._seq, entry.seq)
                    loaded += 1
        except sqlite3.Error as e:
            self._vectors.clear()
            raise StorageError(f"Cannot load {db_path}: {e}") from e
        except StorageError:
            self._vectors.clear()
            raise
        finally:
            src.close()

        logger.info("Loaded %d records from %s (%d skipped)", loaded, db_path, skipped)
        provider = self._embedder.provider
        if stored_provider is not None and stored_provider != provider:
            logger.warning(
                "Store was saved with embedder %r but is opened with %r; "
                "records are excluded from embedding search until re-inserted",
                stored_provider, provider,
            )

    def _decode_row(self, row: sqlite3.Row) -> _IndexEntry:
        """Validate one persisted row and build its index entry."""
        if not isinstance(row["id"], str) or not row["id"]:
            raise ValueError("missing id")
        if not isinstance(row["text"], str):
            raise ValueError("text is not a string")
        if row["group"] is not None and not isinstance(row["group"], str):
            raise ValueError("group is not a string")
        if not isinstance(row["seq"], int):
            raise ValueError("seq is not an integer")
        if not isinstance(row["date"], str) or not isinstance(row["data"], str):
            raise ValueError("date or data is not text")
        date = format_utc_timestamp(parse_utc_timestamp(row["date"]))
        self._adapter.validate_json(row["data"])
        embedding = Embedding.from_json(row["embedding"])
        return _IndexEntry(embedding=embedding, date=date, seq=row["seq"])

    # -------------------------------------------------------------------------
    # Save
    # -------------------------------------------------------------------------

    def save(self, sync: bool = True) -> Optional[Future]:
        """
        Flush current state to the backing location.

        With ``sync=True`` blocks until the snapshot is on disk. With
        ``sync=False`` queues the flush and returns its Future; a failure
        nobody awaits is written to the error log. No-op for in-memory
        stores.

        Raises:
            StorageError: If the snapshot cannot be written (sync only)
        """
        if sync:
            self._run(self._save)
            return None
        future = self._submit(self._save)
        future.add_done_callback(self._log_background_failure)
        return future

    def _log_background_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Background save failed: %s", exc)
            log_exception(exc, "background save", self._location)

    def _save(self) -> None:
        db_path = self._db_path
        if db_path is None:
            logger.debug("In-memory store, nothing to save")
            return

        conn = self._require_conn()
        tmp_path = db_path.with_name(db_path.name + ".tmp")
        try:
            self._location.mkdir(parents=True, exist_ok=True)
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('provider', ?)",
                (self._embedder.provider,),
            )
            if tmp_path.exists():
                tmp_path.unlink()
            dest = sqlite3.connect(str(tmp_path))
            try:
                conn.backup(dest)
            finally:
                dest.close()
            with open(tmp_path, "rb+") as f:
                os.fsync(f.fileno())
            os.replace(tmp_path, db_path)
            if os.name == "posix":
                fd = os.open(self._location, os.O_RDONLY)
                try:
                    os.fsync(fd)
                finally:
                    os.close(fd)
            if self._config is not None and not self._config.exists():
                save_config(self._config)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot save store to {db_path}: {e}") from e

        logger.info("Saved %d records to %s", len(self._vectors), db_path)

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def insert(
        self,
        records: Iterable[Record[T]],
        deleting_old_items_from_group: Optional[str] = None,
    ) -> None:
        """
        Insert or replace records, embedding their text.

        Texts are embedded in a single embedder call. An existing record
        whose text is unchanged keeps its stored embedding.

        With ``deleting_old_items_from_group``, every existing record in
        that group is deleted in the same atomic step.

        Raises:
            EmbedderError: If the embedder fails (nothing is written)
            EncodingError: If the embedder returns the wrong number of
                embeddings, or a payload cannot be serialized
        """
        self._run(self._insert, list(records), deleting_old_items_from_group)

    def _insert(self, records: list[Record[T]], group: Optional[str]) -> None:
        for record in records:
            validate_id(record.id)
        if not records and group is None:
            return

        # Everything that can fail before the write happens first
        payloads = [self._dump_data(record.data) for record in records]
        embeddings = self._embeddings_for(records)

        seq = self._seq
        rows = []
        for record, payload, embedding in zip(records, payloads, embeddings):
            seq += 1
            rows.append((record, payload, embedding, format_utc_timestamp(record.date), seq))

        removed: list[str] = []
        with self._transaction() as conn:
            if group is not None:
                removed = [
                    row["id"] for row in
                    conn.execute('SELECT id FROM record WHERE "group" = ?', (group,))
                ]
                conn.execute('DELETE FROM record WHERE "group" = ?', (group,))
            for record, payload, embedding, date, row_seq in rows:
                conn.execute("DELETE FROM record WHERE id = ?", (record.id,))
                conn.execute(
                    'INSERT INTO record (id, "group", date, seq, text, embedding, data) '
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (record.id, record.group, date, row_seq,
                     record.text, embedding.to_json(), payload),
                )

        for id in removed:
            self._vectors.pop(id, None)
        for record, _, embedding, date, row_seq in rows:
            self._vectors[record.id] = _IndexEntry(embedding=embedding, date=date, seq=row_seq)
        self._seq = seq

        if group is not None:
            logger.info(
                "Replaced group %r: removed %d, inserted %d records",
                group, len(removed), len(rows),
            )
        else:
            logger.info("Inserted %d records", len(rows))

    def _dump_data(self, data: Any) -> str:
        """Serialize a payload, checking it reads back as ``data_type``."""
        try:
            payload = self._adapter.dump_json(data, warnings=False).decode("utf-8")
        except ValueError as e:
            raise EncodingError(f"Record payload cannot be serialized: {e}") from e
        try:
            self._adapter.validate_json(payload)
        except ValidationError as e:
            raise EncodingError(f"Record payload does not match the store's data type: {e}") from e
        return payload

    def _embeddings_for(self, records: list[Record[T]]) -> list[Embedding]:
        """
        Embeddings for each record, in order.

        Reuses stored embeddings for unchanged text; the remaining unique
        texts go to the embedder in one batch.
        """
        conn = self._require_conn()
        provider = self._embedder.provider
        result: list[Optional[Embedding]] = [None] * len(records)
        pending: dict[str, list[int]] = {}

        for i, record in enumerate(records):
            entry = self._vectors.get(record.id)
            if entry is not None and entry.embedding.provider == provider:
                row = conn.execute("SELECT text FROM record WHERE id = ?", (record.id,)).fetchone()
                if row is not None and row["text"] == record.text:
                    result[i] = entry.embedding.with_precision(self._half_precision)
                    continue
            pending.setdefault(record.text, []).append(i)

        if pending:
            texts = list(pending)
            embedded = self._embed(texts)
            for text, embedding in zip(texts, embedded):
                normalized = embedding.with_precision(self._half_precision)
                for i in pending[text]:
                    result[i] = normalized
            logger.debug(
                "Embedded %d texts for %d records (%d reused)",
                len(texts), len(records), len(records) - sum(map(len, pending.values())),
            )

        return result  # type: ignore[return-value]

    def _embed(self, texts: list[str]) -> list[Embedding]:
        """One embedder call, with its output contract checked."""
        try:
            embeddings = list(self._embedder.embed(texts))
        except EncodingError:
            raise
        except Exception as e:
            logger.warning("Embedder failed on %d texts: %s", len(texts), e)
            raise EmbedderError(f"Embedder failed: {e}", cause=e) from e

        if len(embeddings) != len(texts):
            raise EncodingError(
                f"Embedder returned {len(embeddings)} embeddings for {len(texts)} texts"
            )
        provider = self._embedder.provider
        dimensions = None
        for embedding in embeddings:
            if not isinstance(embedding, Embedding):
                raise EncodingError(
                    f"Embedder returned {type(embedding).__name__}, expected Embedding"
                )
            if embedding.provider != provider:
                raise EncodingError(
                    f"Embedder returned provider {embedding.provider!r}, expected {provider!r}"
                )
            if dimensions is None:
                dimensions = len(embedding)
            elif len(embedding) != dimensions:
                raise EncodingError(
                    f"Embedder returned vectors of mixed length ({dimensions} and {len(embedding)})"
                )
        return embeddings

    def delete_records(
        self,
        ids: Iterable[str] = (),
        *,
        groups: Iterable[str] = (),
    ) -> int:
        """
        Delete records by id and/or by group.

        Unknown ids and empty groups are ignored.

        Returns:
            Number of records deleted
        """
        return self._run(self._delete, list(ids), list(groups))

    def _delete(self, ids: list[str], groups: list[str]) -> int:
        if not ids and not groups:
            return 0
        removed: list[str] = []
        with self._transaction() as conn:
            for group in groups:
                for row in conn.execute('SELECT id FROM record WHERE "group" = ?', (group,)):
                    removed.append(row["id"])
                conn.execute('DELETE FROM record WHERE "group" = ?', (group,))
            for id in ids:
                if conn.execute("DELETE FROM record WHERE id = ?", (id,)).rowcount:
                    removed.append(id)

        for id in removed:
            self._vectors.pop(id, None)
        if removed:
            logger.info("Deleted %d records", len(removed))
        return len(removed)

    def delete_oldest_records(self, keep: int) -> int:
        """
        Keep only the ``keep`` most recent records (by date, then by
        insertion order) and delete the rest.

        Returns:
            Number of records deleted
        """
        return self._run(self._delete_oldest, keep)

    def _delete_oldest(self, keep: int) -> int:
        if keep < 0:
            raise ValueError(f"keep must be non-negative, got {keep}")
        conn = self._require_conn()
        ids = [
            row["id"] for row in conn.execute(
                "SELECT id FROM record ORDER BY date DESC, seq DESC LIMIT -1 OFFSET ?",
                (keep,),
            )
        ]
        return self._delete(ids, [])

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def record(self, id: str) -> Optional[Record[T]]:
        """Get a record by ID, or None."""
        return self._run(self._get, id)

    def _get(self, id: str) -> Optional[Record[T]]:
        row = self._require_conn().execute(
            f"SELECT {_RECORD_COLUMNS} FROM record WHERE id = ?", (id,)
        ).fetchone()
        return self._to_record(row) if row is not None else None

    def _to_record(self, row: sqlite3.Row) -> Record[T]:
        return Record(
            id=row["id"],
            text=row["text"],
            data=self._adapter.validate_json(row["data"]),
            group=row["group"],
            date=parse_utc_timestamp(row["date"]),
        )

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self._default_limit
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        return limit

    def full_text_search(self, query: str, limit: Optional[int] = None) -> list[Record[T]]:
        """
        Records whose text matches any token of ``query``.

        Ranked by FTS5 bm25 (best first); equal scores are ordered by date
        and then insertion order, newest first.
        """
        return self._run(self._full_text_search, query, limit)

    def _full_text_search(self, query: str, limit: Optional[int]) -> list[Record[T]]:
        limit = self._resolve_limit(limit)
        pattern = build_fts_query(query)
        if pattern is None:
            return []
        try:
            rows = self._require_conn().execute(
                f"""
                SELECT {_RECORD_COLUMNS_QUALIFIED}
                FROM record_ft
                JOIN record ON record.rowid = record_ft.rowid
                WHERE record_ft MATCH ?
                ORDER BY bm25(record_ft), record.date DESC, record.seq DESC
                LIMIT ?
                """,
                (pattern, limit),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Full-text search failed: {e}") from e
        return [self._to_record(row) for row in rows]

    def embedding_search(self, query: str, limit: Optional[int] = None) -> list[Record[T]]:
        """
        Records most similar to ``query`` by cosine similarity.

        Records embedded by a different provider (or with a different
        vector length) than the current embedder are excluded. Equal
        similarities are ordered by date and then insertion order,
        newest first.

        Raises:
            EmbedderError: If the embedder fails on the query
        """
        return self._run(self._embedding_search, query, limit)

    def _embedding_search(self, query: str, limit: Optional[int]) -> list[Record[T]]:
        limit = self._resolve_limit(limit)
        target = self._embed([query])[0]

        scored = (
            (target.cosine_similarity(entry.embedding), entry.date, entry.seq, id)
            for id, entry in self._vectors.items()
            if entry.embedding.is_comparable(target)
        )
        top = nlargest(limit, scored, key=lambda s: (s[0], s[1], s[2]))

        conn = self._require_conn()
        results = []
        for _, _, _, id in top:
            row = conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM record WHERE id = ?", (id,)
            ).fetchone()
            if row is not None:
                results.append(self._to_record(row))
        return results

    def count(self) -> int:
        """Number of live records."""
        return self._run(self._count)

    def _count(self) -> int:
        return self._require_conn().execute("SELECT COUNT(*) FROM record").fetchone()[0]

    def ids(self) -> list[str]:
        """All record IDs, most recent first."""
        return self._run(self._ids)

    def _ids(self) -> list[str]:
        return [
            row["id"] for row in self._require_conn().execute(
                "SELECT id FROM record ORDER BY date DESC, seq DESC"
            )
        ]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def location(self) -> Optional[Path]:
        return self._location

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    def close(self, save: bool = True) -> None:
        """
        Flush (if ``save`` and the store has a location), release the
        database and stop the worker. Idempotent.
        """
        if self._closed:
            return
        try:
            if save and self._location is not None:
                self.save(sync=True)
        finally:
            try:
                self._run(self._close_conn)
            finally:
                self._closed = True
                self._executor.shutdown(wait=True)
                if self._atexit_hook is not None:
                    atexit.unregister(self._atexit_hook)
                    self._atexit_hook = None
                if self._ops_handler is not None:
                    remove_ops_log(self._ops_handler)
                    self._ops_handler = None

    def _close_conn(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._vectors.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close(save=exc_type is None)
        return False


def _make_exit_hook(store: Store) -> Callable[[], None]:
    ref = weakref.ref(store)
    return lambda: _save_at_exit(ref)
