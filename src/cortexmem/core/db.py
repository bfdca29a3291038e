import sqlite3
import time
import logging
import threading
from contextlib import contextmanager
from importlib import resources
from pathlib import Path
from typing import List, Optional, Iterator
from .config import env

logger = logging.getLogger("db")

class StoreError(Exception):
    pass

class DB:
    """
    Single SQLite connection shared by the whole process.
    Every statement goes through one re-entrant lock so reads and writes
    never interleave half-way through a transaction.
    """
    def __init__(self, url: Optional[str] = None):
        self.url = url or env.db_url
        self.conn: Optional[sqlite3.Connection] = None
        self.lock = threading.RLock()
        self._closed = False

    def connect(self):
        if self.conn: return
        if self._closed:
            raise StoreError("database connection already closed")

        if self.url == "sqlite:///:memory:":
            target = ":memory:"
        elif self.url.startswith("sqlite:///"):
            path = Path(self.url.replace("sqlite:///", ""))
            if not path.parent.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        else:
            raise StoreError(f"Unsupported database URL schema: {self.url}. Only sqlite:/// is supported.")

        logger.info(f"[DB] Connecting to {target}")
        self.conn = sqlite3.connect(target, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row

        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA cache_size=-8000")

        self.run_migrations()

    def run_migrations(self):
        c = self.conn
        c.execute("CREATE TABLE IF NOT EXISTS _migrations (name TEXT PRIMARY KEY, applied_at INTEGER)")

        pkg = resources.files("cortexmem.migrations")
        files = sorted(p.name for p in pkg.iterdir() if p.name.endswith(".sql"))

        for f in files:
            if c.execute("SELECT 1 FROM _migrations WHERE name=?", (f,)).fetchone():
                continue
            logger.info(f"[DB] Applying migration {f}")
            try:
                c.executescript(pkg.joinpath(f).read_text(encoding="utf-8"))
                c.execute("INSERT INTO _migrations (name, applied_at) VALUES (?, ?)", (f, int(time.time())))
            except sqlite3.Error as e:
                logger.error(f"[DB] Migration {f} failed: {e}")
                raise

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self.lock:
            self.connect()
            return self.conn.execute(sql, params)

    def fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.lock:
            self.connect()
            return self.conn.execute(sql, params).fetchall()

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.lock:
            self.connect()
            return self.conn.execute(sql, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self.lock:
            self.connect()
            self.conn.execute("BEGIN")
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            self.conn.execute("COMMIT")

    def close(self):
        with self.lock:
            if self.conn:
                self.conn.close()
                self.conn = None
            self._closed = True

# Single global instance
db = DB()
