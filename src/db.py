# src/db.py
import json
import logging
import os
import tempfile
import threading
from supabase import create_client, Client
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()
HABIT_STORE_BACKEND = os.getenv("HABIT_STORE_BACKEND", "file")
HABIT_STORE_FILE = os.getenv("HABIT_STORE_FILE", "habit_data.json")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "kv_store")


class PersistenceUnavailable(Exception):
    """The key-value backend could not be read or written."""


# -------------------------------
# MEMORY
# -------------------------------
class MemoryStore:
    def __init__(self, data: dict = None):
        self.data = dict(data or {})

    def get(self, key: str):
        return self.data.get(key)

    def set(self, key: str, value: str):
        self.data[key] = value


# -------------------------------
# JSON FILE
# -------------------------------
class JsonFileStore:
    """
    Key-value pairs kept in a single JSON document on disk. Each write goes
    to a fresh temporary file in the same directory and then replaces the
    document, so readers never see a partial file.
    """

    def __init__(self, path: str = HABIT_STORE_FILE):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceUnavailable(f"cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceUnavailable(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str):
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str):
        with self._lock:
            try:
                data = self._read()
            except PersistenceUnavailable as e:
                data = {}
                self._set_aside(e)
            data[key] = value
            self._write(data)

    def _set_aside(self, error):
        # The damaged document stays on disk as <path>.corrupt.
        backup = f"{self.path}.corrupt"
        logger.warning("%s; moving it to %s", error, backup)
        try:
            os.replace(self.path, backup)
        except OSError as e:
            raise PersistenceUnavailable(f"cannot move {self.path} aside: {e}") from e

    def _write(self, data: dict):
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=directory, prefix=".habits-", suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise PersistenceUnavailable(f"cannot write {self.path}: {e}") from e


# -------------------------------
# SUPABASE
# -------------------------------
def get_supabase() -> Client:
    """Create a Supabase client from SUPABASE_URL / SUPABASE_KEY."""
    if not SUPABASE_URL or not SUPABASE_KEY:
        raise PersistenceUnavailable("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(SUPABASE_URL, SUPABASE_KEY)


class SupabaseStore:
    """Key-value rows {key, value} in a Supabase table."""

    def __init__(self, client=None, table: str = SUPABASE_TABLE):
        self.client = client if client is not None else get_supabase()
        self.table = table

    def get(self, key: str):
        try:
            resp = self.client.table(self.table).select("value").eq("key", key).limit(1).execute()
        except Exception as e:
            raise PersistenceUnavailable(f"Supabase read failed: {e}") from e
        if resp.data:
            return resp.data[0]["value"]
        return None

    def set(self, key: str, value: str):
        try:
            self.client.table(self.table).upsert({"key": key, "value": value}).execute()
        except Exception as e:
            raise PersistenceUnavailable(f"Supabase write failed: {e}") from e


# -------------------------------
# BACKGROUND WRITES
# -------------------------------
class BackgroundWriter:
    """
    Wraps a store so that set() returns immediately and the write runs as a
    one-shot job on an APScheduler scheduler. Reads stay synchronous.

    Only the newest value per key is kept. Jobs write one at a time and
    always write whatever is newest when they run, so the stored copy ends
    on the last value handed to set() however the executor orders jobs.
    """

    def __init__(self, store, scheduler):
        self.store = store
        self.scheduler = scheduler
        self._pending = {}
        self._pending_lock = threading.Lock()
        self._write_lock = threading.Lock()

    def get(self, key: str):
        return self.store.get(key)

    def set(self, key: str, value: str):
        with self._pending_lock:
            self._pending[key] = value
        # No trigger means "run once, as soon as possible".
        self.scheduler.add_job(self._write, args=[key], misfire_grace_time=None)

    def flush(self):
        """Write every pending value now, in the calling thread."""
        with self._pending_lock:
            keys = list(self._pending)
        for key in keys:
            self._write(key)

    def _write(self, key: str):
        with self._write_lock:
            with self._pending_lock:
                if key not in self._pending:
                    return
                value = self._pending.pop(key)
            try:
                self.store.set(key, value)
            except PersistenceUnavailable as e:
                logger.warning("Background write of '%s' failed: %s", key, e)


def build_store(backend: str = None):
    """Return the persistence collaborator named by HABIT_STORE_BACKEND."""
    backend = (backend or HABIT_STORE_BACKEND).lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "file":
        return JsonFileStore(HABIT_STORE_FILE)
    if backend == "supabase":
        return SupabaseStore()
    raise ValueError(f"Unknown habit store backend: {backend}")
