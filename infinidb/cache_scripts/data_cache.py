"""
Data cache.

Durable, file-backed cache for generated table rows, shared across processes.
A file is written once per table after the first successful materialization
and read by every later open; it is never updated in place and never evicted.

Storage:
  <cache_dir>/<table_key>_data.json        UTF-8 JSON array of row objects
  <cache_dir>/<table_key>_data.json.lock   cross-process generation lock

Key format:
  <table_name> with '/', '\\' and ':' spelled out (see `sanitize_path_component`)
"""

import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from ..errors import CacheIOError
from ..models import Row
from ..utils import sanitize_path_component

try:
    import fcntl  # POSIX-only; used for cross-process file locking
except Exception:  # pragma: no cover - fallback for non-POSIX systems
    fcntl = None

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (int, float, str, type(None))


def _well_formed_rows(payload: Any) -> Optional[Tuple[Row, ...]]:
    """Return the rows if `payload` is a non-empty array of flat objects."""
    if not isinstance(payload, list) or not payload:
        return None
    for item in payload:
        if not isinstance(item, dict):
            return None
        if not all(isinstance(key, str) and isinstance(value, _SCALAR_TYPES) for key, value in item.items()):
            return None
    return tuple(payload)


class DataCache:
    """Persistent one-file-per-table cache of generated rows."""

    def __init__(self, cache_dir: str) -> None:
        self.cache_dir = Path(cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Failed to create cache directory %s: %s", self.cache_dir, e)

        # In-memory view of files already read or written by this process.
        self._lock = threading.Lock()
        self._rows: Dict[str, Tuple[Row, ...]] = {}
        self.stats = {"memory_hits": 0, "file_hits": 0, "misses": 0, "writes": 0, "write_failures": 0}

    def _get_table_key(self, table_name: str) -> str:
        return sanitize_path_component(table_name)

    def get_cache_path(self, table_name: str) -> Path:
        return self.cache_dir / f"{self._get_table_key(table_name)}_data.json"

    def _lock_path(self, table_name: str) -> Path:
        path = self.get_cache_path(table_name)
        return path.with_suffix(path.suffix + ".lock")

    @contextmanager
    def lock(self, table_name: str, timeout: Optional[float] = None, poll_interval: float = 0.1):
        """
        Cross-process lock around materializing one table.

        On non-POSIX platforms (no fcntl), or when the lock file cannot be
        created, this becomes a no-op; in-process callers are still coalesced
        by the table registry.
        """
        if fcntl is None:
            yield
            return

        lock_path = self._lock_path(table_name)
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_RDWR)
        except OSError as e:
            logger.warning("Failed to open cache lock %s: %s", lock_path, e)
            yield
            return

        start = time.monotonic()
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if timeout is not None and (time.monotonic() - start) > timeout:
                        raise TimeoutError(f"Timed out acquiring lock for {lock_path}")
                    time.sleep(poll_interval)
            yield
        finally:
            try:
                fcntl.flock(fd, fcntl.LOCK_UN)
            except OSError:
                pass
            os.close(fd)

    def _read_cache_file(self, table_name: str) -> Optional[Tuple[Row, ...]]:
        path = self.get_cache_path(table_name)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", path, e)
            return None

        rows = _well_formed_rows(payload)
        if rows is None:
            logger.warning("Ignoring ill-formed cache file %s", path)
        return rows

    def _write_cache_file(self, table_name: str, rows: Sequence[Row]) -> None:
        """
        Write JSON atomically to the cache file.

        We write to a temporary file in the same directory and then atomically
        replace the target file, so other processes see either no file or a
        complete one.
        """
        path = self.get_cache_path(table_name)
        tmp_path = path.with_suffix(path.suffix + f".{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(list(rows), f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

    def get_rows(self, table_name: str) -> Optional[Tuple[Row, ...]]:
        with self._lock:
            rows = self._rows.get(table_name)
            if rows is not None:
                self.stats["memory_hits"] += 1
                return rows

        rows = self._read_cache_file(table_name)
        with self._lock:
            if rows is None:
                self.stats["misses"] += 1
                return None
            self.stats["file_hits"] += 1
            logger.info("Loading data from cache for table: %s", table_name)
            return self._rows.setdefault(table_name, rows)

    def set_rows(self, table_name: str, rows: Sequence[Row]) -> Tuple[Row, ...]:
        """Persist rows; raises CacheIOError and leaves prior state untouched on failure."""
        entry = tuple(rows)
        try:
            self._write_cache_file(table_name, entry)
        except (OSError, TypeError, ValueError) as e:
            with self._lock:
                self.stats["write_failures"] += 1
            raise CacheIOError(f"failed to write cache for table {table_name}: {e}") from e

        with self._lock:
            self.stats["writes"] += 1
            self._rows[table_name] = entry
        return entry

    def get_cache_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = dict(self.stats)
            stats["entries_in_memory"] = len(self._rows)
        stats["files"] = len(list(self.cache_dir.glob("*_data.json"))) if self.cache_dir.exists() else 0
        return stats


_data_cache_instances: Dict[str, DataCache] = {}
_instances_lock = threading.Lock()


def get_data_cache(cache_dir: Optional[str] = None) -> DataCache:
    """Return a shared `DataCache` instance for `cache_dir`."""
    if cache_dir is None:
        from ..utils import Configuration

        cache_dir = Configuration.from_env().get_data_cache_dir()

    abs_dir = str(Path(cache_dir).resolve())
    with _instances_lock:
        cache = _data_cache_instances.get(abs_dir)
        if cache is None:
            cache = DataCache(abs_dir)
            _data_cache_instances[abs_dir] = cache
        return cache
