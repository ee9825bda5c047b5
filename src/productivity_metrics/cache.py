"""File-backed record cache with a fixed time-to-live.

Each key maps to one JSON file ``<root>/<key>.json`` holding
``{"timestamp": <epoch-ms>, "data": <payload>}``. Entries older than the TTL
are deleted on read. Any I/O or decoding failure is logged and reported as a
cache miss so callers always fall back to fetching.

Concurrent writers on the same key are not coordinated: the last writer wins.
Writes go to a temporary sibling file that is atomically renamed into place,
so readers never observe a partially written entry.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, Union
from urllib.parse import quote

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(hours=24)

T = TypeVar("T")


def _to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _encode_key_part(value: str) -> str:
    return quote(value, safe="").replace("-", "%2D")


def build_cache_key(kind: str, *parts: Union[str, int, datetime]) -> str:
    """Build a deterministic cache key from a record kind and request parameters.

    Datetimes are rendered as epoch milliseconds. Parameters are
    percent-encoded, hyphens included, so distinct parameter tuples always map
    to distinct file names.

    Example:
        ``build_cache_key("pulls", "acme", "widget", 0, 1000)`` returns
        ``"pulls-acme-widget-0-1000"``.
    """
    rendered = [kind]
    for part in parts:
        if isinstance(part, datetime):
            rendered.append(str(_to_epoch_ms(part)))
        else:
            rendered.append(_encode_key_part(str(part)))
    return "-".join(rendered)


class RecordCache:
    """TTL-bounded store mapping request signatures to fetched record payloads."""

    def __init__(
        self,
        root: Union[str, Path],
        ttl: timedelta = CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize a cache rooted at ``root``.

        Args:
            root: Directory holding one JSON file per key. Created on first write.
            ttl: Maximum entry age. Entries at or beyond this age are stale.
            clock: Returns the current time in epoch seconds.
        """
        self._root = Path(root)
        self._ttl_ms = int(ttl.total_seconds() * 1000)
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _path_for(self, key: str) -> Path:
        return self._root / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        """Return the cached payload for ``key``, or ``None`` on a miss.

        Expired entries are deleted and reported as a miss.
        """
        path = self._path_for(key)
        if not path.exists():
            logger.debug("Cache miss", extra={"cache_key": key})
            return None

        try:
            with path.open("r", encoding="utf-8") as handle:
                entry = json.load(handle)
            timestamp = int(entry["timestamp"])
            data = entry["data"]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning(
                "Failed to read cache entry; treating as a miss",
                extra={"cache_key": key, "path": str(path), "error": str(exc)},
            )
            return None

        if self._now_ms() - timestamp < self._ttl_ms:
            logger.info("Loaded records from cache", extra={"cache_key": key})
            return data

        logger.info("Cache entry expired", extra={"cache_key": key})
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(
                "Failed to delete expired cache entry",
                extra={"cache_key": key, "path": str(path), "error": str(exc)},
            )
        return None

    def write(self, key: str, data: Any) -> bool:
        """Store ``data`` under ``key`` with a fresh timestamp.

        An existing entry is overwritten without merging.

        Returns:
            ``True`` if the entry was persisted, ``False`` if writing failed.
        """
        path = self._path_for(key)
        entry = {"timestamp": self._now_ms(), "data": data}

        try:
            payload = json.dumps(entry, indent=2)
            self._root.mkdir(parents=True, exist_ok=True)
            file_descriptor, temp_name = tempfile.mkstemp(
                dir=self._root, prefix=f".{key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(
                "Failed to write cache entry",
                extra={"cache_key": key, "path": str(path), "error": str(exc)},
            )
            return False

        logger.debug("Saved records to cache", extra={"cache_key": key})
        return True

    def get_or_fetch(self, key: str, loader: Callable[[], T]) -> T:
        """Return the cached payload for ``key`` or load, store, and return it.

        Exceptions raised by ``loader`` propagate to the caller.
        """
        cached = self.read(key)
        if cached is not None:
            return cached

        data = loader()
        self.write(key, data)
        return data

    def clear(self) -> None:
        """Delete the entire cache directory."""
        if self._root.exists():
            shutil.rmtree(self._root, ignore_errors=True)
            logger.info("Cleared cache directory", extra={"path": str(self._root)})
