"""Fingerprint-keyed, TTL-bounded persistent cache of extracted trees.

Storage model:
- One JSON file per key under the cache directory (`<key>.json`).
- Each file holds `{"key", "created_at", "ttl", "value"}` where `value` is a
  node payload (see `helpforge.schema`).
- Writes go to a unique temp file and are `os.replace`d into place, so
  concurrent writers of the same key resolve last-write-wins.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Final, Iterable

from .config import DEFAULT_CACHE_TTL_HOURS
from .errors import CacheCorrupt, HelpforgeError
from .models import CacheEntry, CacheKey, SourceKind, SubcommandNode
from .schema import node_from_payload, node_to_payload

logger = logging.getLogger(__name__)

DEFAULT_TTL_S: Final[float] = DEFAULT_CACHE_TTL_HOURS * 3600.0


@dataclass(frozen=True, slots=True)
class CacheStats:
    directory: Path
    entries: int
    expired: int
    total_bytes: int


def fingerprint(
    command_path: Iterable[str],
    args: Iterable[str] = (),
    kind: SourceKind | str = "help",
    depth: int = 0,
) -> CacheKey:
    """Deterministic key over path, arguments, source kind and depth."""
    path = [" ".join(part.split()) for part in command_path]
    payload = {
        "path": [p for p in path if p],
        "args": sorted(args),
        "kind": kind,
        "depth": depth,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class CommandCache:
    def __init__(
        self,
        directory: Path,
        *,
        default_ttl: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._memo: dict[CacheKey, CacheEntry] = {}

    def _path(self, key: CacheKey) -> Path:
        return self.directory / f"{key}.json"

    def _read(self, key: CacheKey) -> CacheEntry | None:
        path = self._path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheCorrupt(f"{path}: {e}") from e
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise CacheCorrupt(f"{path}: {e}") from e
        if not isinstance(payload, dict) or payload.get("key") != key:
            raise CacheCorrupt(f"{path}: key mismatch")
        created_at = payload.get("created_at")
        ttl = payload.get("ttl")
        if not isinstance(created_at, (int, float)) or not isinstance(ttl, (int, float)):
            raise CacheCorrupt(f"{path}: missing timestamps")
        try:
            value = node_from_payload(payload.get("value"))
        except HelpforgeError as e:
            raise CacheCorrupt(f"{path}: {e}") from e
        return CacheEntry(key=key, value=value, created_at=float(created_at), ttl=float(ttl))

    def _discard(self, key: CacheKey) -> None:
        with self._lock:
            self._memo.pop(key, None)
        self._path(key).unlink(missing_ok=True)

    def get(self, key: CacheKey) -> SubcommandNode | None:
        with self._lock:
            entry = self._memo.get(key)
        if entry is None:
            try:
                entry = self._read(key)
            except CacheCorrupt as e:
                logger.warning("discarding corrupt cache entry: %s", e)
                self._discard(key)
                return None
        if entry is None:
            logger.debug("cache miss %s", key[:12])
            return None
        if entry.is_expired(self._clock()):
            logger.debug("cache entry %s expired", key[:12])
            self._discard(key)
            return None
        with self._lock:
            # A put that raced this read wins.
            entry = self._memo.setdefault(key, entry)
        logger.debug("cache hit %s", key[:12])
        return entry.value

    def put(self, key: CacheKey, value: SubcommandNode, ttl: float | None = None) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        payload = {
            "key": key,
            "created_at": entry.created_at,
            "ttl": entry.ttl,
            "value": node_to_payload(value),
        }
        self.directory.mkdir(parents=True, exist_ok=True)
        # Atomic write: write to temp file then rename
        fd, tmp = tempfile.mkstemp(prefix=f".{key[:12]}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")
            # Keep the file and the memo in step.
            with self._lock:
                os.replace(tmp, self._path(key))
                self._memo[key] = entry
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise
        return entry

    def _entry_files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob("*.json"))

    def clear(self) -> int:
        """Delete every entry; returns the number removed."""
        removed = 0
        for path in self._entry_files():
            path.unlink(missing_ok=True)
            removed += 1
        with self._lock:
            self._memo.clear()
        return removed

    def prune(self) -> int:
        """Delete expired and unreadable entries; returns the number removed."""
        removed = 0
        for path in self._entry_files():
            key = path.stem
            try:
                entry = self._read(key)
            except CacheCorrupt:
                entry = None
            if entry is None or entry.is_expired(self._clock()):
                self._discard(key)
                removed += 1
        return removed

    def stats(self) -> CacheStats:
        entries = expired = total = 0
        now = self._clock()
        for path in self._entry_files():
            entries += 1
            try:
                total += path.stat().st_size
            except OSError:
                continue
            try:
                entry = self._read(path.stem)
            except CacheCorrupt:
                entry = None
            if entry is None or entry.is_expired(now):
                expired += 1
        return CacheStats(
            directory=self.directory, entries=entries, expired=expired, total_bytes=total
        )
