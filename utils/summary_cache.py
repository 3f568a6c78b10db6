import json
import logging
import os
import sys
import threading
from abc import abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from utils.tiny_file_handler import load_json_file, remove_json_file, save_json_file

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)


class SummaryCacheEntry(BaseModel):
    parcel_id: int
    mode: str
    fingerprint: str
    timestamp: datetime
    payload: Dict[str, Any]


class SummaryCache(BaseModel):
    """
    Abstract summary cache keyed by parcel id; use a concrete backend.

    An entry is a hit only while its fingerprint matches the caller's current
    fingerprint and it is younger than ``ttl_minutes``. Subclasses decide where
    entries live; the hit/miss contract is implemented here.
    """

    ttl_minutes: int = 15
    enable_cache: bool = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        try:
            config = load_json_file("config.json")
            cache_config = config.get("summary_cache", {})
            if "ttl_minutes" not in kwargs:
                self.ttl_minutes = cache_config.get("ttl_minutes", self.ttl_minutes)
            if "enable_cache" not in kwargs:
                self.enable_cache = cache_config.get(
                    "enable_caching", self.enable_cache
                )
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load summary cache config, using defaults: {e}")

    def _is_entry_valid(self, entry: SummaryCacheEntry, fingerprint: str) -> bool:
        """Check fingerprint equality and TTL age."""
        if entry.fingerprint != str(fingerprint):
            return False
        expiry_time = entry.timestamp + timedelta(minutes=self.ttl_minutes)
        return datetime.now() < expiry_time

    @abstractmethod
    def _read(self, parcel_id: int, mode: str) -> Optional[SummaryCacheEntry]:
        raise NotImplementedError

    @abstractmethod
    def _write(self, entry: SummaryCacheEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def _delete(self, parcel_id: int, mode: Optional[str] = None) -> int:
        raise NotImplementedError

    def get(
        self, parcel_id: int, fingerprint: str, mode: str = "structured"
    ) -> Optional[Dict[str, Any]]:
        """
        Return the cached payload for a parcel, or None on a miss.
        Stale or mismatched entries are dropped on read.
        """
        if not self.enable_cache:
            return None

        entry = self._read(parcel_id, mode)
        if entry is None:
            return None

        if not self._is_entry_valid(entry, fingerprint):
            self._delete(parcel_id, mode)
            return None

        logger.info(f"Summary cache hit for parcel {parcel_id} ({mode})")
        return entry.payload

    def put(
        self,
        parcel_id: int,
        fingerprint: str,
        payload: Dict[str, Any],
        mode: str = "structured",
    ) -> bool:
        if not self.enable_cache:
            return False

        entry = SummaryCacheEntry(
            parcel_id=parcel_id,
            mode=mode,
            fingerprint=str(fingerprint),
            timestamp=datetime.now(),
            payload=payload,
        )
        self._write(entry)
        logger.info(f"Cached summary for parcel {parcel_id} ({mode})")
        return True

    def invalidate(self, parcel_id: int) -> int:
        """Drop every cached mode for a parcel. Returns the number removed."""
        removed = self._delete(parcel_id)
        if removed:
            logger.info(f"Invalidated {removed} cached summaries for parcel {parcel_id}")
        return removed

    @abstractmethod
    def clear(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_cache_stats(self) -> Dict[str, Any]:
        raise NotImplementedError


class InMemorySummaryCache(SummaryCache):
    """Process-wide cache shared by every request the server handles."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    _entries: Dict[tuple, SummaryCacheEntry] = PrivateAttr(default_factory=dict)
    _lock: Any = PrivateAttr(default_factory=threading.Lock)

    def _read(self, parcel_id: int, mode: str) -> Optional[SummaryCacheEntry]:
        with self._lock:
            return self._entries.get((parcel_id, mode))

    def _write(self, entry: SummaryCacheEntry) -> None:
        with self._lock:
            self._entries[(entry.parcel_id, entry.mode)] = entry

    def _delete(self, parcel_id: int, mode: Optional[str] = None) -> int:
        with self._lock:
            keys = [
                key
                for key in self._entries
                if key[0] == parcel_id and (mode is None or key[1] == mode)
            ]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def get_cache_stats(self) -> Dict[str, Any]:
        if not self.enable_cache:
            return {"enabled": False, "total_cached": 0}

        with self._lock:
            entries = list(self._entries.values())
        expired = sum(
            1
            for entry in entries
            if datetime.now() >= entry.timestamp + timedelta(minutes=self.ttl_minutes)
        )
        return {
            "enabled": True,
            "backend": "memory",
            "total_cached": len(entries),
            "valid_cache": len(entries) - expired,
            "expired_cache": expired,
            "ttl_minutes": self.ttl_minutes,
        }


class FileSummaryCache(SummaryCache):
    """
    File-based cache, one JSON document per parcel.
    Suits a single client keeping its own summaries between runs.
    """

    cache_dir: str = "cache/summaries"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        if self.enable_cache:
            Path(self.cache_dir).mkdir(parents=True, exist_ok=True)

    def _get_cache_file_path(self, parcel_id: int) -> str:
        return os.path.join(self.cache_dir, f"parcel_{parcel_id}.json")

    def _read(self, parcel_id: int, mode: str) -> Optional[SummaryCacheEntry]:
        cache_file = self._get_cache_file_path(parcel_id)
        if not os.path.exists(cache_file):
            return None

        try:
            cache_data = load_json_file(cache_file)
            raw_entry = cache_data.get(mode)
            if raw_entry is None:
                return None
            return SummaryCacheEntry.model_validate(raw_entry)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Discarding unreadable cache file {cache_file}: {e}")
            remove_json_file(cache_file)
            return None

    def _write(self, entry: SummaryCacheEntry) -> None:
        cache_file = self._get_cache_file_path(entry.parcel_id)
        try:
            cache_data = load_json_file(cache_file)
        except json.JSONDecodeError:
            cache_data = {}
        cache_data[entry.mode] = entry.model_dump(mode="json")
        save_json_file(cache_file, cache_data)

    def _delete(self, parcel_id: int, mode: Optional[str] = None) -> int:
        cache_file = self._get_cache_file_path(parcel_id)
        if not os.path.exists(cache_file):
            return 0

        if mode is None:
            try:
                removed = len(load_json_file(cache_file))
            except json.JSONDecodeError:
                removed = 1
            remove_json_file(cache_file)
            return removed

        cache_data = load_json_file(cache_file)
        if mode not in cache_data:
            return 0
        del cache_data[mode]
        if cache_data:
            save_json_file(cache_file, cache_data)
        else:
            remove_json_file(cache_file)
        return 1

    def clear(self) -> int:
        """Remove all cache files. Returns number of files removed."""
        if not os.path.exists(self.cache_dir):
            return 0

        removed_count = 0
        for cache_file in os.listdir(self.cache_dir):
            if cache_file.endswith(".json"):
                remove_json_file(os.path.join(self.cache_dir, cache_file))
                removed_count += 1

        logger.info(f"Removed {removed_count} cache files")
        return removed_count

    def get_cache_stats(self) -> Dict[str, Any]:
        if not self.enable_cache or not os.path.exists(self.cache_dir):
            return {"enabled": False, "total_cached": 0}

        total_cached = 0
        expired_cache_count = 0
        for cache_file in os.listdir(self.cache_dir):
            if not cache_file.endswith(".json"):
                continue
            try:
                cache_data = load_json_file(os.path.join(self.cache_dir, cache_file))
            except json.JSONDecodeError:
                expired_cache_count += 1
                total_cached += 1
                continue
            for raw_entry in cache_data.values():
                total_cached += 1
                timestamp = datetime.fromisoformat(raw_entry["timestamp"])
                if datetime.now() >= timestamp + timedelta(minutes=self.ttl_minutes):
                    expired_cache_count += 1

        return {
            "enabled": True,
            "backend": "file",
            "total_cached": total_cached,
            "valid_cache": total_cached - expired_cache_count,
            "expired_cache": expired_cache_count,
            "cache_directory": self.cache_dir,
            "ttl_minutes": self.ttl_minutes,
        }
