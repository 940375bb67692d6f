"""Configuration management for dep-vulns."""

import hashlib
import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from platformdirs import user_cache_dir

from .models import CacheEntry

DEFAULT_OSV_API_URL = "https://api.osv.dev/v1"


@dataclass
class Config:
    """Application configuration."""

    osv_api_url: str = DEFAULT_OSV_API_URL
    cache_ttl_hours: int = 24
    use_cache: bool = True
    max_concurrency: int = 8
    request_timeout: float = 30.0
    verbose: bool = False
    trace: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        return cls(
            osv_api_url=os.environ.get("DEP_VULNS_OSV_API_URL", DEFAULT_OSV_API_URL),
            cache_ttl_hours=_env_int("DEP_VULNS_CACHE_TTL", 24),
            max_concurrency=_env_int("DEP_VULNS_MAX_CONCURRENCY", 8),
        )

    def with_overrides(
        self,
        osv_api_url: Optional[str] = None,
        cache_ttl: Optional[int] = None,
        no_cache: bool = False,
        max_concurrency: Optional[int] = None,
        verbose: bool = False,
        trace: bool = False,
    ) -> "Config":
        """Return a new config with CLI overrides applied."""
        return Config(
            osv_api_url=osv_api_url or self.osv_api_url,
            cache_ttl_hours=cache_ttl if cache_ttl is not None else self.cache_ttl_hours,
            use_cache=not no_cache and self.use_cache,
            max_concurrency=max_concurrency if max_concurrency is not None else self.max_concurrency,
            request_timeout=self.request_timeout,
            verbose=verbose or self.verbose,
            trace=trace or self.trace,
        )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Cache:
    """Simple JSON file-based cache."""

    cache_dir: Path = field(default_factory=lambda: Path(user_cache_dir("dep-vulns")))
    ttl_hours: int = 24

    def __post_init__(self) -> None:
        """Ensure cache directory exists."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_cache_path(self, namespace: str, key: str) -> Path:
        """Get the cache file path for a given namespace and key."""
        safe_key = hashlib.sha256(key.encode("utf-8", "surrogatepass")).hexdigest()
        namespace_dir = self.cache_dir / namespace
        namespace_dir.mkdir(exist_ok=True)
        return namespace_dir / f"{safe_key}.json"

    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Retrieve a cached value if it exists and is not expired."""
        cache_path = self._get_cache_path(namespace, key)
        if not cache_path.exists():
            return None

        try:
            with open(cache_path) as f:
                entry_data = json.load(f)
            entry = CacheEntry(
                data=entry_data["data"],
                timestamp=datetime.fromisoformat(entry_data["timestamp"]),
                ttl_hours=entry_data.get("ttl_hours", self.ttl_hours),
            )
            if entry.is_expired():
                cache_path.unlink(missing_ok=True)
                return None
            return entry.data
        except (json.JSONDecodeError, KeyError, ValueError):
            cache_path.unlink(missing_ok=True)
            return None

    def set(self, namespace: str, key: str, data: Any) -> None:
        """Store a value in the cache."""
        cache_path = self._get_cache_path(namespace, key)
        entry = CacheEntry(data=data, ttl_hours=self.ttl_hours)
        with open(cache_path, "w") as f:
            json.dump(
                {
                    "data": entry.data,
                    "timestamp": entry.timestamp.isoformat(),
                    "ttl_hours": entry.ttl_hours,
                },
                f,
            )

    def clear(self, namespace: Optional[str] = None) -> int:
        """Clear cache entries. Returns number of entries cleared."""
        count = 0
        if namespace:
            namespace_dir = self.cache_dir / namespace
            if namespace_dir.exists():
                for cache_file in namespace_dir.glob("*.json"):
                    cache_file.unlink()
                    count += 1
        else:
            for namespace_dir in self.cache_dir.iterdir():
                if namespace_dir.is_dir():
                    for cache_file in namespace_dir.glob("*.json"):
                        cache_file.unlink()
                        count += 1
        return count
