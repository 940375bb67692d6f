"""Vulnerability feeds: the OSV query API and local OSV exports."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from .config import Cache, Config
from .ecosystems import normalize_package_name, parse_ecosystem
from .errors import FeedError
from .models import Advisory, Ecosystem

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "osv-query"


class VulnerabilityFeed(Protocol):
    """Source of advisories for a package."""

    async def query_vulnerabilities(self, ecosystem: str, package_name: str) -> list[Advisory]:
        ...


def _parse_advisories(records: list, source: str) -> list[Advisory]:
    """Validate raw OSV records, skipping malformed and withdrawn ones."""
    advisories = []
    for record in records:
        try:
            advisory = Advisory.model_validate(record)
        except ValidationError as e:
            record_id = record.get("id", "?") if isinstance(record, dict) else "?"
            logger.warning(f"Skipping malformed OSV record {record_id} from {source}: {e}")
            continue
        if advisory.withdrawn:
            logger.debug(f"Skipping withdrawn advisory {advisory.id}")
            continue
        advisories.append(advisory)
    return advisories


class OSVClient:
    """Query advisories per package from the OSV API."""

    def __init__(self, config: Config, cache: Optional[Cache] = None):
        self.config = config
        self.cache = cache
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "OSVClient":
        self._client = httpx.AsyncClient(timeout=self.config.request_timeout)
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post_query(self, payload: dict) -> dict:
        """POST one query page, backing off on 429 rate limiting."""
        if self._client is None:
            raise FeedError("OSV client used outside of its async context")

        url = f"{self.config.osv_api_url.rstrip('/')}/query"
        max_attempts = 3
        for attempt in range(max_attempts):
            try:
                response = await self._client.post(url, json=payload)
                if response.status_code == 429:
                    if attempt == max_attempts - 1:
                        break
                    retry_after = response.headers.get("Retry-After", "5")
                    try:
                        wait_seconds = float(retry_after)
                    except ValueError:
                        wait_seconds = 5.0
                    wait_seconds = min(wait_seconds, 60.0)
                    logger.warning(
                        f"OSV rate limit hit, retrying in {wait_seconds:.0f}s "
                        f"(attempt {attempt + 1}/{max_attempts})"
                    )
                    await asyncio.sleep(wait_seconds)
                    continue
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                raise FeedError(f"OSV API error {e.response.status_code} for {payload['package']}") from e
            except httpx.RequestError as e:
                raise FeedError(f"OSV API request failed for {payload['package']}: {e}") from e
            except ValueError as e:
                raise FeedError(f"OSV API returned invalid JSON for {payload['package']}") from e
        raise FeedError(f"OSV rate limit exceeded for {payload['package']}")

    async def _fetch_records(self, ecosystem: str, package_name: str) -> list:
        cache_key = f"{ecosystem}/{package_name}"
        if self.cache and self.config.use_cache:
            cached = self.cache.get(CACHE_NAMESPACE, cache_key)
            if cached is not None:
                logger.debug(f"Using cached OSV data for {cache_key}")
                return cached

        logger.debug(f"Querying OSV for {cache_key}")
        records: list = []
        payload: dict = {"package": {"name": package_name, "ecosystem": ecosystem}}
        while True:
            data = await self._post_query(payload)
            records.extend(data.get("vulns") or [])
            page_token = data.get("next_page_token")
            if not page_token:
                break
            payload = {**payload, "page_token": page_token}

        if self.cache:
            self.cache.set(CACHE_NAMESPACE, cache_key, records)
        return records

    async def query_vulnerabilities(self, ecosystem: str, package_name: str) -> list[Advisory]:
        records = await self._fetch_records(ecosystem, package_name)
        return _parse_advisories(records, "OSV API")

    async def get_advisory(self, advisory_id: str) -> Advisory:
        """Fetch a single advisory by id."""
        if self._client is None:
            raise FeedError("OSV client used outside of its async context")
        url = f"{self.config.osv_api_url.rstrip('/')}/vulns/{advisory_id}"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            return Advisory.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise FeedError(f"Advisory {advisory_id} not found in OSV") from e
            raise FeedError(f"OSV API error {e.response.status_code} for {advisory_id}") from e
        except httpx.RequestError as e:
            raise FeedError(f"OSV API request failed for {advisory_id}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise FeedError(f"OSV returned an unusable record for {advisory_id}") from e


class LocalFeed:
    """Advisories read from a directory of OSV JSON files (e.g. an osv.dev export)."""

    def __init__(self, index: dict[tuple[Ecosystem, str], list[Advisory]]):
        self._index = index

    @classmethod
    def create(cls, root: Path) -> "LocalFeed":
        """Index every ``*.json`` advisory below ``root`` by (ecosystem, package)."""
        root = Path(root)
        if not root.is_dir():
            raise FeedError(f"OSV data directory not found: {root}")

        index: dict[tuple[Ecosystem, str], list[Advisory]] = {}
        count = 0
        for path in sorted(root.rglob("*.json")):
            try:
                with open(path) as f:
                    record = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable OSV file {path}: {e}")
                continue
            for advisory in _parse_advisories([record], str(path)):
                count += 1
                keys = set()
                for entry in advisory.affected:
                    ecosystem = parse_ecosystem(entry.package.ecosystem)
                    keys.add((ecosystem, normalize_package_name(entry.package.name, ecosystem)))
                for key in keys:
                    index.setdefault(key, []).append(advisory)
        logger.debug(f"Indexed {count} advisories from {root}")
        return cls(index)

    async def query_vulnerabilities(self, ecosystem: str, package_name: str) -> list[Advisory]:
        eco = parse_ecosystem(ecosystem)
        return list(self._index.get((eco, normalize_package_name(package_name, eco)), []))
