"""Build vulnerability update rules for an inventory of dependencies."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from . import TRACE
from .config import Cache, Config
from .ecosystems import entry_matches_package, map_datasource
from .errors import InvalidVersionError
from .feeds import OSVClient, VulnerabilityFeed
from .models import Advisory, DependencyRef, Ecosystem, UpdateRule
from .ranges import Verdict, format_allowed_versions, resolve_entry
from .renderer import render_advisory
from .severity import resolve_severity
from .versioning import get_scheme

logger = logging.getLogger(__name__)

Inventory = Mapping[str, Sequence[DependencyRef]]


@dataclass(frozen=True)
class _Candidate:
    """A dependency that passed datasource mapping and version validation."""

    dep: DependencyRef
    ecosystem: Ecosystem
    version: str

    @property
    def key(self) -> tuple[Ecosystem, str]:
        return self.ecosystem, self.dep.lookup_name


class RuleBuilder:
    """Resolve advisories from a feed into update rules.

    Feed queries run concurrently, one per (ecosystem, package name). Rules
    are then assembled dependency by dependency in inventory order; each
    dependency's rules enter the result together or not at all.
    """

    def __init__(self, feed: VulnerabilityFeed, max_concurrency: int = 8):
        self.feed = feed
        self.max_concurrency = max(1, max_concurrency)

    def _collect_candidates(self, inventory: Inventory) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        unsupported: set[str] = set()
        for deps in inventory.values():
            for dep in deps:
                if dep.datasource in unsupported:
                    continue
                ecosystem = map_datasource(dep.datasource)
                if ecosystem is None:
                    unsupported.add(dep.datasource)
                    logger.log(TRACE, f"Cannot map datasource {dep.datasource} to OSV ecosystem")
                    continue

                version = dep.version
                if get_scheme(ecosystem).try_parse(version) is None:
                    logger.debug(
                        f"Skipping vulnerability lookup for package {dep.lookup_name} "
                        f"due to unsupported version {version}"
                    )
                    continue
                candidates.append(_Candidate(dep=dep, ecosystem=ecosystem, version=version))
        return candidates

    async def _query_all(self, candidates: list[_Candidate]) -> dict[tuple[Ecosystem, str], list[Advisory]]:
        keys = list(dict.fromkeys(c.key for c in candidates))
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _query(key: tuple[Ecosystem, str]) -> tuple[tuple[Ecosystem, str], list[Advisory]]:
            ecosystem, name = key
            async with semaphore:
                return key, await self.feed.query_vulnerabilities(ecosystem.value, name)

        tasks = [asyncio.ensure_future(_query(key)) for key in keys]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Let every sibling finish unwinding before the error propagates
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(results)

    def _rules_for_advisory(self, candidate: _Candidate, advisory: Advisory) -> list[UpdateRule]:
        dep, ecosystem, version = candidate.dep, candidate.ecosystem, candidate.version
        name = dep.lookup_name
        rules: list[UpdateRule] = []
        for entry in advisory.affected:
            if not entry_matches_package(entry, ecosystem, name):
                continue
            resolution = resolve_entry(entry, version, ecosystem)
            if resolution.verdict == Verdict.NOT_APPLICABLE:
                continue
            if resolution.source == "versions":
                logger.debug(f"OSV advisory {advisory.id} lists {name} {version} as vulnerable")
            if resolution.verdict == Verdict.NO_FIX:
                logger.info(
                    f"No fixed version available for vulnerability {advisory.id} in {name} {version}"
                )
                continue

            logger.debug(f"Vulnerability {advisory.id} affects {name} {version}")
            allowed = format_allowed_versions(resolution, ecosystem)
            logger.debug(
                f"Setting allowed version {allowed} to fix vulnerability {advisory.id} in {name} {version}"
            )
            note = render_advisory(advisory, resolve_severity(advisory, entry), ecosystem)
            rules.append(
                UpdateRule(
                    match_datasources=[dep.datasource],
                    match_package_names=[name],
                    match_current_version=version,
                    allowed_versions=allowed,
                    pr_body_notes=["\n\n" + note],
                )
            )
        return rules

    def _rules_for_dependency(self, candidate: _Candidate, advisories: list[Advisory]) -> list[UpdateRule]:
        name = candidate.dep.lookup_name
        if not advisories:
            logger.log(TRACE, f"No vulnerabilities found in OSV database for {name}")
            return []

        rules: list[UpdateRule] = []
        for advisory in advisories:
            try:
                rules.extend(self._rules_for_advisory(candidate, advisory))
            except InvalidVersionError as err:
                logger.debug(f"Error fetching vulnerability information for {name}", exc_info=err)
        return rules

    async def build_rules(self, inventory: Inventory) -> list[UpdateRule]:
        """Return update rules for every vulnerable dependency in the inventory.

        Raises FeedError if any feed query fails; no partial result is returned.
        """
        candidates = self._collect_candidates(inventory)
        advisories = await self._query_all(candidates)

        rules: list[UpdateRule] = []
        for candidate in candidates:
            # Yield between dependencies so a cancelled pass stops cleanly here
            await asyncio.sleep(0)
            rules.extend(self._rules_for_dependency(candidate, advisories.get(candidate.key, [])))
        return rules


async def fetch_rules(
    inventory: Inventory,
    config: Config,
    cache: Optional[Cache] = None,
    feed: Optional[VulnerabilityFeed] = None,
) -> list[UpdateRule]:
    """Convenience function: build rules against ``feed`` or the OSV API."""
    if feed is not None:
        return await RuleBuilder(feed, config.max_concurrency).build_rules(inventory)
    async with OSVClient(config, cache) as client:
        return await RuleBuilder(client, config.max_concurrency).build_rules(inventory)
