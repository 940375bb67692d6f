"""Affected-range resolution for OSV affected entries.

An OSV range lists boundary events (``introduced``, ``fixed``,
``last_affected``) in no guaranteed order, possibly describing several
disjoint subranges at once. Resolution sorts the events, pairs them into
subranges and tests the dependency version against each subrange in turn.

Selection rule: the first subrange that contains the version decides the
outcome, scanning ranges in entry order and subranges in ascending order.
A subrange that does not contain the version never contributes a target,
so a lower ``fixed`` from an unrelated subrange can never be recommended.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Optional

from .ecosystems import EXACT_PIN_ECOSYSTEMS
from .models import AffectedEntry, Ecosystem, Event
from .versioning import VersionScheme, get_scheme

logger = logging.getLogger(__name__)

# Range types whose events carry ecosystem versions (GIT carries commit hashes)
COMPARABLE_RANGE_TYPES = frozenset({"SEMVER", "ECOSYSTEM"})

# "introduced: 0" is the OSV sentinel for "since the first release"
MIN_VERSION = "0"


class BoundKind(str, Enum):
    FIXED = "fixed"
    LAST_AFFECTED = "last_affected"


class Verdict(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    APPLICABLE = "applicable"
    NO_FIX = "no_fix"


@dataclass(frozen=True)
class Subrange:
    """A reconstructed affected interval.

    ``introduced`` of None means unbounded below. ``upper`` of None means
    unbounded above; otherwise ``kind`` says whether ``upper`` is exclusive
    (fixed) or inclusive (last_affected).
    """

    introduced: Optional[str] = None
    upper: Optional[str] = None
    kind: Optional[BoundKind] = None

    def contains(self, version: str, scheme: VersionScheme) -> bool:
        if self.introduced is not None and scheme.compare(self.introduced, version) > 0:
            return False
        if self.upper is None:
            return True
        order = scheme.compare(version, self.upper)
        if self.kind == BoundKind.FIXED:
            return order < 0
        return order <= 0


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one affected entry against a version."""

    verdict: Verdict
    target: Optional[str] = None
    kind: Optional[BoundKind] = None
    # "range" or "versions": which part of the entry matched
    source: Optional[str] = None

    @property
    def applicable(self) -> bool:
        return self.verdict == Verdict.APPLICABLE


NOT_APPLICABLE = Resolution(Verdict.NOT_APPLICABLE)


def sort_events(events: list[Event], scheme: VersionScheme) -> list[Event]:
    """Sort boundary events ascending by version.

    ``introduced: "0"`` always sorts first; on equal versions ``introduced``
    sorts before ``fixed``/``last_affected``. ``limit`` events are dropped.
    Raises InvalidVersionError for an event version the scheme cannot parse.
    """

    def _cmp(a: Event, b: Event) -> int:
        a_min = a.kind == "introduced" and a.value == MIN_VERSION
        b_min = b.kind == "introduced" and b.value == MIN_VERSION
        if a_min or b_min:
            return (0 if a_min else 1) - (0 if b_min else 1)
        order = scheme.compare(a.value, b.value)
        if order:
            return order
        return (0 if a.kind == "introduced" else 1) - (0 if b.kind == "introduced" else 1)

    boundaries = [e for e in events if e.kind != "limit"]
    return sorted(boundaries, key=cmp_to_key(_cmp))


def build_subranges(events: list[Event], scheme: VersionScheme) -> list[Subrange]:
    """Reconstruct ordered subranges from a range's (unsorted) events."""
    subranges: list[Subrange] = []
    open_lower: Optional[str] = None
    is_open = False
    for event in sort_events(events, scheme):
        if event.kind == "introduced":
            if not is_open:
                open_lower = None if event.value == MIN_VERSION else event.value
                is_open = True
            continue
        if not is_open:
            logger.debug(f"Ignoring {event.kind} {event.value} without a preceding introduced event")
            continue
        subranges.append(Subrange(open_lower, event.value, BoundKind(event.kind)))
        is_open = False
        open_lower = None
    if is_open:
        subranges.append(Subrange(open_lower))
    return subranges


def _in_version_list(version: str, versions: list[str], scheme: VersionScheme) -> bool:
    if version in versions:
        return True
    current = scheme.parse(version)
    for candidate in versions:
        parsed = scheme.try_parse(candidate)
        if parsed is None:
            logger.debug(f"Skipping unparseable affected version {candidate!r}")
            continue
        if parsed == current:
            return True
    return False


def resolve_entry(entry: AffectedEntry, version: str, ecosystem: Ecosystem) -> Resolution:
    """Decide whether ``version`` is affected by ``entry`` and what fixes it.

    The version must already be valid for the ecosystem. Event versions are
    parsed lazily and an InvalidVersionError propagates to the caller.
    """
    if not entry.ranges and not entry.versions:
        return NOT_APPLICABLE

    scheme = get_scheme(ecosystem)
    for rng in entry.ranges:
        if rng.type not in COMPARABLE_RANGE_TYPES:
            continue
        for subrange in build_subranges(rng.events, scheme):
            if not subrange.contains(version, scheme):
                continue
            if subrange.upper is None:
                return Resolution(Verdict.NO_FIX, source="range")
            return Resolution(Verdict.APPLICABLE, subrange.upper, subrange.kind, "range")

    if entry.versions and _in_version_list(version, entry.versions, scheme):
        return Resolution(Verdict.NO_FIX, source="versions")
    return NOT_APPLICABLE


def format_allowed_versions(resolution: Resolution, ecosystem: Ecosystem) -> Optional[str]:
    """Render the allowed-versions constraint for an applicable resolution."""
    if not resolution.applicable or resolution.target is None:
        return None
    if resolution.kind == BoundKind.LAST_AFFECTED:
        return f"> {resolution.target}"
    if ecosystem in EXACT_PIN_ECOSYSTEMS:
        return f"=={resolution.target}"
    return resolution.target
