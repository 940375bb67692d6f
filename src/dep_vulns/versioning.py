"""Version parsing and ordering per ecosystem version scheme."""

import itertools
import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Any, Optional, Union

from packaging.version import InvalidVersion, Version

from .errors import InvalidVersionError
from .models import Ecosystem

_SEMVER_RE = re.compile(
    r"^[=v]?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_LOOSE_RE = re.compile(r"^[vV]?\d")

# Qualifiers that denote the release itself rather than a pre-release
_RELEASE_QUALIFIERS = frozenset({"", "final", "ga", "release"})

# Longest numeric component accepted by the loose scheme
_MAX_COMPONENT_DIGITS = 64


@dataclass(frozen=True, order=True)
class SemVer:
    """A parsed SemVer 2.0 version; build metadata does not affect ordering."""

    key: tuple
    text: str = field(compare=False)


@total_ordering
@dataclass(frozen=True, eq=False)
class LooseVersion:
    """Dotted numeric version with optional alphabetic qualifiers.

    Missing trailing components compare as zero. A qualifier (``-beta9``,
    ``RC1``, ``rc1`` glued to a number) becomes its own component that sorts
    before the plain release and orders by name, then by its trailing number.
    """

    parts: tuple
    text: str

    _PAD = (1, "", 0)

    def _cmp(self, other: "LooseVersion") -> int:
        for mine, theirs in itertools.zip_longest(self.parts, other.parts, fillvalue=self._PAD):
            if mine != theirs:
                return -1 if mine < theirs else 1
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LooseVersion):
            return NotImplemented
        return self._cmp(other) == 0

    def __lt__(self, other: "LooseVersion") -> bool:
        return self._cmp(other) < 0

    def __hash__(self) -> int:
        parts = list(self.parts)
        while parts and parts[-1] == self._PAD:
            parts.pop()
        return hash(tuple(parts))


ParsedVersion = Union[SemVer, Version, LooseVersion]


class VersionScheme:
    """Base class for an ecosystem's version syntax and ordering."""

    name = "base"

    def parse(self, version: str) -> Any:
        raise NotImplementedError

    def try_parse(self, version: Optional[str]) -> Optional[Any]:
        """Parse a version, returning None instead of raising."""
        if not isinstance(version, str) or not version:
            return None
        try:
            return self.parse(version)
        except InvalidVersionError:
            return None

    def is_valid(self, version: Optional[str]) -> bool:
        return self.try_parse(version) is not None

    def compare(self, a: str, b: str) -> int:
        """Return -1, 0 or 1 as ``a`` sorts before, equal to, or after ``b``."""
        left, right = self.parse(a), self.parse(b)
        if left == right:
            return 0
        return -1 if left < right else 1


class SemverScheme(VersionScheme):
    """SemVer 2.0 ordering, accepting a leading ``v`` or ``=``."""

    name = "semver"

    def parse(self, version: str) -> SemVer:
        match = _SEMVER_RE.match(version.strip())
        if not match:
            raise InvalidVersionError(version, self.name)
        prerelease = match.group("prerelease")
        try:
            if prerelease is None:
                pre_key: tuple = (1,)
            else:
                pre_key = (
                    0,
                    tuple(
                        (0, int(ident), "") if ident.isdigit() else (1, 0, ident)
                        for ident in prerelease.split(".")
                    ),
                )
            key = (
                int(match.group("major")),
                int(match.group("minor")),
                int(match.group("patch")),
                pre_key,
            )
        except ValueError:
            # int() refuses components longer than sys.get_int_max_str_digits()
            raise InvalidVersionError(version, self.name) from None
        return SemVer(key=key, text=version)


class Pep440Scheme(VersionScheme):
    """PEP 440 ordering; a pip-style exact pin (``==1.2.3``) is accepted."""

    name = "pep440"

    def parse(self, version: str) -> Version:
        text = version.strip()
        for pin in ("===", "=="):
            if text.startswith(pin):
                text = text[len(pin):].strip()
                break
        try:
            return Version(text)
        except (InvalidVersion, ValueError):
            raise InvalidVersionError(version, self.name) from None


class LooseScheme(VersionScheme):
    """Best-effort dotted numeric ordering for Maven, NuGet, Composer and gems."""

    name = "loose"

    def parse(self, version: str) -> LooseVersion:
        text = version.strip()
        if not _LOOSE_RE.match(text):
            raise InvalidVersionError(version, self.name)
        text = re.sub(r"^[vV]", "", text)
        # Numbers are (1, "", n); qualifiers are (0, name, n) so "beta10" > "beta9"
        parts = []
        for part in re.split(r"[.\-_+]", text):
            qualifier = None
            for digits, token in re.findall(r"(\d+)|(\D+)", part):
                if digits:
                    if len(digits) > _MAX_COMPONENT_DIGITS:
                        raise InvalidVersionError(version, self.name)
                    if qualifier is not None:
                        parts.append((0, qualifier, int(digits)))
                        qualifier = None
                    else:
                        parts.append((1, "", int(digits)))
                    continue
                if qualifier is not None:
                    parts.append((0, qualifier, 0))
                qualifier = token.lower()
                if qualifier in _RELEASE_QUALIFIERS:
                    qualifier = None
            if qualifier is not None:
                parts.append((0, qualifier, 0))
        return LooseVersion(parts=tuple(parts), text=version)


_SEMVER = SemverScheme()
_PEP440 = Pep440Scheme()
_LOOSE = LooseScheme()

SCHEMES: dict[Ecosystem, VersionScheme] = {
    Ecosystem.NPM: _SEMVER,
    Ecosystem.CARGO: _SEMVER,
    Ecosystem.HEX: _SEMVER,
    Ecosystem.GO: _SEMVER,
    Ecosystem.PYPI: _PEP440,
    Ecosystem.MAVEN: _LOOSE,
    Ecosystem.NUGET: _LOOSE,
    Ecosystem.PACKAGIST: _LOOSE,
    Ecosystem.RUBYGEMS: _LOOSE,
}


def get_scheme(ecosystem: Ecosystem) -> VersionScheme:
    """Return the version scheme used for an ecosystem."""
    return SCHEMES.get(ecosystem, _LOOSE)


def try_parse(version: Optional[str], ecosystem: Ecosystem) -> Optional[Any]:
    return get_scheme(ecosystem).try_parse(version)


def compare(a: str, b: str, ecosystem: Ecosystem) -> int:
    return get_scheme(ecosystem).compare(a, b)
