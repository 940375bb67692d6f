"""Mapping between datasource identifiers and OSV ecosystems."""

from typing import Optional

from packaging.utils import canonicalize_name

from .models import AffectedEntry, Ecosystem

# Datasource (registry) identifier -> OSV ecosystem
DATASOURCE_ECOSYSTEMS: dict[str, Ecosystem] = {
    "crate": Ecosystem.CARGO,
    "go": Ecosystem.GO,
    "hex": Ecosystem.HEX,
    "maven": Ecosystem.MAVEN,
    "npm": Ecosystem.NPM,
    "nuget": Ecosystem.NUGET,
    "packagist": Ecosystem.PACKAGIST,
    "pypi": Ecosystem.PYPI,
    "rubygems": Ecosystem.RUBYGEMS,
}

# Ecosystems whose allowed-version syntax needs an explicit "==" pin
EXACT_PIN_ECOSYSTEMS: frozenset = frozenset({Ecosystem.PYPI})


def map_datasource(datasource: str) -> Optional[Ecosystem]:
    """Return the OSV ecosystem for a datasource, or None when unsupported."""
    return DATASOURCE_ECOSYSTEMS.get(datasource)


def parse_ecosystem(ecosystem_str: str) -> Ecosystem:
    """Parse an OSV ecosystem string to the Ecosystem enum.

    OSV qualifies some ecosystems with a release suffix ("Debian:11"); only the
    part before the colon is considered.
    """
    mapping = {
        "pypi": Ecosystem.PYPI,
        "npm": Ecosystem.NPM,
        "maven": Ecosystem.MAVEN,
        "crates.io": Ecosystem.CARGO,
        "cargo": Ecosystem.CARGO,
        "nuget": Ecosystem.NUGET,
        "go": Ecosystem.GO,
        "rubygems": Ecosystem.RUBYGEMS,
        "packagist": Ecosystem.PACKAGIST,
        "hex": Ecosystem.HEX,
    }
    base = (ecosystem_str or "").split(":", 1)[0].strip().lower()
    return mapping.get(base, Ecosystem.UNKNOWN)


def normalize_package_name(name: str, ecosystem: Ecosystem) -> str:
    """Normalise a package name for comparison within an ecosystem."""
    if ecosystem == Ecosystem.PYPI:
        return canonicalize_name(name)
    return name


def entry_matches_package(entry: AffectedEntry, ecosystem: Ecosystem, package_name: str) -> bool:
    """Check whether an affected entry describes the given package."""
    if parse_ecosystem(entry.package.ecosystem) != ecosystem:
        return False
    return normalize_package_name(entry.package.name, ecosystem) == normalize_package_name(
        package_name, ecosystem
    )
