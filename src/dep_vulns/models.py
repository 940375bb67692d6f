"""Pydantic data models for advisories, dependencies and update rules."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class Ecosystem(str, Enum):
    """OSV ecosystem identifiers."""

    PYPI = "PyPI"
    NPM = "npm"
    MAVEN = "Maven"
    CARGO = "crates.io"
    NUGET = "NuGet"
    GO = "Go"
    RUBYGEMS = "RubyGems"
    PACKAGIST = "Packagist"
    HEX = "Hex"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    """CVSS qualitative severity levels."""

    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"


class DependencyRef(BaseModel):
    """A dependency declaration as reported by a package manager."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dep_name: str = Field(alias="depName", description="Declared dependency name")
    package_name: Optional[str] = Field(
        default=None, alias="packageName", description="Registry name when it differs from depName"
    )
    current_value: Optional[str] = Field(
        default=None, alias="currentValue", description="Raw version or constraint as declared"
    )
    current_version: Optional[str] = Field(
        default=None, alias="currentVersion", description="Resolved current version"
    )
    locked_version: Optional[str] = Field(
        default=None, alias="lockedVersion", description="Version pinned by a lock file"
    )
    datasource: str = Field(description="Registry/datasource identifier (npm, pypi, go, ...)")

    @property
    def lookup_name(self) -> str:
        """Name used for feed lookups and rule matching."""
        return self.package_name or self.dep_name

    @property
    def version(self) -> Optional[str]:
        """Most specific known version: locked, then current, then declared."""
        return self.locked_version or self.current_version or self.current_value


class Event(BaseModel):
    """One boundary event of an OSV range."""

    introduced: Optional[str] = None
    fixed: Optional[str] = None
    last_affected: Optional[str] = None
    limit: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "Event":
        present = [k for k in ("introduced", "fixed", "last_affected", "limit") if getattr(self, k)]
        if len(present) != 1:
            raise ValueError(f"event must carry exactly one boundary, got {present or 'none'}")
        return self

    @property
    def kind(self) -> str:
        for key in ("introduced", "fixed", "last_affected", "limit"):
            if getattr(self, key):
                return key
        raise AssertionError("unreachable")

    @property
    def value(self) -> str:
        return getattr(self, self.kind)


class Range(BaseModel):
    """An OSV range: a range type plus unordered boundary events."""

    type: str = Field(description="SEMVER, ECOSYSTEM, GIT or another feed-defined type")
    repo: Optional[str] = Field(default=None, description="Source repository for GIT ranges")
    events: list[Event] = Field(default_factory=list)


class PackageInfo(BaseModel):
    """Package identity inside an affected entry."""

    name: str
    ecosystem: str
    purl: Optional[str] = None


class SeverityEntry(BaseModel):
    """A severity vector attached to an advisory or affected entry."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(description="CVSS_V2, CVSS_V3, CVSS_V4, ...")
    vector_string: str = Field(
        validation_alias=AliasChoices("score", "vector_string", "vectorString"),
        description="Raw vector text (OSV calls this field 'score')",
    )


class Reference(BaseModel):
    """A reference link of an advisory."""

    type: str = Field(default="WEB")
    url: str


class AffectedEntry(BaseModel):
    """One (package, ranges|versions) block of an advisory."""

    package: PackageInfo
    ranges: list[Range] = Field(default_factory=list)
    versions: list[str] = Field(default_factory=list)
    severity: list[SeverityEntry] = Field(default_factory=list)


class Advisory(BaseModel):
    """An OSV vulnerability record."""

    id: str
    modified: str = ""
    withdrawn: Optional[str] = None
    summary: Optional[str] = None
    details: Optional[str] = None
    aliases: list[str] = Field(default_factory=list)
    severity: list[SeverityEntry] = Field(default_factory=list)
    references: list[Reference] = Field(default_factory=list)
    affected: list[AffectedEntry] = Field(default_factory=list)


class UpdateRule(BaseModel):
    """A package rule restricting a vulnerable dependency to safe versions."""

    model_config = ConfigDict(populate_by_name=True)

    match_datasources: list[str] = Field(alias="matchDatasources")
    match_package_names: list[str] = Field(alias="matchPackageNames")
    match_current_version: str = Field(alias="matchCurrentVersion")
    allowed_versions: str = Field(alias="allowedVersions")
    is_vulnerability_alert: bool = Field(default=True, alias="isVulnerabilityAlert")
    pr_body_notes: list[str] = Field(default_factory=list, alias="prBodyNotes")


def _utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    from datetime import timezone

    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """Cache entry with timestamp metadata."""

    data: Any = Field(description="Cached data (dict or list)")
    timestamp: datetime = Field(default_factory=_utc_now, description="Cache timestamp")
    ttl_hours: int = Field(default=24, description="TTL in hours")

    def is_expired(self) -> bool:
        """Check if the cache entry has expired."""
        from datetime import timedelta, timezone

        now = datetime.now(timezone.utc)
        # Handle both naive and aware timestamps
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        age = now - ts
        return age > timedelta(hours=self.ttl_hours)
