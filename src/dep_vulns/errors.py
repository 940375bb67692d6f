"""Exception hierarchy for dep-vulns."""


class DepVulnsError(Exception):
    """Base class for all dep-vulns errors."""


class FeedError(DepVulnsError):
    """The vulnerability feed could not be initialised or queried.

    Fatal for a resolution pass: the caller gets no partial rule list.
    """


class InvalidVersionError(DepVulnsError, ValueError):
    """A version string does not parse under the ecosystem's version scheme."""

    def __init__(self, version: str, ecosystem: str = ""):
        self.version = version
        self.ecosystem = ecosystem
        where = f" for {ecosystem}" if ecosystem else ""
        super().__init__(f"Invalid version{where}: {version}")


class InventoryError(DepVulnsError):
    """The dependency inventory file is missing or malformed."""
