"""Markdown advisory notes attached to update rules."""

from typing import Optional

from .models import Advisory, Ecosystem
from .severity import SeverityResult

# Advisory id prefix -> detail page template
_DETAIL_URLS: dict[str, str] = {
    "CVE-": "https://nvd.nist.gov/vuln/detail/{id}",
    "GHSA-": "https://github.com/advisories/{id}",
    "GO-": "https://pkg.go.dev/vuln/{id}",
    "RUSTSEC-": "https://rustsec.org/advisories/{id}.html",
}

_GITHUB_DB = (
    "[GitHub Advisory Database](https://github.com/github/advisory-database) "
    "([CC-BY 4.0](https://github.com/github/advisory-database/blob/main/LICENSE.md))"
)
_GO_DB = (
    "[Go Vulnerability Database](https://github.com/golang/vulndb) "
    "([CC-BY 4.0](https://github.com/golang/vulndb#license))"
)
_PYPI_DB = (
    "[PyPI Advisory Database](https://github.com/pypa/advisory-database) "
    "([CC-BY 4.0](https://github.com/pypa/advisory-database/blob/main/LICENSE))"
)
_RUST_DB = (
    "[Rust Advisory Database](https://github.com/RustSec/advisory-db) "
    "([CC0 1.0](https://github.com/rustsec/advisory-db/blob/main/LICENSE.txt))"
)

_PREFIX_DATABASES: dict[str, str] = {
    "GHSA-": _GITHUB_DB,
    "GO-": _GO_DB,
    "PYSEC-": _PYPI_DB,
    "RUSTSEC-": _RUST_DB,
}

_ECOSYSTEM_DATABASES: dict[Ecosystem, str] = {
    Ecosystem.GO: _GO_DB,
    Ecosystem.PYPI: _PYPI_DB,
    Ecosystem.CARGO: _RUST_DB,
}


def detail_url(identifier: str) -> Optional[str]:
    """Return the provenance-specific page for an advisory or alias id."""
    for prefix, template in _DETAIL_URLS.items():
        if identifier.startswith(prefix):
            return template.format(id=identifier)
    return None


def _link(identifier: str) -> str:
    url = detail_url(identifier)
    return f"[{identifier}]({url})" if url else identifier


def _attribution(advisory_id: str, ecosystem: Optional[Ecosystem]) -> str:
    for prefix, database in _PREFIX_DATABASES.items():
        if advisory_id.startswith(prefix):
            return f" and the {database}"
    if any(advisory_id.startswith(p) for p in _DETAIL_URLS):
        # CVE-only records carry no secondary database
        return ""
    database = _ECOSYSTEM_DATABASES.get(ecosystem) if ecosystem else None
    return f" and the {database}" if database else ""


def reference_line(advisory: Advisory) -> str:
    """CVE aliases, then the advisory id, then remaining aliases."""
    cves = [a for a in advisory.aliases if a.startswith("CVE-")]
    others = [a for a in advisory.aliases if not a.startswith("CVE-") and a != advisory.id]
    parts = [_link(a) for a in cves] + [_link(advisory.id)] + others
    return " / ".join(parts)


def render_severity(severity: Optional[SeverityResult]) -> str:
    if severity is None:
        return "Unknown severity."
    if severity.known:
        score = f"- Score: {severity.score:g} / 10 ({severity.label.value.title()})"
    else:
        score = "- Score: Unknown"
    return f"{score}\n- Vector: `{severity.vector}`"


def render_references(advisory: Advisory) -> str:
    urls = [ref.url for ref in advisory.references if ref.type.upper() != "ADVISORY"]
    if not urls:
        return "No references."
    return "\n".join(f"- [{url}]({url})" for url in urls)


def render_advisory(
    advisory: Advisory,
    severity: Optional[SeverityResult],
    ecosystem: Optional[Ecosystem] = None,
) -> str:
    """Render the markdown note describing an advisory.

    Output depends only on the arguments.
    """
    lines = ["---", ""]
    if advisory.summary:
        lines += [f"### {advisory.summary}", reference_line(advisory)]
    else:
        lines.append(f"### {_link(advisory.id)}")
    lines += [
        "",
        "<details>",
        "<summary>More information</summary>",
        "",
        "### Details",
        advisory.details or "No details.",
        "",
        "### Severity",
        render_severity(severity),
        "",
        "### References",
        render_references(advisory),
        "",
        f"This data is provided by [OSV](https://osv.dev/vulnerability/{advisory.id})"
        f"{_attribution(advisory.id, ecosystem)}.",
        "</details>",
    ]
    return "\n".join(lines)
