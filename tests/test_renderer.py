"""Tests for advisory markdown rendering."""

from dep_vulns.models import Advisory, Ecosystem, Severity
from dep_vulns.renderer import (
    detail_url,
    reference_line,
    render_advisory,
    render_references,
    render_severity,
)
from dep_vulns.severity import SeverityResult, parse_vector

TINY_HTTP = Advisory.model_validate(
    {
        "id": "RUSTSEC-2020-0031",
        "summary": "HTTP Request smuggling through malformed Transfer Encoding headers",
        "details": (
            "HTTP pipelining issues and request smuggling attacks are possible due to "
            "incorrect Transfer encoding header parsing.\n\n"
            "It is possible conduct HTTP request smuggling attacks (CL:TE/TE:TE) by sending "
            "invalid Transfer Encoding headers.\n\n"
            "By manipulating the HTTP response the attacker could poison a web-cache, perform "
            "an XSS attack, or obtain sensitive information from requests other than their own."
        ),
        "aliases": ["CVE-2020-35884", "SOME-1234-5678"],
        "modified": "",
        "severity": [
            {"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:L/A:N"},
        ],
        "references": [
            {"type": "PACKAGE", "url": "https://crates.io/crates/tiny_http"},
            {"type": "WEB", "url": "https://github.com/tiny-http/tiny-http/issues/173"},
            {"type": "WEB", "url": "https://rustsec.org/advisories/RUSTSEC-2020-0031.html"},
        ],
    }
)


class TestDetailUrl:
    def test_known_prefixes(self):
        assert detail_url("CVE-2020-35884") == "https://nvd.nist.gov/vuln/detail/CVE-2020-35884"
        assert detail_url("GHSA-xxxx-yyyy-zzzz") == "https://github.com/advisories/GHSA-xxxx-yyyy-zzzz"
        assert detail_url("GO-2022-0187") == "https://pkg.go.dev/vuln/GO-2022-0187"
        assert detail_url("RUSTSEC-2020-0031") == "https://rustsec.org/advisories/RUSTSEC-2020-0031.html"

    def test_unknown_prefix(self):
        assert detail_url("PYSEC-2022-303") is None
        assert detail_url("SOME-1234-5678") is None


class TestReferenceLine:
    def test_cve_first_then_id_then_others(self):
        assert reference_line(TINY_HTTP) == (
            "[CVE-2020-35884](https://nvd.nist.gov/vuln/detail/CVE-2020-35884) / "
            "[RUSTSEC-2020-0031](https://rustsec.org/advisories/RUSTSEC-2020-0031.html) / "
            "SOME-1234-5678"
        )

    def test_id_only(self):
        assert reference_line(Advisory(id="PYSEC-2022-303")) == "PYSEC-2022-303"


class TestRenderSeverity:
    def test_known(self):
        result = parse_vector("CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:L/A:N", 3)
        assert render_severity(result) == (
            "- Score: 6.5 / 10 (Medium)\n- Vector: `CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:L/A:N`"
        )

    def test_whole_scores_drop_trailing_zero(self):
        vector = "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:C/C:H/I:H/A:H"
        critical = SeverityResult(score=10.0, label=Severity.CRITICAL, vector=vector)
        assert render_severity(critical).startswith("- Score: 10 / 10 (Critical)\n")
        high = SeverityResult(score=7.0, label=Severity.HIGH, vector=vector)
        assert render_severity(high).startswith("- Score: 7 / 10 (High)\n")

    def test_computed_whole_score(self):
        result = parse_vector("CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:C/C:H/I:H/A:H", 3)
        assert render_severity(result).startswith("- Score: 10 / 10 (Critical)")

    def test_unparseable_vector(self):
        result = SeverityResult(score=None, label=Severity.UNKNOWN, vector="some-invalid-score")
        assert render_severity(result) == "- Score: Unknown\n- Vector: `some-invalid-score`"

    def test_missing(self):
        assert render_severity(None) == "Unknown severity."


class TestRenderReferences:
    def test_advisory_references_dropped(self):
        advisory = Advisory.model_validate(
            {
                "id": "GHSA-1",
                "references": [
                    {"type": "ADVISORY", "url": "https://nvd.nist.gov/vuln/detail/CVE-2019-1010266"},
                    {"type": "WEB", "url": "https://example.com/fix"},
                ],
            }
        )
        assert render_references(advisory) == "- [https://example.com/fix](https://example.com/fix)"

    def test_none(self):
        assert render_references(Advisory(id="GHSA-1")) == "No references."


class TestRenderAdvisory:
    def test_full_note(self):
        severity = parse_vector("CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:L/A:N", 3)
        expected = "\n".join(
            [
                "---",
                "",
                "### HTTP Request smuggling through malformed Transfer Encoding headers",
                "[CVE-2020-35884](https://nvd.nist.gov/vuln/detail/CVE-2020-35884) / "
                "[RUSTSEC-2020-0031](https://rustsec.org/advisories/RUSTSEC-2020-0031.html) / "
                "SOME-1234-5678",
                "",
                "<details>",
                "<summary>More information</summary>",
                "",
                "### Details",
                TINY_HTTP.details,
                "",
                "### Severity",
                "- Score: 6.5 / 10 (Medium)",
                "- Vector: `CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:L/A:N`",
                "",
                "### References",
                "- [https://crates.io/crates/tiny_http](https://crates.io/crates/tiny_http)",
                "- [https://github.com/tiny-http/tiny-http/issues/173]"
                "(https://github.com/tiny-http/tiny-http/issues/173)",
                "- [https://rustsec.org/advisories/RUSTSEC-2020-0031.html]"
                "(https://rustsec.org/advisories/RUSTSEC-2020-0031.html)",
                "",
                "This data is provided by [OSV](https://osv.dev/vulnerability/RUSTSEC-2020-0031) "
                "and the [Rust Advisory Database](https://github.com/RustSec/advisory-db) "
                "([CC0 1.0](https://github.com/rustsec/advisory-db/blob/main/LICENSE.txt)).",
                "</details>",
            ]
        )
        assert render_advisory(TINY_HTTP, severity, Ecosystem.CARGO) == expected

    def test_pysec_invalid_cvss(self):
        advisory = Advisory.model_validate(
            {
                "id": "PYSEC-2022-303",
                "modified": "",
                "severity": [{"type": "CVSS_V3", "score": "some-invalid-score"}],
            }
        )
        note = render_advisory(advisory, parse_vector("some-invalid-score", 3), Ecosystem.PYPI)
        assert note.startswith("---\n\n### PYSEC-2022-303\n\n<details>")
        assert "### Severity\n- Score: Unknown\n- Vector: `some-invalid-score`\n" in note
        assert note.endswith(
            "This data is provided by [OSV](https://osv.dev/vulnerability/PYSEC-2022-303) "
            "and the [PyPI Advisory Database](https://github.com/pypa/advisory-database) "
            "([CC-BY 4.0](https://github.com/pypa/advisory-database/blob/main/LICENSE)).\n"
            "</details>"
        )

    def test_go_attribution(self):
        note = render_advisory(Advisory(id="GO-2022-0187"), None)
        assert "### [GO-2022-0187](https://pkg.go.dev/vuln/GO-2022-0187)" in note
        assert "[Go Vulnerability Database](https://github.com/golang/vulndb)" in note

    def test_ecosystem_fallback_attribution(self):
        note = render_advisory(Advisory(id="OSV-2024-1"), None, Ecosystem.PYPI)
        assert "and the [PyPI Advisory Database]" in note
        assert "and the" not in render_advisory(Advisory(id="OSV-2024-1"), None, Ecosystem.NPM)

    def test_cve_record_has_no_secondary_database(self):
        note = render_advisory(Advisory(id="CVE-2024-1234"), None, Ecosystem.PYPI)
        assert note.endswith("This data is provided by [OSV](https://osv.dev/vulnerability/CVE-2024-1234).\n</details>")

    def test_deterministic(self):
        severity = parse_vector("CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:L/A:N", 3)
        assert render_advisory(TINY_HTTP, severity) == render_advisory(TINY_HTTP, severity)
