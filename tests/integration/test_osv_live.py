"""Live OSV API integration tests.

These query api.osv.dev for long-published advisories whose affected ranges
will not change, and check that the full pipeline produces the expected
rules for each supported version scheme.

Usage:
  pytest tests/integration -m integration --integration -v
"""

from __future__ import annotations

import pytest

from dep_vulns.config import Config
from dep_vulns.feeds import OSVClient
from dep_vulns.models import DependencyRef
from dep_vulns.rules import fetch_rules

pytestmark = pytest.mark.integration


def _config() -> Config:
    return Config(use_cache=False, max_concurrency=4)


def _rules_for(rules, name):
    return [r for r in rules if r.match_package_names == [name]]


class TestOSVQueries:
    @pytest.mark.asyncio
    async def test_lodash_has_advisories(self):
        async with OSVClient(_config()) as client:
            advisories = await client.query_vulnerabilities("npm", "lodash")
        ids = {a.id for a in advisories} | {alias for a in advisories for alias in a.aliases}
        assert "CVE-2019-10744" in ids

    @pytest.mark.asyncio
    async def test_get_advisory(self):
        async with OSVClient(_config()) as client:
            advisory = await client.get_advisory("RUSTSEC-2020-0031")
        assert "CVE-2020-35884" in advisory.aliases
        assert advisory.affected[0].package.name == "tiny_http"

    @pytest.mark.asyncio
    async def test_unknown_package_has_none(self):
        async with OSVClient(_config()) as client:
            assert await client.query_vulnerabilities("npm", "dep-vulns-no-such-package-xyz") == []


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_mixed_inventory(self):
        inventory = {
            "npm": [DependencyRef(dep_name="lodash", current_value="4.17.4", datasource="npm")],
            "poetry": [DependencyRef(dep_name="django", current_value="3.2", datasource="pypi")],
            "cargo": [DependencyRef(dep_name="tiny_http", current_value="0.1.2", datasource="crate")],
            "dockerfile": [DependencyRef(dep_name="node", current_value="18", datasource="docker")],
        }
        rules = await fetch_rules(inventory, _config())

        lodash = _rules_for(rules, "lodash")
        assert lodash
        assert all(r.match_datasources == ["npm"] for r in lodash)

        django = _rules_for(rules, "django")
        assert django
        assert all(r.allowed_versions.startswith(("==", "> ")) for r in django)

        tiny_http = _rules_for(rules, "tiny_http")
        assert "0.6.3" in {r.allowed_versions for r in tiny_http}

        assert not _rules_for(rules, "node")
        for rule in rules:
            assert rule.is_vulnerability_alert
            assert rule.pr_body_notes[0].startswith("\n\n---\n\n### ")
