"""Tests for SQLite response cache."""

import time

import pytest

from dephealth.cache import ResponseCache


@pytest.fixture
def cache(tmp_path):
    """Create a temporary cache for testing."""
    db_path = tmp_path / "test_cache.db"
    return ResponseCache(db_path=db_path, ttl=3600)


@pytest.fixture
def sample_vulns():
    """Sample vulnerability data."""
    return [
        {
            "id": "GHSA-test-0001",
            "summary": "Test vulnerability",
            "severity": [{"type": "CVSS_V3", "score": "7.5"}],
        },
        {
            "id": "GHSA-test-0002",
            "summary": "Another vulnerability",
        },
    ]


class TestResponseCache:
    """Test suite for SQLite response cache."""

    def test_set_and_get(self, cache, sample_vulns):
        """Cache set/get round-trip."""
        cache.set("osv", "lodash", "4.17.21", sample_vulns)
        result = cache.get("osv", "lodash", "4.17.21")
        assert result is not None
        assert len(result) == 2
        assert result[0]["id"] == "GHSA-test-0001"

    def test_get_missing_entry(self, cache):
        """Missing entries return None."""
        assert cache.get("osv", "nonexistent", "1.0.0") is None

    def test_empty_payload_is_a_hit(self, cache):
        cache.set("osv", "safe-package", "1.0.0", [])
        assert cache.get("osv", "safe-package", "1.0.0") == []

    def test_case_insensitive_keys(self, cache, sample_vulns):
        """Source and package names are case-insensitive."""
        cache.set("OSV", "Lodash", "4.17.21", sample_vulns)
        assert cache.get("osv", "lodash", "4.17.21") is not None

    def test_sources_are_separate(self, cache, sample_vulns):
        cache.set("osv", "react", "*", sample_vulns)
        assert cache.get("npm-registry", "react", "*") is None

    def test_dict_payload(self, cache):
        packument = {"dist-tags": {"latest": "19.0.0"}, "versions": ["18.2.0", "19.0.0"]}
        cache.set("npm-registry", "react", "*", packument)
        assert cache.get("npm-registry", "react", "*") == packument

    def test_ttl_expiry(self, tmp_path, sample_vulns):
        """Expired entries should return None."""
        cache = ResponseCache(db_path=tmp_path / "ttl_test.db", ttl=1)
        cache.set("osv", "lodash", "4.17.21", sample_vulns)

        # Immediately should be valid
        assert cache.get("osv", "lodash", "4.17.21") is not None

        # After TTL, should be expired
        time.sleep(1.1)
        assert cache.get("osv", "lodash", "4.17.21") is None

    def test_overwrite_existing(self, cache, sample_vulns):
        """New data overwrites existing entries."""
        cache.set("osv", "lodash", "4.17.21", sample_vulns)
        cache.set("osv", "lodash", "4.17.21", [{"id": "NEW-001"}])

        result = cache.get("osv", "lodash", "4.17.21")
        assert len(result) == 1
        assert result[0]["id"] == "NEW-001"

    def test_clear(self, cache, sample_vulns):
        cache.set("osv", "lodash", "4.17.21", sample_vulns)
        cache.set("osv", "express", "4.18.2", [])

        assert cache.clear() == 2
        assert cache.get("osv", "lodash", "4.17.21") is None

    def test_clear_expired(self, tmp_path, sample_vulns):
        cache = ResponseCache(db_path=tmp_path / "expire_test.db", ttl=1)
        cache.set("osv", "lodash", "4.17.21", sample_vulns)
        time.sleep(1.1)
        cache.set("osv", "express", "4.18.2", [])

        assert cache.clear_expired() == 1
        assert cache.get("osv", "express", "4.18.2") == []

    def test_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "cache.db"
        ResponseCache(db_path=db_path)
        assert db_path.exists()
