"""Tests for FastAPI web API.

Uses TestClient to test all endpoints against an in-memory index.
"""

import json

import pytest
from fastapi.testclient import TestClient

from bundle_cache import __version__
from bundle_cache.index.manager import IndexManager
from bundle_cache.index.models import IndexEntry
from web.app import create_app


def make_entry(name, version, size=100, uploaded_at="2024-01-01T00:00:00Z"):
    """Build an index entry."""
    return IndexEntry(
        name=name,
        version=version,
        storage_id=f"id-{version}",
        file_name=f"{name.lstrip('@').replace('/', '-')}@{version}.js",
        url=f"https://storage.example/files/id-{version}/view",
        size_bytes=size,
        uploaded_at=uploaded_at,
    )


@pytest.fixture
def index(tmp_path):
    """Index with a few cached packages."""
    manager = IndexManager(tmp_path / "index.json")
    manager.commit(make_entry("axios", "1.6.0", size=14000))
    manager.commit(make_entry("lodash", "4.17.20", size=1000, uploaded_at="2024-01-01T00:00:00Z"))
    manager.commit(make_entry("lodash", "4.17.21", size=2000, uploaded_at="2024-06-01T00:00:00Z"))
    manager.commit(make_entry("@react-navigation/native", "7.1.0", size=500))
    return manager


@pytest.fixture
def client(index):
    """Test client serving the fixture index."""
    return TestClient(create_app(index=index))


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health(self, client):
        """Health endpoint should return ok with version."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_service_info(self, client):
        """Root endpoint should describe the served index."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Bundle Cache API"
        assert data["indexEntries"] == 7

    def test_cors_header(self, client):
        """Responses should allow any origin."""
        response = client.get("/health", headers={"Origin": "https://snack.example"})
        assert response.headers["access-control-allow-origin"] == "*"


class TestBundleEndpoints:
    """Test bundle lookup endpoints."""

    def test_latest(self, client):
        """A bare name should return the latest cached version."""
        response = client.get("/bundle/axios")
        assert response.status_code == 200
        data = response.json()
        assert data == {
            "name": "axios",
            "version": "1.6.0",
            "url": "https://storage.example/files/id-1.6.0/view",
            "storageId": "id-1.6.0",
            "fileName": "axios@1.6.0.js",
            "size": 14000,
            "cached": True,
        }

    def test_exact_version(self, client):
        """name@version should return that version."""
        response = client.get("/bundle/lodash@4.17.20")
        assert response.status_code == 200
        assert response.json()["size"] == 1000

    def test_latest_follows_last_commit(self, client):
        """The bare name should resolve to the last committed version."""
        assert client.get("/bundle/lodash").json()["version"] == "4.17.21"

    def test_scoped(self, client):
        """Scoped names should work with and without a version."""
        latest = client.get("/bundle/@react-navigation/native")
        exact = client.get("/bundle/@react-navigation/native@7.1.0")
        assert latest.status_code == 200
        assert exact.status_code == 200
        assert latest.json()["name"] == "@react-navigation/native"
        assert exact.json()["version"] == "7.1.0"

    def test_not_found(self, client):
        """An uncached package should be a 404 with cached false."""
        response = client.get("/bundle/left-pad")
        assert response.status_code == 404
        assert response.json() == {
            "name": "left-pad",
            "version": None,
            "cached": False,
            "error": "Package not found",
        }

    def test_uncached_version(self, client):
        """An uncached version of a cached package should be a 404."""
        response = client.get("/bundle/lodash@4.17.15")
        assert response.status_code == 404
        assert response.json()["version"] == "4.17.15"

    def test_batch(self, client):
        """Batch lookup should answer every key."""
        response = client.post(
            "/bundle/batch",
            json={"packages": ["axios", "ghost-pkg", "lodash@4.17.20"]},
        )
        assert response.status_code == 200
        packages = response.json()["packages"]
        assert list(packages) == ["axios", "ghost-pkg", "lodash@4.17.20"]
        assert packages["axios"]["version"] == "1.6.0"
        assert packages["axios"]["cached"] is True
        assert packages["ghost-pkg"] == {"cached": False}
        assert packages["lodash@4.17.20"]["size"] == 1000

    def test_batch_duplicates(self, client):
        """Duplicate keys should appear once."""
        response = client.post("/bundle/batch", json={"packages": ["axios", "axios"]})
        assert list(response.json()["packages"]) == ["axios"]

    def test_batch_empty(self, client):
        """An empty list should give an empty mapping."""
        response = client.post("/bundle/batch", json={"packages": []})
        assert response.status_code == 200
        assert response.json() == {"packages": {}}

    @pytest.mark.parametrize(
        "payload",
        [{}, {"packages": "axios"}, {"packages": [1, 2]}, ["axios"]],
    )
    def test_batch_invalid(self, client, payload):
        """Malformed payloads should be rejected with 400."""
        response = client.post("/bundle/batch", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_request"

    def test_batch_no_body(self, client):
        """A missing body should be rejected with 400."""
        response = client.post("/bundle/batch")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_request"

    def test_batch_malformed_json(self, client):
        """A body that is not JSON should be rejected with 400."""
        response = client.post(
            "/bundle/batch",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_request"


class TestVersionsEndpoints:
    """Test version listing endpoints."""

    def test_versions(self, client):
        """Versions should be listed newest upload first."""
        response = client.get("/versions/lodash")
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "lodash"
        assert data["count"] == 2
        assert [v["version"] for v in data["versions"]] == ["4.17.21", "4.17.20"]
        assert data["versions"][0]["uploadedAt"] == "2024-06-01T00:00:00Z"

    def test_scoped_versions(self, client):
        """Scoped names should be accepted."""
        response = client.get("/versions/@react-navigation/native")
        assert response.json()["count"] == 1

    def test_unknown_package(self, client):
        """Unknown packages should give an empty list, not an error."""
        response = client.get("/versions/left-pad")
        assert response.status_code == 200
        assert response.json() == {"name": "left-pad", "versions": [], "count": 0}


class TestStatsEndpoint:
    """Test stats endpoint."""

    def test_stats(self, client):
        """Stats should count versioned entries only."""
        response = client.get("/stats")
        assert response.status_code == 200
        assert response.json() == {
            "uniquePackages": 3,
            "totalVersions": 4,
            "totalSize": 17500,
        }

    def test_stats_empty(self, tmp_path):
        """An empty index should report zeros."""
        client = TestClient(create_app(index=IndexManager(tmp_path / "index.json")))
        assert client.get("/stats").json() == {
            "uniquePackages": 0,
            "totalVersions": 0,
            "totalSize": 0,
        }


class TestReloadEndpoint:
    """Test index reload endpoint."""

    def test_reload_picks_up_snapshot(self, client, index):
        """Reload should serve what was persisted since startup."""
        index.persist()
        other = IndexManager(index.path)
        other.load()
        other.commit(make_entry("zod", "3.22.4"))
        other.persist()

        assert client.get("/bundle/zod").status_code == 404
        response = client.post("/reload")

        assert response.status_code == 200
        assert response.json() == {"success": True, "entries": 9}
        assert client.get("/bundle/zod").status_code == 200

    def test_reload_corrupt_snapshot(self, client, index):
        """A corrupt snapshot should empty the index and warn."""
        index.path.write_text("{broken")

        response = client.post("/reload")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["entries"] == 0
        assert data["code"] == "index_corrupt"
        assert "warning" in data
        assert client.get("/bundle/axios").status_code == 404

    def test_reload_missing_snapshot(self, client):
        """A missing snapshot should give an empty index without a warning."""
        response = client.post("/reload")
        assert response.json() == {"success": True, "entries": 0}


class TestStartup:
    """Test index loading at application startup."""

    def test_lifespan_loads_index(self, tmp_path, monkeypatch):
        """The app should serve the snapshot found at startup."""
        monkeypatch.setenv("BUNDLE_CACHE_DATA_DIR", str(tmp_path))
        manager = IndexManager(tmp_path / "index.json")
        manager.commit(make_entry("axios", "1.6.0"))
        manager.persist()

        with TestClient(create_app()) as client:
            assert client.get("/bundle/axios").status_code == 200

    def test_lifespan_corrupt_index(self, tmp_path, monkeypatch):
        """A corrupt snapshot at startup should serve an empty index."""
        monkeypatch.setenv("BUNDLE_CACHE_DATA_DIR", str(tmp_path))
        (tmp_path / "index.json").write_text(json.dumps(["not", "an", "object"]))

        with TestClient(create_app()) as client:
            assert client.get("/stats").json()["totalVersions"] == 0
            assert client.get("/health").status_code == 200
