"""Tests for the npm registry client (using mocked HTTP responses)."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from dephealth_shared.types.models import Manifest, OutdatedInfo

from dephealth.cache import ResponseCache
from dephealth.errors import ProviderError
from dephealth.registry.client import NpmRegistryClient


REACT_PACKUMENT = {
    "name": "react",
    "dist-tags": {"latest": "19.0.0", "next": "19.1.0-canary"},
    "versions": {
        "18.2.0": {},
        "18.3.0": {},
        "18.3.1": {},
        "19.0.0": {},
        "19.1.0-canary": {},
    },
}

LODASH_PACKUMENT = {
    "name": "lodash",
    "dist-tags": {"latest": "4.17.21"},
    "versions": {"4.17.19": {}, "4.17.20": {}, "4.17.21": {}},
}


def _response(status: int, data=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.json.return_value = data
    if status >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status}",
            request=httpx.Request("GET", "https://registry.npmjs.org/x"),
            response=httpx.Response(status),
        )
    else:
        response.raise_for_status = MagicMock()
    return response


def _route(packuments: dict):
    def get(url):
        name = url.rsplit("/", 1)[-1]
        if name in packuments:
            return _response(200, packuments[name])
        return _response(404, {"error": "Not found"})
    return get


class TestFetchOutdated:
    @patch("dephealth.registry.client.httpx.Client")
    def test_outdated_packages(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.get.side_effect = _route({"react": REACT_PACKUMENT, "lodash": LODASH_PACKUMENT})
        mock_client_cls.return_value = mock_client

        manifest = Manifest(
            dependencies={"react": "^18.2.0"},
            dev_dependencies={"lodash": "~4.17.21"},
        )
        with NpmRegistryClient() as client:
            outdated = client.fetch_outdated(manifest)

        # lodash is already at latest
        assert outdated == {
            "react": OutdatedInfo(current="18.2.0", latest="19.0.0", wanted="18.3.1"),
        }

    @patch("dephealth.registry.client.httpx.Client")
    def test_non_registry_ranges_skipped(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client_cls.return_value = mock_client

        manifest = Manifest(dependencies={
            "left-pad": "git+https://github.com/stevemao/left-pad.git",
            "local": "file:../local",
            "any": "*",
            "canary": "next",
        })
        assert NpmRegistryClient().fetch_outdated(manifest) == {}
        mock_client.get.assert_not_called()

    @patch("dephealth.registry.client.httpx.Client")
    def test_unknown_package_skipped(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.get.side_effect = _route({})
        mock_client_cls.return_value = mock_client

        manifest = Manifest(dependencies={"does-not-exist": "^1.0.0"})
        assert NpmRegistryClient().fetch_outdated(manifest) == {}

    @patch("dephealth.registry.client.httpx.Client")
    def test_server_error_raises(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.get.return_value = _response(503)
        mock_client_cls.return_value = mock_client

        with pytest.raises(ProviderError, match="npm-registry"):
            NpmRegistryClient().fetch_outdated(Manifest(dependencies={"react": "^18.2.0"}))

    @patch("dephealth.registry.client.httpx.Client")
    def test_network_error_raises(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.get.side_effect = httpx.ConnectError("Connection refused")
        mock_client_cls.return_value = mock_client

        with pytest.raises(ProviderError) as exc_info:
            NpmRegistryClient().fetch_outdated(Manifest(dependencies={"react": "^18.2.0"}))
        assert exc_info.value.provider == "npm-registry"


class TestGetPackument:
    @patch("dephealth.registry.client.httpx.Client")
    def test_scoped_package_url(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.get.return_value = _response(200, {"dist-tags": {"latest": "7.0.0"}, "versions": {}})
        mock_client_cls.return_value = mock_client

        NpmRegistryClient(base_url="https://registry.example.com/").get_packument("@babel/core")

        mock_client.get.assert_called_once_with("https://registry.example.com/@babel%2Fcore")

    @patch("dephealth.registry.client.httpx.Client")
    def test_registry_url_from_environment(self, mock_client_cls, monkeypatch):
        monkeypatch.setenv("NPM_REGISTRY_URL", "https://mirror.example.com")
        assert NpmRegistryClient().base_url == "https://mirror.example.com"

    @patch("dephealth.registry.client.httpx.Client")
    def test_packument_cached(self, mock_client_cls, tmp_path):
        mock_client = MagicMock()
        mock_client.get.return_value = _response(200, REACT_PACKUMENT)
        mock_client_cls.return_value = mock_client

        cache = ResponseCache(db_path=tmp_path / "test.db", ttl=3600)
        client = NpmRegistryClient(cache=cache)

        first = client.get_packument("react")
        second = client.get_packument("react")

        assert first == second
        assert first["versions"] == ["18.2.0", "18.3.0", "18.3.1", "19.0.0", "19.1.0-canary"]
        assert mock_client.get.call_count == 1

    def test_html_body_raises_provider_error(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>gateway</html>")
        )
        with NpmRegistryClient(transport=transport) as client:
            with pytest.raises(ProviderError, match="invalid JSON"):
                client.get_packument("react")

    def test_non_object_body_raises_provider_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["react"]))
        with NpmRegistryClient(transport=transport) as client:
            with pytest.raises(ProviderError, match="not a JSON object"):
                client.get_packument("react")
