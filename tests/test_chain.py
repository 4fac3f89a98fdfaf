import base64

import pytest
import requests

from intelliroad import chain, config
from intelliroad.anchor_client import BOX_PREFIX
from intelliroad.errors import NotConfiguredError, TransientNetworkError

from conftest import REFERENCE_DIGEST


class FakeResponse:

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body or {}

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


@pytest.fixture(autouse=True)
def app_id(monkeypatch):
    monkeypatch.setattr(config, "APP_ID", 1234)


class TestFetchAnchor:

    def test_present(self, monkeypatch):
        calls = []

        def fake_get(url, **kwargs):
            calls.append((url, kwargs["params"]))
            return FakeResponse(200, {"name": "x", "value": "gA=="})

        monkeypatch.setattr(chain.requests, "get", fake_get)
        assert chain.fetch_anchor_from_chain(REFERENCE_DIGEST) is True

        url, params = calls[0]
        assert url.endswith("/v2/applications/1234/box")
        expected = BOX_PREFIX + bytes.fromhex(REFERENCE_DIGEST[2:])
        assert params["name"] == "b64:" + base64.b64encode(expected).decode()

    def test_absent(self, monkeypatch):
        monkeypatch.setattr(chain.requests, "get", lambda url, **kw: FakeResponse(404))
        assert chain.fetch_anchor_from_chain(REFERENCE_DIGEST) is False

    def test_network_failure(self, monkeypatch):
        def fake_get(url, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(chain.requests, "get", fake_get)
        with pytest.raises(TransientNetworkError):
            chain.fetch_anchor_from_chain(REFERENCE_DIGEST)

    def test_server_error_is_transient(self, monkeypatch):
        monkeypatch.setattr(chain.requests, "get", lambda url, **kw: FakeResponse(502))
        with pytest.raises(TransientNetworkError):
            chain.fetch_anchor_from_chain(REFERENCE_DIGEST)

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(config, "APP_ID", 0)
        with pytest.raises(NotConfiguredError):
            chain.fetch_anchor_from_chain(REFERENCE_DIGEST)


class TestFetchRegistry:

    def test_lists_anchored_digests(self, monkeypatch):
        raw = bytes.fromhex(REFERENCE_DIGEST[2:])
        boxes = [
            {"name": base64.b64encode(BOX_PREFIX + raw).decode()},
            {"name": base64.b64encode(b"something_else").decode()},
        ]
        monkeypatch.setattr(chain.requests, "get", lambda url, **kw: FakeResponse(200, {"boxes": boxes}))
        assert chain.fetch_registry_from_chain() == [REFERENCE_DIGEST]

    def test_empty_registry(self, monkeypatch):
        monkeypatch.setattr(chain.requests, "get", lambda url, **kw: FakeResponse(200, {"boxes": []}))
        assert chain.fetch_registry_from_chain() == []
