"""远程目录源测试（http_get 以 monkeypatch 替换）"""

from __future__ import annotations

import json
import urllib.error

import pytest

import pkgshelf.core.sources as srcmod
from pkgshelf.core.exceptions import CatalogError, MaterializeError, ValidationError
from pkgshelf.core.sources import CatalogSource

UNIVERSE = {
    "foo": {
        "1.0.0": {"dependencies": {"bar": ">= 0.1"}, "download_url": "https://dl.example.com/foo-1.0.0.tar.gz"},
        "1.2.0": {"dependencies": {}, "download_url": "https://dl.example.com/foo-1.2.0.tar.gz"},
    },
    "bar": {"0.1.0": None},
}


def _serve(monkeypatch: pytest.MonkeyPatch, payload: object = None, exc: Exception | None = None) -> list[str]:
    calls: list[str] = []

    def fake_get(url: str, *, timeout: float, context: str = "") -> bytes:
        calls.append(url)
        if exc is not None:
            raise exc
        if isinstance(payload, bytes):
            return payload
        return json.dumps(payload).encode("utf-8")

    monkeypatch.setattr(srcmod, "http_get", fake_get)
    return calls


class TestCatalogSource:
    def test_build_universe(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = _serve(monkeypatch, UNIVERSE)
        src = CatalogSource("https://catalog.example.com/")
        src.build_universe()

        assert calls == ["https://catalog.example.com/universe"]
        assert sorted(r.version for r in src.versions("foo")) == ["1.0.0", "1.2.0"]
        assert src.has("bar", "0.1.0")
        assert not src.has("bar", "0.2.0")
        assert src.versions("missing") == []

        pkg = src.package("foo", "1.0.0")
        assert pkg.dependencies == {"bar": ">= 0.1"}
        assert pkg.download_url.endswith("foo-1.0.0.tar.gz")
        assert pkg.source_uri == "https://catalog.example.com"

    def test_unknown_package(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _serve(monkeypatch, UNIVERSE)
        src = CatalogSource("https://catalog.example.com")
        src.build_universe()
        with pytest.raises(MaterializeError):
            src.package("foo", "9.9.9")

    def test_rejects_non_http(self) -> None:
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            CatalogSource("file:///srv/catalog")

    def test_http_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        err = urllib.error.HTTPError("https://catalog.example.com/universe", 503, "down", None, None)
        _serve(monkeypatch, exc=err)
        with pytest.raises(CatalogError, match="HTTP 503"):
            CatalogSource("https://catalog.example.com").build_universe()

    def test_unreachable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _serve(monkeypatch, exc=urllib.error.URLError("connection refused"))
        with pytest.raises(CatalogError, match="不可达"):
            CatalogSource("https://catalog.example.com").build_universe()

    def test_bad_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _serve(monkeypatch, b"<html>oops</html>")
        with pytest.raises(CatalogError, match="JSON"):
            CatalogSource("https://catalog.example.com").build_universe()

    @pytest.mark.parametrize("payload", [
        ["foo"],
        {"foo": ["1.0"]},
        {"foo": {"not-a-version": {}}},
        {"foo": {"1.0": {"dependencies": ["bar"]}}},
    ])
    def test_bad_structure(self, monkeypatch: pytest.MonkeyPatch, payload: object) -> None:
        _serve(monkeypatch, payload)
        with pytest.raises(CatalogError):
            CatalogSource("https://catalog.example.com").build_universe()

    def test_bad_dependency_constraint(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _serve(monkeypatch, {"foo": {"2.0.0": {"dependencies": {"bar": "not a constraint!!"}}}})
        src = CatalogSource("https://catalog.example.com")
        with pytest.raises(CatalogError, match="bar 的约束无效"):
            src.build_universe()
        assert src.versions("foo") == []

    def test_failure_keeps_previous_universe(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _serve(monkeypatch, UNIVERSE)
        src = CatalogSource("https://catalog.example.com")
        src.build_universe()

        _serve(monkeypatch, exc=urllib.error.URLError("timeout"))
        with pytest.raises(CatalogError):
            src.build_universe()
        assert src.has("foo", "1.2.0")
