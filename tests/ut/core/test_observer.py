"""日志观察者测试"""

from __future__ import annotations

import logging

import pytest

from pkgshelf.core.models import Dependency, PathLocation, RemotePackage, ScmLocation
from pkgshelf.core.observer import LoggingObserver


class _Source:
    uri = "https://catalog.example.com"


class TestLoggingObserver:
    def test_fetch_reports_location_kind(self, caplog: pytest.LogCaptureFixture) -> None:
        obs = LoggingObserver()
        with caplog.at_level(logging.INFO, logger="pkgshelf.install"):
            obs.on_fetch(Dependency("foo", location=ScmLocation("https://example.com/foo.git")))
            obs.on_fetch(Dependency("bar", location=PathLocation("../bar")))
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0].startswith("拉取 'foo' (scm: ")
        assert messages[1].startswith("拉取 'bar' (path: ")

    def test_install_and_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        obs = LoggingObserver()
        with caplog.at_level(logging.INFO, logger="pkgshelf.install"):
            obs.on_install(_Source(), RemotePackage("foo", "1.2.0", {}))  # type: ignore[arg-type]
            obs.on_warning("目录源不可达")
        assert caplog.records[0].getMessage() == "安装 foo (1.2.0) 来自 https://catalog.example.com"
        assert caplog.records[1].levelno == logging.WARNING
