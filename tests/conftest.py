from __future__ import annotations

import os
import threading

import pytest

from dove.builder import PACKAGE_THEME_DIR, BuildOptions
from dove.config import parse_config


class CountingFetcher:
    def __init__(self, content_type="image/png", body=b"\x89PNG", fail=()):
        self.content_type = content_type
        self.body = body
        self.fail = set(fail)
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, url):
        with self._lock:
            self.calls.append(url)
        if url in self.fail:
            raise ConnectionError(f"refused: {url}")
        return self.content_type, self.body


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("DOVE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def fetcher():
    return CountingFetcher()


@pytest.fixture
def make_config():
    def _make(groups, **site):
        site.setdefault("title", "Nav")
        return parse_config({"site": site, "groups": groups})

    return _make


@pytest.fixture
def options(tmp_path):
    return BuildOptions(out_dir=tmp_path / "dist", theme_dir=PACKAGE_THEME_DIR, build_version="test")
