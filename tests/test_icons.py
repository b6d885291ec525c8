import threading

import pytest

from dove.cache import fnv1a64, icon_filename, icon_stem
from dove.config import USER_AGENT
from dove.icons import (
    HttpIconFetcher,
    apply_icon_map,
    chunked,
    collect_icon_targets,
    download_icons_concurrent,
    ext_from_headers_or_url,
    normalize_remote_icon,
    resolve_icons,
)

from .conftest import CountingFetcher


def test_fnv1a64_reference_values():
    assert fnv1a64(b"") == 0xCBF29CE484222325
    assert fnv1a64(b"a") == 0xAF63DC4C8601EC8C


def test_icon_filename_is_stable():
    url = "https://example.com/favicon.ico"
    assert icon_stem(url) == f"i_{fnv1a64(url.encode()):016x}"
    assert icon_filename(url, "ico") == icon_filename(url, "ico")
    assert len(icon_stem(url)) == 18


@pytest.mark.parametrize(
    "ref, expected",
    [
        ("https://a.test/i.png", ("https://a.test/i.png", "https://a.test/i.png")),
        ("  HTTP://a.test/i.png ", ("HTTP://a.test/i.png", "HTTP://a.test/i.png")),
        ("//cdn.test/i.svg", ("//cdn.test/i.svg", "https://cdn.test/i.svg")),
        ("assets/logo.png", None),
        ("data:image/png;base64,AAAA", None),
        ("   ", None),
    ],
)
def test_normalize_remote_icon(ref, expected):
    assert normalize_remote_icon(ref) == expected


@pytest.mark.parametrize(
    "content_type, url, expected",
    [
        ("image/png; charset=binary", "https://a.test/x", "png"),
        ("IMAGE/SVG+XML", "https://a.test/x.png", "svg"),
        ("", "https://a.test/favicon.ico?v=2", "ico"),
        ("application/octet-stream", "https://a.test/logo.JPEG", "jpg"),
        ("text/html", "https://a.test/", "bin"),
        ("", "https://a.test/file.exe", "bin"),
    ],
)
def test_ext_from_headers_or_url(content_type, url, expected):
    assert ext_from_headers_or_url(content_type, url) == expected


def test_chunked_splits_contiguously():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2, 3], [4, 5]]
    assert chunked([1, 2], 8) == [[1], [2]]


def test_collect_targets_engines_first_and_deduplicated(make_config):
    config = make_config(
        [
            {
                "name": "G",
                "links": [
                    {"name": "A", "url": "https://a.test", "icon": "https://a.test/i.png"},
                    {"name": "B", "url": "https://b.test", "icon": "https://a.test/i.png"},
                    {"name": "C", "url": "https://c.test", "icon": "assets/local.png"},
                    {"name": "D", "url": "https://d.test", "icon": "//d.test/i.svg"},
                ],
            }
        ],
        search_engines=[{"name": "S", "template": "https://s.test/?q={q}", "icon": "https://s.test/f.ico"}],
    )
    assert collect_icon_targets(config) == [
        ("https://s.test/f.ico", "https://s.test/f.ico"),
        ("https://a.test/i.png", "https://a.test/i.png"),
        ("//d.test/i.svg", "https://d.test/i.svg"),
    ]


def test_download_fetches_every_target_once(tmp_path):
    targets = [(f"https://h{i}.test/i.png", f"https://h{i}.test/i.png") for i in range(5)]
    fetcher = CountingFetcher()
    icon_map = download_icons_concurrent(targets, tmp_path, "assets/icons", 3, fetcher)

    assert sorted(fetcher.calls) == sorted(url for url, _ in targets)
    assert set(icon_map) == {url for url, _ in targets}
    for url, _ in targets:
        assert icon_map[url] == f"assets/icons/{icon_filename(url, 'png')}"
        assert (tmp_path / icon_filename(url, "png")).read_bytes() == fetcher.body


def test_download_reuses_cached_files(tmp_path):
    targets = [("https://a.test/i.svg", "https://a.test/i.svg")]
    first = CountingFetcher(content_type="image/svg+xml", body=b"<svg/>")
    download_icons_concurrent(targets, tmp_path, "icons", 2, first)

    second = CountingFetcher(content_type="image/png", body=b"changed")
    icon_map = download_icons_concurrent(targets, tmp_path, "icons", 2, second)

    assert second.calls == []
    assert icon_map == {"https://a.test/i.svg": f"icons/{icon_filename('https://a.test/i.svg', 'svg')}"}
    assert (tmp_path / icon_filename("https://a.test/i.svg", "svg")).read_bytes() == b"<svg/>"


def test_download_failure_is_reported_not_raised(tmp_path, capsys):
    targets = [("https://ok.test/i.png", "https://ok.test/i.png"), ("https://bad.test/i.png", "https://bad.test/i.png")]
    fetcher = CountingFetcher(fail={"https://bad.test/i.png"})
    icon_map = download_icons_concurrent(targets, tmp_path, "icons", 4, fetcher)

    assert list(icon_map) == ["https://ok.test/i.png"]
    assert "Icon download failed: https://bad.test/i.png" in capsys.readouterr().err


def test_apply_icon_map_leaves_input_untouched(make_config):
    config = make_config([{"name": "G", "links": [{"name": "A", "url": "https://a.test", "icon": " https://a.test/i.png "}]}])
    resolved = apply_icon_map(config, {"https://a.test/i.png": "assets/icons/i_x.png"})
    assert resolved.groups[0].links[0].icon == "assets/icons/i_x.png"
    assert config.groups[0].links[0].icon == " https://a.test/i.png "


def test_resolve_icons_without_remote_targets(tmp_path, make_config, capsys):
    config = make_config([{"name": "G", "links": [{"name": "A", "url": "https://a.test", "icon": "assets/a.png"}]}])
    fetcher = CountingFetcher()
    resolved, icon_map = resolve_icons(config, tmp_path / "icons", "icons", 4, fetcher)
    assert icon_map == {}
    assert fetcher.calls == []
    assert resolved.groups[0].links[0].icon == "assets/a.png"
    assert "No remote icons to download." in capsys.readouterr().out


class FakeResponse:
    headers = {"Content-Type": "image/png"}
    content = b"png"

    def raise_for_status(self):
        pass


class RecordingSession:
    instances = []
    lock = threading.Lock()
    barrier = threading.Barrier(4, timeout=5)

    def __init__(self):
        self.headers = {}
        self.threads = set()
        self.closed = False
        with self.lock:
            self.instances.append(self)

    def get(self, url, timeout=None):
        self.threads.add(threading.get_ident())
        self.barrier.wait()
        return FakeResponse()

    def close(self):
        self.closed = True


@pytest.fixture
def recording_sessions(monkeypatch):
    RecordingSession.instances = []
    RecordingSession.barrier = threading.Barrier(4, timeout=5)
    monkeypatch.setattr("dove.icons.requests.Session", RecordingSession)
    return RecordingSession.instances


def test_http_fetcher_uses_one_session_per_thread(tmp_path, recording_sessions):
    targets = [(f"https://h{i}.test/i.png", f"https://h{i}.test/i.png") for i in range(4)]
    fetcher = HttpIconFetcher()

    icon_map = download_icons_concurrent(targets, tmp_path, "assets/icons", 4, fetcher)

    assert len(icon_map) == 4
    assert len(recording_sessions) == 4
    assert all(len(session.threads) == 1 for session in recording_sessions)
    assert len(set().union(*(session.threads for session in recording_sessions))) == 4
    assert all(session.headers["User-Agent"] == USER_AGENT for session in recording_sessions)
    assert not any(session.closed for session in recording_sessions)
    fetcher.close()
    assert all(session.closed for session in recording_sessions)


def test_resolve_icons_closes_default_fetcher_sessions(tmp_path, make_config, recording_sessions):
    config = make_config(
        [{"name": "G", "links": [{"name": f"L{i}", "url": "https://x.test", "icon": f"https://h{i}.test/i.png"}
                                 for i in range(4)]}]
    )
    _, icon_map = resolve_icons(config, tmp_path / "icons", "assets/icons", 4)
    assert len(icon_map) == 4
    assert recording_sessions and all(session.closed for session in recording_sessions)
