from __future__ import annotations

import copy
import queue
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath
from typing import Callable, Optional
from urllib.parse import urlsplit

import requests

from .cache import find_cached, icon_filename, write_if_absent
from .config import USER_AGENT, Config

Fetcher = Callable[[str], tuple[str, bytes]]

CONTENT_TYPE_EXT = {
    "image/svg+xml": "svg",
    "image/png": "png",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/avif": "avif",
}
PATH_EXT = {
    "svg": "svg",
    "png": "png",
    "ico": "ico",
    "jpg": "jpg",
    "jpeg": "jpg",
    "gif": "gif",
    "webp": "webp",
    "avif": "avif",
}
FETCH_TIMEOUT = 15


class HttpIconFetcher:
    # one requests.Session per worker thread; close() releases all of them
    def __init__(self, timeout: float = FETCH_TIMEOUT) -> None:
        self.timeout = timeout
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT})
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __call__(self, url: str) -> tuple[str, bytes]:
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.headers.get("Content-Type", ""), resp.content


def normalize_remote_icon(ref: str) -> Optional[tuple[str, str]]:
    value = ref.strip()
    if not value:
        return None
    lower = value.lower()
    if lower.startswith(("http://", "https://")):
        return value, value
    if lower.startswith("//"):
        return value, f"https:{value}"
    return None


def collect_icon_targets(config: Config) -> list[tuple[str, str]]:
    refs = [engine.icon for engine in config.site.search_engines]
    refs.extend(link.icon for group in config.groups for link in group.links)
    targets = []
    seen = set()
    for ref in refs:
        if not ref:
            continue
        normalized = normalize_remote_icon(ref)
        if normalized is None or normalized[0] in seen:
            continue
        seen.add(normalized[0])
        targets.append(normalized)
    return targets


def ext_from_headers_or_url(content_type: str, url: str) -> str:
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type in CONTENT_TYPE_EXT:
        return CONTENT_TYPE_EXT[media_type]
    try:
        segment = PurePosixPath(urlsplit(url).path).name
    except ValueError:
        return "bin"
    if "." not in segment:
        return "bin"
    return PATH_EXT.get(segment.rsplit(".", 1)[1].lower(), "bin")


def fetch_icon(fetch_url: str, dest_dir: Path, fetcher: Fetcher) -> Optional[str]:
    cached = find_cached(dest_dir, fetch_url)
    if cached is not None:
        return cached.name
    try:
        content_type, body = fetcher(fetch_url)
    except Exception as exc:
        print(f"Icon request failed: {fetch_url} -> {exc}", file=sys.stderr)
        return None
    fname = icon_filename(fetch_url, ext_from_headers_or_url(content_type or "", fetch_url))
    try:
        write_if_absent(dest_dir / fname, body)
    except OSError as exc:
        print(f"Icon write failed: {dest_dir / fname} -> {exc}", file=sys.stderr)
        return None
    return fname


def chunked(items: list, workers: int) -> list[list]:
    size = -(-len(items) // workers)
    return [items[start : start + size] for start in range(0, len(items), size)]


def download_icons_concurrent(
    targets: list[tuple[str, str]],
    dest_dir: Path,
    rel_dir: str,
    threads: int,
    fetcher: Fetcher,
) -> dict[str, str]:
    icon_map: dict[str, str] = {}
    if not targets:
        return icon_map
    rel = rel_dir.strip("/")
    results: queue.Queue = queue.Queue()

    def work(chunk: list[tuple[str, str]]) -> None:
        for original, fetch_url in chunk:
            try:
                fname = fetch_icon(fetch_url, dest_dir, fetcher)
            except Exception as exc:
                print(f"Icon download crashed: {fetch_url} -> {exc}", file=sys.stderr)
                fname = None
            results.put((original, fname))

    workers = max(1, min(threads, len(targets)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        for chunk in chunked(targets, workers):
            executor.submit(work, chunk)
        for _ in range(len(targets)):
            original, fname = results.get()
            if fname is None:
                print(f"Icon download failed: {original}", file=sys.stderr)
                continue
            path_rel = f"{rel}/{fname}" if rel else fname
            print(f"Icon cached: {original} -> {path_rel}")
            icon_map[original] = path_rel
    return icon_map


def apply_icon_map(config: Config, icon_map: dict[str, str]) -> Config:
    resolved = copy.deepcopy(config)
    if not icon_map:
        return resolved
    for engine in resolved.site.search_engines:
        key = (engine.icon or "").strip()
        if key in icon_map:
            engine.icon = icon_map[key]
    for group in resolved.groups:
        for link in group.links:
            key = (link.icon or "").strip()
            if key in icon_map:
                link.icon = icon_map[key]
    return resolved


def resolve_icons(
    config: Config,
    dest_dir: Path,
    rel_dir: str,
    threads: int,
    fetcher: Optional[Fetcher] = None,
) -> tuple[Config, dict[str, str]]:
    targets = collect_icon_targets(config)
    if not targets:
        print("No remote icons to download.")
        return copy.deepcopy(config), {}
    print(f"Downloading icons: {len(targets)} -> {rel_dir} (threads {threads})")
    dest_dir.mkdir(parents=True, exist_ok=True)
    if fetcher is not None:
        icon_map = download_icons_concurrent(targets, dest_dir, rel_dir, threads, fetcher)
    else:
        http = HttpIconFetcher()
        try:
            icon_map = download_icons_concurrent(targets, dest_dir, rel_dir, threads, http)
        finally:
            http.close()
    return apply_icon_map(config, icon_map), icon_map
