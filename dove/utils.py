from __future__ import annotations

import datetime as dt
import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Optional
from urllib.parse import quote_plus, unquote_plus, urlsplit, urlunsplit

if TYPE_CHECKING:
    from .config import UtmParams

TRUTHY = {"1", "true", "yes", "y", "on"}
UTM_FIELDS = ("source", "medium", "campaign", "term", "content")


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    return False


def parse_int(value: object, default: Optional[int]) -> Optional[int]:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def first_present(*values: object) -> object:
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def env_str(key: str) -> Optional[str]:
    value = os.environ.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_path(key: str) -> Optional[Path]:
    value = env_str(key)
    return Path(value) if value else None


def env_int(key: str) -> Optional[int]:
    value = env_str(key)
    return None if value is None else parse_int(value, None)


def env_bool(key: str) -> Optional[bool]:
    value = env_str(key)
    return None if value is None else parse_bool(value)


def safe_subpath(value: str) -> Optional[Path]:
    parts = [seg.strip() for seg in value.split("/")]
    parts = [seg for seg in parts if seg and seg not in {".", ".."}]
    if not parts:
        return None
    return Path(*parts)


def url_join(base_url: Optional[str], base_path: Optional[str], sub: str) -> str:
    parts = []
    if base_url:
        parts.append(base_url.rstrip("/"))
    if base_path and base_path.strip("/"):
        parts.append(base_path.strip("/"))
    parts.append(sub.strip("/"))
    return "/".join(part for part in parts if part)


def site_href(base_path: Optional[str], sub: str) -> str:
    path = PurePosixPath("/")
    if base_path and base_path.strip("/"):
        path = path / base_path.strip("/")
    href = str(path / sub.strip("/"))
    return href + "/" if sub.endswith("/") else href


def hostname_from_url(url: str) -> str:
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return ""
    return host or ""


def apply_utm(url: str, utm: Optional[UtmParams]) -> str:
    if utm is None or utm.is_empty():
        return url
    pairs = []
    for field in UTM_FIELDS:
        value = getattr(utm, field, None)
        if value is not None and str(value).strip():
            pairs.append((f"utm_{field}", str(value).strip()))
    if not pairs:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    keys = {key for key, _ in pairs}
    kept = []
    for segment in parts.query.split("&"):
        if not segment:
            continue
        name = unquote_plus(segment.split("=", 1)[0])
        if name in keys:
            continue
        kept.append(segment)
    kept.extend(f"{key}={quote_plus(value)}" for key, value in pairs)
    path = parts.path or "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "&".join(kept), parts.fragment))


def iso_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")
