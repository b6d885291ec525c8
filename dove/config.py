from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import requests
import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from . import __version__

AUTO_CONFIG_NAMES = ("dove.yaml", "dove.yml", "config.yaml", "config.yml")
USER_AGENT = f"dove/{__version__}"
HTTP_TIMEOUT = 20


class ConfigError(Exception):
    pass


class ColorScheme(str, Enum):
    AUTO = "auto"
    LIGHT = "light"
    DARK = "dark"


class Layout(str, Enum):
    DEFAULT = "default"
    NTP = "ntp"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChangeFreq(str, Enum):
    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


@dataclass
class UtmParams:
    source: Optional[str] = None
    medium: Optional[str] = None
    campaign: Optional[str] = None
    term: Optional[str] = None
    content: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.source, self.medium, self.campaign, self.term, self.content))


@dataclass
class RedirectSettings:
    delay_seconds: Optional[int] = None
    default_risk: Optional[RiskLevel] = None
    utm: Optional[UtmParams] = None


@dataclass
class SitemapSettings:
    default_changefreq: Optional[ChangeFreq] = None
    default_priority: Optional[float] = None
    lastmod: Optional[str] = None


@dataclass
class SearchEngine:
    name: str
    template: str
    icon: Optional[str] = None


@dataclass
class Link:
    name: str
    url: Optional[str] = None
    intro: str = ""
    details: Optional[str] = None
    slug: Optional[str] = None
    icon: Optional[str] = None
    intranet: Optional[str] = None
    risk: Optional[RiskLevel] = None
    utm: Optional[UtmParams] = None
    lastmod: Optional[str] = None
    changefreq: Optional[ChangeFreq] = None
    priority: Optional[float] = None


@dataclass
class Group:
    name: str
    links: list[Link] = field(default_factory=list)
    category: Optional[str] = None
    display: Optional[str] = None


@dataclass
class Site:
    title: str
    description: str = ""
    color_scheme: ColorScheme = ColorScheme.AUTO
    theme_dir: Optional[str] = None
    base_path: Optional[str] = None
    base_url: Optional[str] = None
    og_image: Optional[str] = None
    redirect: Optional[RedirectSettings] = None
    sitemap: Optional[SitemapSettings] = None
    search_engines: list[SearchEngine] = field(default_factory=list)
    default_engine: Optional[str] = None
    layout: Layout = Layout.DEFAULT
    baidu_tongji_id: Optional[str] = None
    google_analytics_id: Optional[str] = None
    category_display: dict[str, str] = field(default_factory=dict)
    default_category_display: Optional[str] = None


@dataclass
class Config:
    site: Site
    groups: list[Group] = field(default_factory=list)


def _pick(data: dict, key: str, *aliases: str) -> object:
    for name in (key, *aliases):
        if data.get(name) is not None:
            return data[name]
    return None


def _opt_str(data: dict, key: str, *aliases: str) -> Optional[str]:
    value = _pick(data, key, *aliases)
    return None if value is None else str(value)


def _mapping(value: object, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where} must be a mapping")
    return value


def _enum(enum_cls: type, value: object, where: str):
    if value is None:
        return None
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = "|".join(item.value for item in enum_cls)
        raise ConfigError(f"{where}: unknown value {value!r} (expected {allowed})") from None


def _float(value: object, where: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"{where} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{where} must be a number, got {value!r}") from None


def _int(value: object, where: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        raise ConfigError(f"{where} must be an integer, got {value!r}") from None


def parse_utm(value: object, where: str) -> Optional[UtmParams]:
    if value is None:
        return None
    data = _mapping(value, where)
    return UtmParams(
        source=_opt_str(data, "source"),
        medium=_opt_str(data, "medium"),
        campaign=_opt_str(data, "campaign"),
        term=_opt_str(data, "term"),
        content=_opt_str(data, "content"),
    )


def parse_link(data: object, where: str) -> Link:
    data = _mapping(data, where)
    name = _opt_str(data, "name")
    if not name:
        raise ConfigError(f"{where}.name is required")
    return Link(
        name=name,
        url=_opt_str(data, "url"),
        intro=_opt_str(data, "intro", "desc") or "",
        details=_opt_str(data, "details"),
        slug=_opt_str(data, "slug"),
        icon=_opt_str(data, "icon"),
        intranet=_opt_str(data, "intranet"),
        risk=_enum(RiskLevel, data.get("risk"), f"{where}.risk"),
        utm=parse_utm(data.get("utm"), f"{where}.utm"),
        lastmod=_opt_str(data, "lastmod"),
        changefreq=_enum(ChangeFreq, data.get("changefreq"), f"{where}.changefreq"),
        priority=_float(data.get("priority"), f"{where}.priority"),
    )


def parse_group(data: object, where: str) -> Group:
    data = _mapping(data, where)
    name = _opt_str(data, "name")
    if not name:
        raise ConfigError(f"{where}.name is required")
    links = data.get("links") or []
    if not isinstance(links, list):
        raise ConfigError(f"{where}.links must be a list")
    return Group(
        name=name,
        links=[parse_link(item, f"{where}.links[{idx}]") for idx, item in enumerate(links)],
        category=_opt_str(data, "category"),
        display=_opt_str(data, "display", "display_mode"),
    )


def parse_site(data: object) -> Site:
    data = _mapping(data, "site")
    title = _opt_str(data, "title")
    if title is None:
        raise ConfigError("site.title is required")

    redirect = None
    if data.get("redirect") is not None:
        raw = _mapping(data["redirect"], "site.redirect")
        redirect = RedirectSettings(
            delay_seconds=_int(raw.get("delay_seconds"), "site.redirect.delay_seconds"),
            default_risk=_enum(RiskLevel, raw.get("default_risk"), "site.redirect.default_risk"),
            utm=parse_utm(raw.get("utm"), "site.redirect.utm"),
        )

    sitemap = None
    if data.get("sitemap") is not None:
        raw = _mapping(data["sitemap"], "site.sitemap")
        sitemap = SitemapSettings(
            default_changefreq=_enum(ChangeFreq, raw.get("default_changefreq"), "site.sitemap.default_changefreq"),
            default_priority=_float(raw.get("default_priority"), "site.sitemap.default_priority"),
            lastmod=_opt_str(raw, "lastmod"),
        )

    engines = []
    raw_engines = data.get("search_engines") or []
    if not isinstance(raw_engines, list):
        raise ConfigError("site.search_engines must be a list")
    for idx, item in enumerate(raw_engines):
        item = _mapping(item, f"site.search_engines[{idx}]")
        name = _opt_str(item, "name")
        template = _opt_str(item, "template")
        if not name or not template:
            raise ConfigError(f"site.search_engines[{idx}] needs name and template")
        engines.append(SearchEngine(name=name, template=template, icon=_opt_str(item, "icon")))

    category_display = {
        str(key): str(value)
        for key, value in _mapping(data.get("category_display"), "site.category_display").items()
        if value is not None
    }

    return Site(
        title=title,
        description=_opt_str(data, "description") or "",
        color_scheme=_enum(ColorScheme, _pick(data, "color_scheme", "theme"), "site.color_scheme")
        or ColorScheme.AUTO,
        theme_dir=_opt_str(data, "theme_dir"),
        base_path=_opt_str(data, "base_path", "root_path"),
        base_url=_opt_str(data, "base_url"),
        og_image=_opt_str(data, "og_image"),
        redirect=redirect,
        sitemap=sitemap,
        search_engines=engines,
        default_engine=_opt_str(data, "default_engine"),
        layout=_enum(Layout, data.get("layout"), "site.layout") or Layout.DEFAULT,
        baidu_tongji_id=_opt_str(data, "baidu_tongji_id"),
        google_analytics_id=_opt_str(data, "google_analytics_id"),
        category_display=category_display,
        default_category_display=_opt_str(data, "default_category_display"),
    )


def parse_config(data: object) -> Config:
    data = _mapping(data, "config")
    if "site" not in data:
        raise ConfigError("config is missing the site section")
    groups = data.get("groups") or []
    if not isinstance(groups, list):
        raise ConfigError("groups must be a list")
    return Config(
        site=parse_site(data["site"]),
        groups=[parse_group(item, f"groups[{idx}]") for idx, item in enumerate(groups)],
    )


def parse_text(text: str, suffix: str, source: str) -> dict:
    suffix = suffix.lower()
    try:
        if suffix == ".toml":
            data = toml.loads(text)
        elif suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (toml.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid config in {source}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {source}")
    return data


def http_get_text(url: str, token: Optional[str] = None, auth_scheme: Optional[str] = None) -> str:
    headers = {"User-Agent": USER_AGENT}
    if token:
        scheme = (auth_scheme or "").strip() or "token"
        headers["Authorization"] = f"{scheme} {token}"
    try:
        resp = requests.get(url, headers=headers, timeout=HTTP_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ConfigError(f"HTTP request failed {url}: {exc}") from exc
    return resp.text


def gist_raw_url(
    gist_id: str,
    file_name: Optional[str] = None,
    token: Optional[str] = None,
    auth_scheme: Optional[str] = None,
) -> str:
    api = f"https://api.github.com/gists/{gist_id}"
    headers = {"User-Agent": USER_AGENT, "Accept": "application/vnd.github+json"}
    if token:
        scheme = (auth_scheme or "").strip() or "token"
        headers["Authorization"] = f"{scheme} {token}"
    try:
        resp = requests.get(api, headers=headers, timeout=HTTP_TIMEOUT)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise ConfigError(f"Failed to query Gist {gist_id}: {exc}") from exc
    files = payload.get("files") if isinstance(payload, dict) else None
    if not isinstance(files, dict) or not files:
        raise ConfigError(f"Gist {gist_id} has no files")
    if file_name:
        entry = files.get(file_name)
        if not isinstance(entry, dict) or not entry.get("raw_url"):
            raise ConfigError(f"File {file_name} not found in Gist {gist_id}")
        return entry["raw_url"]
    for entry in files.values():
        if isinstance(entry, dict) and entry.get("raw_url"):
            return entry["raw_url"]
    raise ConfigError(f"Gist {gist_id} has no usable raw_url")


def discover_config(root: Optional[Path] = None) -> Optional[Path]:
    root = root or Path.cwd()
    for name in AUTO_CONFIG_NAMES:
        path = root / name
        if path.is_file():
            return path
    return None


def read_local_config(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read config {path}: {exc}") from exc


@dataclass
class LoadedConfig:
    data: dict
    source: str


def load_config(
    input_path: Optional[Path] = None,
    input_url: Optional[str] = None,
    gist_id: Optional[str] = None,
    gist_file: Optional[str] = None,
    token: Optional[str] = None,
    auth_scheme: Optional[str] = None,
) -> LoadedConfig:
    if input_path is not None:
        if not input_path.is_file():
            raise ConfigError(f"Config file not found: {input_path}")
        text = read_local_config(input_path)
        return LoadedConfig(parse_text(text, input_path.suffix, str(input_path)), f"local file: {input_path}")
    if input_url:
        text = http_get_text(input_url, token, auth_scheme)
        return LoadedConfig(parse_text(text, ".yaml", input_url), f"remote URL: {input_url}")
    if gist_id:
        raw_url = gist_raw_url(gist_id, gist_file, token, auth_scheme)
        text = http_get_text(raw_url, token, auth_scheme)
        label = f"Gist {gist_id}" + (f" / {gist_file}" if gist_file else "")
        return LoadedConfig(parse_text(text, ".yaml", raw_url), f"{label} (raw: {raw_url})")
    path = discover_config()
    if path is None:
        names = ", ".join(AUTO_CONFIG_NAMES)
        raise ConfigError(
            f"No config found: pass --input or --input-url, set DOVE_INPUT/DOVE_INPUT_URL/DOVE_GIST_ID, "
            f"or place one of {names} in the current directory."
        )
    text = read_local_config(path)
    return LoadedConfig(parse_text(text, path.suffix, str(path)), f"local file (auto): {path}")
