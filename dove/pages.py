from __future__ import annotations

import html
import sys
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Optional

from jinja2 import Environment

from .config import ChangeFreq, ColorScheme, Site
from .content import render_rich_text
from .links import LinkDetail, NetMode, Projection, resolve_icon_for_detail, resolve_icon_for_page, risk_meta
from .render import render_page, write_text
from .utils import apply_utm, url_join

INDEX_TEMPLATE = "index.html"
DETAIL_TEMPLATE = "detail.html"
DEFAULT_OG_IMAGE = "assets/favicon.svg"
ROBOTS_TXT = "User-agent: *\nAllow: /\n"
NETWORK_SWITCH = {
    NetMode.EXTERNAL: ("intranet/", "Intranet"),
    NetMode.INTRANET: ("../", "Internet"),
}


@dataclass
class PageSettings:
    site: Site
    base_path: Optional[str]
    color_scheme: Optional[ColorScheme]
    title: Optional[str]
    description: Optional[str]
    build_version: str
    build_time: str
    has_intranet: bool = True
    intermediate_pages: bool = True


@dataclass
class SitemapEntry:
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[ChangeFreq] = None
    priority: Optional[float] = None


def base_context(settings: PageSettings) -> dict:
    site = settings.site
    ctx = {
        "build_version": settings.build_version,
        "build_time": settings.build_time,
        "site_title": settings.title if settings.title is not None else site.title,
        "site_desc": settings.description if settings.description is not None else site.description,
        "color_scheme": (settings.color_scheme or site.color_scheme).value,
    }
    if site.baidu_tongji_id and site.baidu_tongji_id.strip():
        ctx["baidu_tongji_id"] = site.baidu_tongji_id.strip()
    if site.google_analytics_id and site.google_analytics_id.strip():
        ctx["google_analytics_id"] = site.google_analytics_id.strip()
    return ctx


def og_image_url(site: Site, base_path: Optional[str]) -> str:
    image = (site.og_image or DEFAULT_OG_IMAGE).strip()
    if image.lower().startswith(("http://", "https://", "//")) or not site.base_url:
        return image
    return url_join(site.base_url, base_path, image)


def build_index(env: Environment, site_dir: Path, projection: Projection, settings: PageSettings) -> Path:
    mode = projection.mode
    site = settings.site
    prefix = mode.asset_prefix
    ctx = base_context(settings)
    ctx.update(
        {
            "has_intranet": settings.has_intranet,
            "generate_intermediate_page": settings.intermediate_pages,
            "asset_prefix": prefix,
            "root_prefix": prefix,
            "service_worker_path": f"{prefix}sw.js",
            "network_switch_href": NETWORK_SWITCH[mode][0],
            "mode_other_label": NETWORK_SWITCH[mode][1],
            "layout": site.layout.value,
            "groups": projection.groups,
            "categories": projection.categories,
        }
    )

    engines = [
        {
            "name": engine.name,
            "template": engine.template,
            "icon": resolve_icon_for_page(engine.icon, prefix) if engine.icon else None,
        }
        for engine in site.search_engines
    ]
    ctx["search_engines"] = engines
    ctx["engine_default"] = site.default_engine or (engines[0]["name"] if engines else "")

    if mode is NetMode.EXTERNAL:
        if site.base_url:
            ctx["canonical_url"] = url_join(site.base_url, settings.base_path, "index.html")
        ctx["og_image"] = og_image_url(site, settings.base_path)

    html_doc = render_page(env, INDEX_TEMPLATE, ctx)
    if mode is NetMode.EXTERNAL:
        target = site_dir / "index.html"
    else:
        target = site_dir / "intranet" / "index.html"
        legacy = site_dir / "intranet.html"
        if legacy.exists():
            try:
                legacy.unlink()
            except OSError as exc:
                print(f"Warning: could not remove stale {legacy}: {exc}", file=sys.stderr)
    write_text(target, html_doc)
    return target


def detail_context(detail: LinkDetail, categories: list[str], settings: PageSettings) -> dict:
    site = settings.site
    ctx = base_context(settings)
    risk_class, risk_label = risk_meta(detail.risk)
    details_html = render_rich_text(detail.details)
    ctx.update(
        {
            "categories": categories,
            "root_prefix": "../../",
            "service_worker_path": "../../sw.js",
            "link_name": detail.name,
            "link_intro": detail.intro,
            "link_details_html": details_html,
            "link_icon": resolve_icon_for_detail(detail.icon) if detail.icon else None,
            "link_host": detail.host,
            "link_url": apply_utm(detail.final_url, detail.utm),
            "risk_class": risk_class,
            "risk_label": risk_label,
            "delay_seconds": detail.delay_seconds,
            "has_delay": detail.delay_seconds > 0,
            "og_image": og_image_url(site, settings.base_path),
        }
    )
    if site.base_url:
        ctx["base_url"] = site.base_url
        ctx["site_url"] = url_join(site.base_url, settings.base_path, f"go/{detail.slug}") + "/"
    return ctx


def build_details(
    env: Environment,
    site_dir: Path,
    details: list[LinkDetail],
    categories: list[str],
    settings: PageSettings,
) -> list[Path]:
    written = []
    for detail in details:
        html_doc = render_page(env, DETAIL_TEMPLATE, detail_context(detail, categories, settings))
        target = site_dir / "go" / detail.slug / "index.html"
        write_text(target, html_doc)
        written.append(target)
    return written


def build_robots(site_dir: Path) -> None:
    write_text(site_dir / "robots.txt", ROBOTS_TXT)


def sanitize_priority(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    clamped = min(1.0, max(0.0, float(value)))
    return float(Decimal(repr(clamped)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def sitemap_entries(
    site: Site,
    base_path: Optional[str],
    details: list[LinkDetail],
    build_time: str,
) -> list[SitemapEntry]:
    defaults = site.sitemap
    default_lastmod = (defaults.lastmod if defaults else None) or build_time
    default_changefreq = defaults.default_changefreq if defaults else None
    default_priority = defaults.default_priority if defaults else None

    pages = ["index.html", "intranet/index.html"]
    entries = [
        SitemapEntry(
            loc=url_join(site.base_url, base_path, page),
            lastmod=default_lastmod,
            changefreq=default_changefreq,
            priority=sanitize_priority(default_priority),
        )
        for page in pages
    ]
    for detail in details:
        entries.append(
            SitemapEntry(
                loc=url_join(site.base_url, base_path, f"go/{detail.slug}/index.html"),
                lastmod=detail.lastmod or default_lastmod,
                changefreq=detail.changefreq or default_changefreq,
                priority=sanitize_priority(detail.priority if detail.priority is not None else default_priority),
            )
        )
    return entries


def render_sitemap(entries: list[SitemapEntry]) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        lines.append("  <url>")
        lines.append(f"    <loc>{html.escape(entry.loc, quote=False)}</loc>")
        if entry.lastmod:
            lines.append(f"    <lastmod>{html.escape(entry.lastmod, quote=False)}</lastmod>")
        if entry.changefreq:
            lines.append(f"    <changefreq>{entry.changefreq.value}</changefreq>")
        if entry.priority is not None:
            lines.append(f"    <priority>{entry.priority:.1f}</priority>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def build_sitemap(site_dir: Path, entries: list[SitemapEntry]) -> None:
    write_text(site_dir / "sitemap.xml", render_sitemap(entries))

