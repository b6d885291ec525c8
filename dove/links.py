from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import ChangeFreq, Config, RiskLevel, Site, UtmParams
from .content import SlugAllocator
from .utils import hostname_from_url, site_href

DEFAULT_CATEGORY = "All"
DISPLAY_ALIASES = {
    "standard": "standard",
    "compact": "compact",
    "list": "list",
    "text": "text",
    "标准": "standard",
    "简洁": "compact",
    "列表": "list",
    "文本": "text",
}
RISK_META = {
    RiskLevel.LOW: ("low", "低风险"),
    RiskLevel.MEDIUM: ("medium", "中风险"),
    RiskLevel.HIGH: ("high", "高风险"),
}
PASSTHROUGH_PREFIXES = ("http://", "https://", "//", "data:")


class NetMode(Enum):
    EXTERNAL = "external"
    INTRANET = "intranet"

    @property
    def asset_prefix(self) -> str:
        return "" if self is NetMode.EXTERNAL else "../"


@dataclass
class RenderLink:
    name: str
    href: str
    display_url: str
    desc: str
    icon: Optional[str]
    host: str


@dataclass
class RenderGroup:
    name: str
    category: str
    display: str
    links: list[RenderLink] = field(default_factory=list)


@dataclass
class LinkDetail:
    slug: str
    name: str
    intro: str
    details: Optional[str]
    icon: Optional[str]
    host: str
    final_url: str
    risk: RiskLevel = RiskLevel.LOW
    delay_seconds: int = 0
    utm: Optional[UtmParams] = None
    lastmod: Optional[str] = None
    changefreq: Optional[ChangeFreq] = None
    priority: Optional[float] = None


@dataclass
class Projection:
    mode: NetMode
    groups: list[RenderGroup] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    details: list[LinkDetail] = field(default_factory=list)


def _is_passthrough(icon: str) -> bool:
    return icon.lower().startswith(PASSTHROUGH_PREFIXES)


def resolve_icon_for_page(icon: str, asset_prefix: str) -> str:
    value = icon.strip()
    if _is_passthrough(value):
        return value
    if value.startswith("/"):
        return f"{asset_prefix}{value.lstrip('/')}"
    if value.startswith(("../", "./")):
        return value
    return f"{asset_prefix}{value}"


def resolve_icon_for_detail(icon: str) -> str:
    # detail pages live at go/<slug>/index.html
    value = icon.strip()
    if _is_passthrough(value):
        return value
    return f"../../{value.lstrip('/')}"


def normalize_display(value: str) -> str:
    return DISPLAY_ALIASES.get(value.strip().lower(), "standard")


def resolve_display(group_display: Optional[str], site: Site, category: str) -> str:
    if group_display is not None:
        return normalize_display(group_display)
    if category in site.category_display:
        return normalize_display(site.category_display[category])
    if site.default_category_display is not None:
        return normalize_display(site.default_category_display)
    return "standard"


def risk_meta(risk: Optional[RiskLevel]) -> tuple[str, str]:
    return RISK_META[risk or RiskLevel.LOW]


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def external_categories(config: Config) -> list[str]:
    categories: list[str] = []
    for group in config.groups:
        if not any(_non_blank(link.url) for link in group.links):
            continue
        category = group.category or DEFAULT_CATEGORY
        if category not in categories:
            categories.append(category)
    return categories


def project_links(
    config: Config,
    mode: NetMode,
    intermediate_pages: bool = True,
    base_path: Optional[str] = None,
) -> Projection:
    """Project the group/link tree onto one index page for ``mode``."""
    site = config.site
    redirect = site.redirect
    sitemap = site.sitemap
    prefix = mode.asset_prefix
    slugs = SlugAllocator()
    projection = Projection(mode=mode)

    for group in config.groups:
        rlinks: list[RenderLink] = []
        for link in group.links:
            icon = resolve_icon_for_page(link.icon, prefix) if link.icon else None
            if mode is NetMode.EXTERNAL:
                final_url = _non_blank(link.url)
                if final_url is None:
                    continue
                host = hostname_from_url(final_url)
                slug = slugs.allocate(link.name, host, link.slug)
                href = site_href(base_path, f"go/{slug}/") if intermediate_pages else final_url
                rlinks.append(RenderLink(link.name, href, final_url, link.intro, icon, host))
                projection.details.append(
                    LinkDetail(
                        slug=slug,
                        name=link.name,
                        intro=link.intro,
                        details=link.details,
                        icon=link.icon,
                        host=host,
                        final_url=final_url,
                        risk=link.risk or (redirect.default_risk if redirect else None) or RiskLevel.LOW,
                        delay_seconds=(redirect.delay_seconds if redirect else None) or 0,
                        utm=link.utm or (redirect.utm if redirect else None),
                        lastmod=link.lastmod or (sitemap.lastmod if sitemap else None),
                        changefreq=link.changefreq or (sitemap.default_changefreq if sitemap else None),
                        priority=link.priority if link.priority is not None else (
                            sitemap.default_priority if sitemap else None
                        ),
                    )
                )
            else:
                href = _non_blank(link.intranet) or _non_blank(link.url)
                if href is None:
                    continue
                rlinks.append(RenderLink(link.name, href, href, link.intro, icon, hostname_from_url(href)))

        if not rlinks:
            continue
        category = group.category or DEFAULT_CATEGORY
        if category not in projection.categories:
            projection.categories.append(category)
        projection.groups.append(
            RenderGroup(
                name=group.name,
                category=category,
                display=resolve_display(group.display, site, category),
                links=rlinks,
            )
        )
    return projection
