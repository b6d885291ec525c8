from __future__ import annotations

import datetime as dt
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ColorScheme, Config
from .icons import Fetcher, resolve_icons
from .links import LinkDetail, NetMode, external_categories, project_links
from .pages import PageSettings, build_details, build_index, build_robots, build_sitemap, sitemap_entries
from .render import BuildError, copy_tree, load_templates
from .utils import env_str, first_present, iso_date, safe_subpath

PACKAGE_THEME_DIR = Path(__file__).resolve().parent / "themes" / "default"
DEFAULT_ICON_DIR = "assets/icons"
DEFAULT_ICON_THREADS = 8


@dataclass
class BuildOptions:
    out_dir: Path = Path("dist")
    static_dir: Optional[Path] = None
    theme_dir: Optional[Path] = None
    base_path: Optional[str] = None
    generate_intranet: bool = True
    generate_intermediate_page: bool = True
    color_scheme: Optional[ColorScheme] = None
    title: Optional[str] = None
    description: Optional[str] = None
    build_version: Optional[str] = None
    icon_dir: str = DEFAULT_ICON_DIR
    icon_threads: int = DEFAULT_ICON_THREADS


def resolve_theme_dir(theme_cli: Optional[Path], config: Config) -> Path:
    if theme_cli is not None:
        candidates = [theme_cli]
    elif config.site.theme_dir:
        candidates = [Path(config.site.theme_dir)]
    else:
        candidates = [Path("themes") / "default", PACKAGE_THEME_DIR]
    for path in candidates:
        if path.is_dir():
            return path
    raise BuildError(
        f"theme directory not found: {candidates[0]}. Pass --theme or set site.theme_dir in the config."
    )


def site_dir_for(out_dir: Path, base_path: Optional[str]) -> Path:
    sub = safe_subpath(base_path) if base_path else None
    return out_dir / sub if sub is not None else out_dir


def copy_assets(theme_dir: Path, site_dir: Path, static_dir: Optional[Path]) -> None:
    theme_assets = theme_dir / "assets"
    if theme_assets.is_dir():
        copy_tree(theme_assets, site_dir / "assets")
        service_worker = theme_assets / "sw.js"
        if service_worker.is_file():
            try:
                shutil.copy2(service_worker, site_dir / "sw.js")
            except OSError as exc:
                raise BuildError(f"failed to copy {service_worker}: {exc}") from exc
    if static_dir is not None:
        if static_dir.is_dir():
            copy_tree(static_dir, site_dir)
        else:
            print(f"Warning: static directory not found: {static_dir}", file=sys.stderr)


def build_site(config: Config, options: BuildOptions, fetcher: Optional[Fetcher] = None) -> list[LinkDetail]:
    base_path = first_present(options.base_path, config.site.base_path)
    site_dir = site_dir_for(options.out_dir, base_path)
    try:
        site_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildError(f"failed to create output directory {site_dir}: {exc}") from exc

    theme_dir = resolve_theme_dir(options.theme_dir, config)
    env = load_templates(theme_dir)
    copy_assets(theme_dir, site_dir, options.static_dir)

    icon_rel = options.icon_dir.strip("/") or DEFAULT_ICON_DIR
    config, _ = resolve_icons(
        config,
        site_dir / icon_rel,
        icon_rel,
        max(1, options.icon_threads),
        fetcher,
    )

    settings = PageSettings(
        site=config.site,
        base_path=base_path,
        color_scheme=options.color_scheme,
        title=options.title,
        description=options.description,
        build_version=first_present(options.build_version, env_str("DOVE_BUILD_VERSION"), __version__),
        build_time=iso_date(dt.datetime.now(dt.timezone.utc)),
        has_intranet=options.generate_intranet,
        intermediate_pages=options.generate_intermediate_page,
    )

    external = project_links(config, NetMode.EXTERNAL, options.generate_intermediate_page, base_path)
    build_index(env, site_dir, external, settings)
    if external.details and options.generate_intermediate_page:
        build_details(env, site_dir, external.details, external_categories(config), settings)
    if options.generate_intranet:
        intranet = project_links(config, NetMode.INTRANET, options.generate_intermediate_page, base_path)
        build_index(env, site_dir, intranet, settings)

    build_robots(site_dir)
    build_sitemap(
        site_dir,
        sitemap_entries(config.site, base_path, external.details, settings.build_time),
    )
    print(f"Site generated in: {site_dir}")
    return external.details
