from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

from . import __version__
from .builder import DEFAULT_ICON_DIR, DEFAULT_ICON_THREADS, BuildOptions, build_site
from .config import ColorScheme, ConfigError, load_config, parse_config
from .render import BuildError
from .scaffold import init_scaffold
from .utils import env_bool, env_int, env_path, env_str, first_present

COLOR_SCHEMES = [scheme.value for scheme in ColorScheme]


def parse_color_scheme(value: Optional[str]) -> Optional[ColorScheme]:
    if not value:
        return None
    try:
        return ColorScheme(value.strip().lower())
    except ValueError:
        print(f"Ignoring unknown color scheme: {value}", file=sys.stderr)
        return None


def resolve_source(args: argparse.Namespace) -> dict:
    source = {
        "input_path": first_present(args.input, env_path("DOVE_INPUT")),
        "input_url": first_present(args.input_url, env_str("DOVE_INPUT_URL"), env_str("DOVE_GIST_URL")),
        "gist_id": first_present(args.gist_id, env_str("DOVE_GIST_ID")),
        "gist_file": first_present(args.gist_file, env_str("DOVE_GIST_FILE")),
        "token": first_present(args.github_token, env_str("DOVE_GITHUB_TOKEN")),
        "auth_scheme": first_present(args.auth_scheme, env_str("DOVE_AUTH_SCHEME")),
    }
    # a remote source wins over any local --input / DOVE_INPUT
    if source["input_url"] or source["gist_id"]:
        source["input_path"] = None
    return source


def resolve_build_options(args: argparse.Namespace) -> BuildOptions:
    no_intranet = args.no_intranet or bool(env_bool("DOVE_NO_INTRANET"))
    icon_threads = first_present(args.icon_threads, env_int("DOVE_ICON_THREADS"), DEFAULT_ICON_THREADS)
    return BuildOptions(
        out_dir=first_present(args.out, env_path("DOVE_OUT"), Path("dist")),
        static_dir=first_present(args.static_dir, env_path("DOVE_STATIC")),
        theme_dir=first_present(args.theme, env_path("DOVE_THEME"), env_path("DOVE_THEME_DIR")),
        base_path=first_present(args.base_path, env_str("DOVE_BASE_PATH")),
        generate_intranet=not no_intranet,
        generate_intermediate_page=first_present(
            args.generate_intermediate_page, env_bool("DOVE_GENERATE_INTERMEDIATE_PAGE"), True
        ),
        color_scheme=parse_color_scheme(first_present(args.color_scheme, env_str("DOVE_COLOR_SCHEME"))),
        title=first_present(args.title, env_str("DOVE_TITLE")),
        description=first_present(args.description, env_str("DOVE_DESCRIPTION")),
        build_version=args.build_version,
        icon_dir=first_present(args.icon_dir, env_str("DOVE_ICON_DIR"), DEFAULT_ICON_DIR),
        icon_threads=max(1, icon_threads),
    )


def run_build(args: argparse.Namespace) -> int:
    loaded = load_config(**resolve_source(args))
    print(f"Config source: {loaded.source}")
    config = parse_config(loaded.data)
    details = build_site(config, resolve_build_options(args))
    print(f"Detail pages: {len(details)}")
    return 0


def run_init(args: argparse.Namespace) -> int:
    target = args.dir or Path(".")
    init_scaffold(target, force=args.force)
    print("Init complete. Run: dove build")
    return 0


def add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-i", "--input", type=Path, default=None, help="Config file (default: dove.yaml / dove.yml).")
    parser.add_argument("--input-url", default=None, metavar="URL", help="Config URL (http/https, e.g. a Gist raw link).")
    parser.add_argument("--gist-id", default=None, metavar="ID", help="Load the config from a GitHub Gist.")
    parser.add_argument("--gist-file", default=None, metavar="NAME", help="File name inside the Gist (default: first).")
    parser.add_argument("--github-token", default=None, metavar="TOKEN", help="Token for private Gists or URLs.")
    parser.add_argument("--auth-scheme", default=None, metavar="SCHEME", help="Authorization scheme (default: token).")
    parser.add_argument("-o", "--out", type=Path, default=None, help="Output directory (default: dist).")
    parser.add_argument("--static-dir", type=Path, default=None, metavar="DIR", help="Extra static files copied last.")
    parser.add_argument("--theme", type=Path, default=None, metavar="DIR", help="Theme directory, overrides site.theme_dir.")
    parser.add_argument("--base-path", default=None, metavar="PATH", help="Site sub-path, overrides site.base_path.")
    parser.add_argument("--no-intranet", action="store_true", help="Skip the intranet/ page.")
    parser.add_argument("--color-scheme", choices=COLOR_SCHEMES, default=None, help="Override the color scheme.")
    parser.add_argument("--title", default=None, help="Override the site title.")
    parser.add_argument("--description", default=None, help="Override the site description.")
    parser.add_argument("--build-version", default=None, metavar="VER", help="Build version (beats DOVE_BUILD_VERSION).")
    parser.add_argument("--icon-dir", default=None, metavar="DIR", help=f"Icon cache dir under the site root (default: {DEFAULT_ICON_DIR}).")
    parser.add_argument(
        "--icon-threads",
        type=int,
        default=None,
        metavar="N",
        help=f"Concurrent icon downloads (default: {DEFAULT_ICON_THREADS}).",
    )
    parser.add_argument(
        "--generate-intermediate-page",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Render go/<slug>/ redirect pages (default: on).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dove", description="Static navigation site generator.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Generate the static site.")
    add_build_arguments(build)
    build.set_defaults(handler=run_build)

    init = commands.add_parser("init", help="Write a sample config and the default theme.")
    init.add_argument("--force", action="store_true", help="Overwrite existing files.")
    init.add_argument("dir", nargs="?", type=Path, default=None, metavar="DIR", help="Target directory (default: .).")
    init.set_defaults(handler=run_init)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    start = time.perf_counter()
    try:
        status = args.handler(args)
    except (ConfigError, BuildError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    print(f"Completed in {elapsed:.2f}s.")
    return status
