from __future__ import annotations

import shutil
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound, TemplateSyntaxError, select_autoescape


class BuildError(Exception):
    pass


def load_templates(theme_dir: Path) -> Environment:
    templates_dir = theme_dir / "templates"
    if not templates_dir.is_dir():
        raise BuildError(f"failed to load templates: {templates_dir} is not a directory")
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
        keep_trailing_newline=True,
    )
    return env


def render_page(env: Environment, name: str, context: dict) -> str:
    templates_dir = env.loader.searchpath[0] if isinstance(env.loader, FileSystemLoader) else ""
    try:
        template = env.get_template(name)
    except TemplateNotFound as exc:
        raise BuildError(f"failed to load template: {Path(templates_dir) / name}") from exc
    except TemplateSyntaxError as exc:
        raise BuildError(f"failed to load template: {Path(templates_dir) / name} (line {exc.lineno}: {exc.message})") from exc
    try:
        return template.render(**context)
    except TemplateError as exc:
        raise BuildError(f"failed to render template {name}: {exc}") from exc


def write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise BuildError(f"failed to write {path}: {exc}") from exc


def copy_tree(src_dir: Path, dest_dir: Path) -> None:
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        for item in src_dir.iterdir():
            dest = dest_dir / item.name
            if item.is_dir():
                shutil.copytree(item, dest, dirs_exist_ok=True)
            else:
                shutil.copy2(item, dest)
    except OSError as exc:
        raise BuildError(f"failed to copy {src_dir} -> {dest_dir}: {exc}") from exc
