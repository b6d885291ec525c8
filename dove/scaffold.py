from __future__ import annotations

import sys
from pathlib import Path

from .builder import PACKAGE_THEME_DIR
from .render import BuildError, copy_tree, write_text

SAMPLE_CONFIG = Path(__file__).resolve().parent / "sample.dove.yaml"


def init_scaffold(target: Path, force: bool = False) -> list[Path]:
    written = []
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildError(f"failed to create {target}: {exc}") from exc

    config_path = target / "dove.yaml"
    if config_path.exists() and not force:
        print(f"Skipped: {config_path} already exists (use --force to overwrite)", file=sys.stderr)
    else:
        write_text(config_path, SAMPLE_CONFIG.read_text(encoding="utf-8"))
        print(f"Wrote: {config_path}")
        written.append(config_path)

    theme_root = target / "themes" / "default"
    if theme_root.exists() and not force:
        print(f"Skipped: {theme_root} already exists (use --force to overwrite)", file=sys.stderr)
    else:
        copy_tree(PACKAGE_THEME_DIR, theme_root)
        print(f"Wrote: {theme_root}")
        written.append(theme_root)
    return written
