from __future__ import annotations

from typing import Optional

import markdown

FALLBACK_SLUG = "link"


def slugify(text: str) -> str:
    out: list[str] = []
    pending_dash = False
    for ch in text:
        if ch.isascii() and ch.isalnum():
            if pending_dash:
                out.append("-")
            out.append(ch.lower())
            pending_dash = False
        elif out:
            pending_dash = True
    return "".join(out) or FALLBACK_SLUG


def unique_slug(base: str, used: set[str]) -> str:
    slug = base
    counter = 2
    while slug in used:
        slug = f"{base}-{counter}"
        counter += 1
    used.add(slug)
    return slug


class SlugAllocator:
    # explicit slug, then name, then name-host, then a numeric suffix
    def __init__(self) -> None:
        self.used: set[str] = set()
        self.name_counts: dict[str, int] = {}

    def allocate(self, name: str, host: str, explicit: Optional[str] = None) -> str:
        if explicit is not None:
            base = slugify(explicit)
        else:
            key = name.lower()
            self.name_counts[key] = self.name_counts.get(key, 0) + 1
            if self.name_counts[key] > 1 and host:
                base = slugify(f"{name}-{host}")
            else:
                base = slugify(name)
        return unique_slug(base, self.used)


def render_rich_text(text: Optional[str]) -> Optional[str]:
    if text is None or not text.strip():
        return None
    md = markdown.Markdown(extensions=["fenced_code", "tables"])
    return md.convert(text)
