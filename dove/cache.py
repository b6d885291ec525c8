from __future__ import annotations

from pathlib import Path
from typing import Optional

FNV_OFFSET = 0xCBF29CE484222325
FNV_PRIME = 0x00000100000001B3
MASK_64 = 0xFFFFFFFFFFFFFFFF


def fnv1a64(data: bytes) -> int:
    value = FNV_OFFSET
    for byte in data:
        value ^= byte
        value = (value * FNV_PRIME) & MASK_64
    return value


def icon_stem(url: str) -> str:
    return f"i_{fnv1a64(url.encode('utf-8')):016x}"


def icon_filename(url: str, ext: str) -> str:
    return f"{icon_stem(url)}.{ext}"


def find_cached(dest_dir: Path, url: str) -> Optional[Path]:
    if not dest_dir.is_dir():
        return None
    matches = sorted(path for path in dest_dir.glob(f"{icon_stem(url)}.*") if path.is_file())
    return matches[0] if matches else None


def write_if_absent(path: Path, data: bytes) -> bool:
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return True
