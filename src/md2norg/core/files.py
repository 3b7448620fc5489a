"""Common file handling utilities shared across md2norg modules."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

__all__ = [
    "parse_extensions",
    "extension_for",
    "read_text_file",
    "write_text_file",
]


def parse_extensions(
    values: Optional[Sequence[str]],
    *,
    default: Iterable[str] = ("md", "markdown"),
) -> tuple[str, ...]:
    """Normalize extension strings to lowercase values without leading dots.

    Parameters
    ----------
    values:
        Raw extension inputs (with or without leading dots). Order is kept
        and duplicates are dropped.
    default:
        Fallback extensions when ``values`` is empty or only holds blanks.
    """
    if not values:
        return tuple(default)

    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            continue
        candidate = item.strip().lower().lstrip(".")
        if candidate and candidate not in normalized:
            normalized.append(candidate)
    return tuple(normalized) or tuple(default)


def extension_for(path: Path) -> str | None:
    """Return the lowercase extension of ``path`` without its dot."""
    suffix = path.suffix
    if not suffix:
        return None
    return suffix.lstrip(".").lower()


def read_text_file(path: Path) -> str:
    """Read a text file as strict UTF-8.

    Newlines are not translated so carriage returns reach the caller.
    """
    with Path(path).open("r", encoding="utf-8", newline="") as fh:
        return fh.read()


def write_text_file(path: Path, text: str) -> Path:
    """Write ``text`` as UTF-8, creating parent directories as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8", newline="") as fh:
        fh.write(text)
    return target
