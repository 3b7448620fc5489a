"""Render classified Markdown lines as Neorg text."""

from __future__ import annotations

import re

from .classifier import (
    BlockKind,
    CodeBlockContent,
    CodeBlockFence,
    Heading,
    ListItem,
    PlainText,
    TodoItem,
)

__all__ = [
    "render_block",
    "rewrite_wiki_links",
]

_WIKI_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")


def render_block(kind: BlockKind, *, wiki_links: bool = False) -> str:
    """Return the Neorg rendering of one classified line.

    The result depends only on ``kind`` and ``wiki_links``. Inline Markdown
    (emphasis, links) is passed through as-is; with ``wiki_links`` enabled,
    ``[[Page]]`` links outside code blocks become ``{:Page.norg:}``.
    """

    if isinstance(kind, CodeBlockContent):
        return kind.text
    if isinstance(kind, CodeBlockFence):
        if not kind.opening:
            return "@end"
        if kind.language:
            return f"@code {kind.language}"
        return "@code"
    if isinstance(kind, Heading):
        return _prefixed("*" * kind.level, _inline(kind.text, wiki_links))
    if isinstance(kind, TodoItem):
        status = "(x)" if kind.checked else "( )"
        return _prefixed(
            "-" * (kind.depth + 1),
            status,
            _inline(kind.text, wiki_links),
        )
    if isinstance(kind, ListItem):
        marker = "~" if kind.ordered else "-"
        return _prefixed(
            marker * (kind.depth + 1), _inline(kind.text, wiki_links)
        )
    if isinstance(kind, PlainText):
        return _inline(kind.text, wiki_links)
    raise TypeError(f"Unsupported block kind: {type(kind).__name__}")


def rewrite_wiki_links(text: str) -> str:
    """Rewrite ``[[Page Name]]`` links as Neorg file links."""

    return _WIKI_LINK_RE.sub(lambda match: f"{{:{match.group(1)}.norg:}}", text)


def _inline(text: str, wiki_links: bool) -> str:
    if wiki_links:
        return rewrite_wiki_links(text)
    return text


def _prefixed(marker: str, *parts: str) -> str:
    # Empty item text renders as the bare marker, e.g. "- ( )".
    return " ".join([marker, *(part for part in parts if part)])
