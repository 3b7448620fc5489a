"""Line classification for the Markdown-to-Neorg converter.

Each Markdown line is classified on its own, with a small
:class:`ConversionState` value carrying what earlier lines established
(currently only whether a fenced code block is open). The classifier never
mutates its input state; it returns the state to use for the next line so
the document converter can fold over lines without shared flags.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional, Union

__all__ = [
    "SourceLine",
    "Heading",
    "CodeBlockFence",
    "CodeBlockContent",
    "ListItem",
    "TodoItem",
    "PlainText",
    "BlockKind",
    "ConversionState",
    "MAX_HEADING_LEVEL",
    "classify_line",
]

MAX_HEADING_LEVEL = 6

_FENCE_RE = re.compile(r"^(?P<ticks>`{3,})(?P<info>[^`]*)$")
_HEADING_RE = re.compile(r"^(?P<hashes>#{1,6})[ \t]+(?P<text>.*)$")
_TODO_RE = re.compile(
    r"^(?P<indent>[ \t]*)[-*+][ \t]+\[(?P<mark>[ xX])\](?:[ \t]+(?P<text>.*))?$"
)
_LIST_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?:(?P<bullet>[-*+])|(?P<number>\d+)\.)[ \t]+(?P<text>.*)$"
)


@dataclass(frozen=True)
class SourceLine:
    """A single line of Markdown input and its zero-based position."""

    index: int
    text: str


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class CodeBlockFence:
    """An opening (``opening=True``) or closing fence line."""

    language: Optional[str]
    opening: bool


@dataclass(frozen=True)
class CodeBlockContent:
    text: str


@dataclass(frozen=True)
class ListItem:
    depth: int
    ordered: bool
    text: str


@dataclass(frozen=True)
class TodoItem:
    checked: bool
    depth: int
    text: str


@dataclass(frozen=True)
class PlainText:
    text: str


BlockKind = Union[
    Heading,
    CodeBlockFence,
    CodeBlockContent,
    ListItem,
    TodoItem,
    PlainText,
]


@dataclass(frozen=True)
class ConversionState:
    """Per-document classifier state.

    ``fence_ticks`` is the backtick count of the open fence, or ``0`` when
    no fence is open. ``fence_line`` is the index of the opening line.
    """

    fence_ticks: int = 0
    fence_language: Optional[str] = None
    fence_line: Optional[int] = None

    @property
    def in_fence(self) -> bool:
        return self.fence_ticks > 0


def classify_line(
    line: SourceLine,
    state: ConversionState,
    *,
    list_indent_width: int = 1,
) -> tuple[BlockKind, ConversionState]:
    """Classify ``line`` and return its kind with the state for the next line.

    Rules are tried in priority order: open fence content, fence markers,
    headings, todo items, list items, then plain text. Every line is
    classifiable; anything unrecognized is :class:`PlainText`.
    """

    if list_indent_width < 1:
        raise ValueError("list_indent_width must be >= 1")

    text = line.text
    fence = _FENCE_RE.match(text)

    if state.in_fence:
        if fence is not None and _closes_fence(fence, state):
            closed = replace(
                state, fence_ticks=0, fence_language=None, fence_line=None
            )
            return CodeBlockFence(state.fence_language, opening=False), closed
        return CodeBlockContent(text), state

    if fence is not None:
        language = _language_from_info(fence.group("info"))
        opened = replace(
            state,
            fence_ticks=len(fence.group("ticks")),
            fence_language=language,
            fence_line=line.index,
        )
        return CodeBlockFence(language, opening=True), opened

    heading = _HEADING_RE.match(text)
    if heading is not None:
        return (
            Heading(len(heading.group("hashes")), heading.group("text")),
            state,
        )

    todo = _TODO_RE.match(text)
    if todo is not None:
        return (
            TodoItem(
                checked=todo.group("mark") in ("x", "X"),
                depth=len(todo.group("indent")) // list_indent_width,
                text=todo.group("text") or "",
            ),
            state,
        )

    item = _LIST_RE.match(text)
    if item is not None:
        return (
            ListItem(
                depth=len(item.group("indent")) // list_indent_width,
                ordered=item.group("number") is not None,
                text=item.group("text"),
            ),
            state,
        )

    return PlainText(text), state


def _closes_fence(match: re.Match[str], state: ConversionState) -> bool:
    # A closing fence carries no info string and is at least as long as
    # the opener.
    return (
        not match.group("info").strip()
        and len(match.group("ticks")) >= state.fence_ticks
    )


def _language_from_info(info: str) -> Optional[str]:
    parts = info.split()
    if not parts:
        return None
    return parts[0]
