"""Document-level Markdown-to-Neorg conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

from .blocks import render_block
from .classifier import ConversionState, SourceLine, classify_line

__all__ = [
    "ConverterOptions",
    "ConvertedDocument",
    "convert_text",
    "iter_source_lines",
]


@dataclass(frozen=True)
class ConverterOptions:
    """Engine options shared by every document in a run."""

    list_indent_width: int = 1
    wiki_links: bool = False

    def __post_init__(self) -> None:
        if self.list_indent_width < 1:
            raise ValueError("list_indent_width must be >= 1")


@dataclass
class ConvertedDocument:
    """Neorg output accumulated line by line in source order."""

    lines: list[str] = field(default_factory=list)
    source_line_count: int = 0
    unterminated_fence: Optional[int] = None

    def append(self, fragment: str) -> None:
        self.lines.append(fragment)

    @property
    def text(self) -> str:
        return "".join(f"{line}\n" for line in self.lines)


def iter_source_lines(text: str) -> Iterator[SourceLine]:
    """Yield the lines of ``text`` without their terminators.

    Lines split on ``\\n`` only; one trailing ``\\r`` is dropped so CRLF
    input converts like LF input. A final terminator does not produce an
    extra empty line.
    """

    if not text:
        return
    raw_lines = text.split("\n")
    if raw_lines[-1] == "":
        raw_lines.pop()
    for index, raw in enumerate(raw_lines):
        if raw.endswith("\r"):
            raw = raw[:-1]
        yield SourceLine(index=index, text=raw)


def convert_text(
    text: str, options: ConverterOptions | None = None
) -> ConvertedDocument:
    """Convert a whole Markdown document into a :class:`ConvertedDocument`.

    A code fence still open at the end of the input is left unterminated;
    no ``@end`` is added. Its opening line is recorded on the result.
    """

    opts = options or ConverterOptions()
    document = ConvertedDocument()
    state = ConversionState()

    for line in iter_source_lines(text):
        kind, state = classify_line(
            line, state, list_indent_width=opts.list_indent_width
        )
        document.append(render_block(kind, wiki_links=opts.wiki_links))
        document.source_line_count += 1

    if state.in_fence:
        document.unterminated_fence = state.fence_line
    return document
