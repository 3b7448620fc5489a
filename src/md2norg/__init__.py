"""Public APIs for the Markdown-to-Neorg converter."""

from __future__ import annotations

from .classifier import (
    BlockKind,
    CodeBlockContent,
    CodeBlockFence,
    ConversionState,
    Heading,
    ListItem,
    PlainText,
    SourceLine,
    TodoItem,
    classify_line,
)
from .blocks import render_block, rewrite_wiki_links
from .converter import (
    ConvertedDocument,
    ConverterOptions,
    convert_text,
    iter_source_lines,
)
from .config import (
    CollisionPolicy,
    ConfigOverrides,
    LoadResult,
    Md2NorgConfig,
    Md2NorgConfigError,
    load_config,
)
from .executor import (
    ConversionError,
    ConversionOutcome,
    ConversionStatus,
    ExecutionSummary,
    FileTask,
    InputNotFoundError,
    ReadFailure,
    WriteFailure,
    discover_sources,
    plan_tasks,
    run_conversion,
)

__all__ = [
    "BlockKind",
    "CodeBlockContent",
    "CodeBlockFence",
    "ConversionState",
    "Heading",
    "ListItem",
    "PlainText",
    "SourceLine",
    "TodoItem",
    "classify_line",
    "render_block",
    "rewrite_wiki_links",
    "ConvertedDocument",
    "ConverterOptions",
    "convert_text",
    "iter_source_lines",
    "CollisionPolicy",
    "ConfigOverrides",
    "LoadResult",
    "Md2NorgConfig",
    "Md2NorgConfigError",
    "load_config",
    "ConversionError",
    "ConversionOutcome",
    "ConversionStatus",
    "ExecutionSummary",
    "FileTask",
    "InputNotFoundError",
    "ReadFailure",
    "WriteFailure",
    "discover_sources",
    "plan_tasks",
    "run_conversion",
]
