"""Sequential traversal driver for md2norg runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Sequence

from md2norg.core.files import extension_for, read_text_file, write_text_file

from .config import CollisionPolicy, Md2NorgConfig
from .converter import ConverterOptions, convert_text

__all__ = [
    "ConversionError",
    "InputNotFoundError",
    "ReadFailure",
    "WriteFailure",
    "ConversionStatus",
    "ConversionOutcome",
    "FileTask",
    "ExecutionSummary",
    "check_input",
    "discover_sources",
    "plan_tasks",
    "convert_task",
    "run_conversion",
]


class ConversionError(RuntimeError):
    """Base class for fatal run errors; ``path`` names the offending file."""

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(message)
        self.path = path


class InputNotFoundError(ConversionError):
    """Raised when the requested input path does not exist."""


class ReadFailure(ConversionError):
    """Raised when a source file or directory cannot be read."""


class WriteFailure(ConversionError):
    """Raised when an output cannot be written or a source removed."""


class ConversionStatus(Enum):
    """Outcome status for a single file."""

    SUCCESS = "success"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class FileTask:
    """One discovered source file paired with its resolved output path."""

    source: Path
    output: Path
    skip_reason: Optional[str] = None


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of converting (or skipping) a single file."""

    source: Path
    status: ConversionStatus
    output_path: Path
    reason: Optional[str] = None
    unterminated_fence: Optional[int] = None
    source_removed: bool = False


@dataclass(frozen=True)
class ExecutionSummary:
    """Aggregated results for a completed run."""

    input_path: Path
    outcomes: tuple[ConversionOutcome, ...]

    @property
    def success_count(self) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.status is ConversionStatus.SUCCESS
        )

    @property
    def skipped_count(self) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.status is ConversionStatus.SKIPPED
        )

    @property
    def written(self) -> tuple[Path, ...]:
        return tuple(
            outcome.output_path
            for outcome in self.outcomes
            if outcome.status is ConversionStatus.SUCCESS
        )


def discover_sources(
    input_path: Path,
    *,
    recursive: bool,
    extensions: Iterable[str],
) -> tuple[Path, ...]:
    """Return the Markdown files a run over ``input_path`` would convert.

    A file input is returned as-is regardless of its extension. Directory
    entries are visited in name order; subdirectories are only expanded
    when ``recursive`` is set, and symlinked subdirectories never are. A
    file reachable under several names is returned once, under the name
    visited first.
    """

    check_input(input_path)
    if not input_path.is_dir():
        return (input_path,)
    wanted = {ext.lower().lstrip(".") for ext in extensions}
    return tuple(_iter_directory(input_path, wanted, recursive, set()))


def check_input(input_path: Path) -> None:
    """Raise :class:`InputNotFoundError` unless ``input_path`` exists."""

    if not input_path.exists():
        raise InputNotFoundError(
            f"Input not found: {input_path}", path=input_path
        )


def plan_tasks(
    input_path: Path,
    *,
    output_root: Optional[Path],
    recursive: bool = False,
    extensions: Sequence[str] = ("md", "markdown"),
    target_extension: str = "norg",
    collision: CollisionPolicy = CollisionPolicy.OVERWRITE,
) -> tuple[FileTask, ...]:
    """Resolve one :class:`FileTask` per discovered source.

    With ``output_root`` the output mirrors the source's position under the
    input root; without it the output sits next to the source. Output paths
    are unique within the returned tasks.
    """

    sources = discover_sources(
        input_path, recursive=recursive, extensions=extensions
    )
    root = input_path if input_path.is_dir() else input_path.parent
    suffix = "." + target_extension.lstrip(".")

    claimed: set[Path] = set()
    tasks: list[FileTask] = []
    for source in sources:
        relative = source.relative_to(root)
        if output_root is not None:
            base = (output_root / relative).with_suffix(suffix)
        else:
            base = source.with_suffix(suffix)

        output, skip_reason = _resolve_output_path(
            base, collision=collision, claimed=claimed
        )
        claimed.add(output)
        tasks.append(
            FileTask(
                source=source,
                output=output,
                skip_reason=skip_reason,
            )
        )
    return tuple(tasks)


def convert_task(
    task: FileTask,
    *,
    options: ConverterOptions,
    remove_source: bool = False,
) -> ConversionOutcome:
    """Read, convert and write one task; raise on the first I/O failure."""

    try:
        text = read_text_file(task.source)
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadFailure(
            f"Failed to read {task.source}: {exc}", path=task.source
        ) from exc

    document = convert_text(text, options)

    try:
        write_text_file(task.output, document.text)
    except OSError as exc:
        raise WriteFailure(
            f"Failed to write {task.output}: {exc}", path=task.output
        ) from exc

    removed = False
    if remove_source and task.output != task.source:
        try:
            task.source.unlink()
        except OSError as exc:
            raise WriteFailure(
                f"Failed to remove {task.source}: {exc}", path=task.source
            ) from exc
        removed = True

    return ConversionOutcome(
        source=task.source,
        status=ConversionStatus.SUCCESS,
        output_path=task.output,
        unterminated_fence=document.unterminated_fence,
        source_removed=removed,
    )


def run_conversion(
    input_path: Path,
    *,
    config: Md2NorgConfig,
    output_root: Optional[Path] = None,
    logger: logging.Logger,
    on_outcome: Optional[Callable[[ConversionOutcome], None]] = None,
) -> ExecutionSummary:
    """Convert every task under ``input_path`` sequentially.

    Without ``output_root`` the run is in-place and each Markdown source is
    replaced by its Neorg output. The run stops at the first failure;
    outputs written before it are kept.
    """

    remove_source = output_root is None or config.remove_source
    options = ConverterOptions(
        list_indent_width=config.list_indent_width,
        wiki_links=config.wiki_links,
    )

    logger.info(
        "Starting md2norg run",
        extra={
            "input_path": str(input_path),
            "output_root": str(output_root) if output_root else None,
            "recursive": config.recursive,
            "extensions": list(config.extensions),
            "remove_source": remove_source,
        },
    )

    try:
        tasks = plan_tasks(
            input_path,
            output_root=output_root,
            recursive=config.recursive,
            extensions=config.extensions,
            target_extension=config.target_extension,
            collision=config.collision,
        )
    except ConversionError as exc:
        logger.error(
            "Failed to plan conversion",
            extra={"path": str(exc.path), "reason": str(exc)},
        )
        raise

    logger.info("Prepared conversion tasks", extra={"task_count": len(tasks)})

    outcomes: list[ConversionOutcome] = []
    for task in tasks:
        if task.skip_reason is not None:
            outcome = ConversionOutcome(
                source=task.source,
                status=ConversionStatus.SKIPPED,
                output_path=task.output,
                reason=task.skip_reason,
            )
            logger.info(
                "Skipped document",
                extra={"source": str(task.source), "reason": task.skip_reason},
            )
        else:
            try:
                outcome = convert_task(
                    task, options=options, remove_source=remove_source
                )
            except ConversionError as exc:
                logger.error(
                    "Failed to convert document",
                    extra={
                        "source": str(task.source),
                        "path": str(exc.path),
                        "reason": str(exc),
                    },
                )
                raise
            logger.info(
                "Converted document",
                extra={
                    "source": str(outcome.source),
                    "output_path": str(outcome.output_path),
                    "source_removed": outcome.source_removed,
                },
            )
            if outcome.unterminated_fence is not None:
                logger.warning(
                    "Code fence opened on line %d of %s is never closed",
                    outcome.unterminated_fence + 1,
                    outcome.source,
                    extra={"source": str(outcome.source)},
                )
        outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)

    summary = ExecutionSummary(
        input_path=input_path,
        outcomes=tuple(outcomes),
    )

    logger.info(
        "Completed md2norg run",
        extra={
            "success_count": summary.success_count,
            "skipped_count": summary.skipped_count,
        },
    )

    return summary


def _iter_directory(
    directory: Path,
    extensions: set[str],
    recursive: bool,
    seen: set[Path],
) -> Iterator[Path]:
    try:
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError as exc:
        raise ReadFailure(
            f"Failed to list {directory}: {exc}", path=directory
        ) from exc
    for entry in entries:
        if entry.is_dir():
            # Symlinked directories are never entered.
            if recursive and not entry.is_symlink():
                yield from _iter_directory(entry, extensions, recursive, seen)
            continue
        if not entry.is_file() or extension_for(entry) not in extensions:
            continue
        target = entry.resolve()
        if target in seen:
            continue
        seen.add(target)
        yield entry


def _resolve_output_path(
    base: Path,
    *,
    collision: CollisionPolicy,
    claimed: set[Path],
) -> tuple[Path, Optional[str]]:
    if base in claimed:
        return _next_version(base, claimed), None
    if not base.exists() or collision is CollisionPolicy.OVERWRITE:
        return base, None
    if collision is CollisionPolicy.SKIP:
        return base, "Output already exists and collision policy is 'skip'."
    return _next_version(base, claimed), None


def _next_version(base: Path, claimed: set[Path]) -> Path:
    counter = 1
    while True:
        candidate = base.with_name(f"{base.stem}-{counter:02d}{base.suffix}")
        if candidate not in claimed and not candidate.exists():
            return candidate
        counter += 1
