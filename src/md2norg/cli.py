"""CLI entry point for the Markdown-to-Neorg converter."""

from __future__ import annotations

import argparse
import sys
from importlib import metadata
from pathlib import Path
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv
from rich.console import Console

from md2norg.core.logging import configure_logger

from .config import (
    CollisionPolicy,
    ConfigOverrides,
    Md2NorgConfigError,
    default_config_path,
    load_config,
    write_config_template,
)
from .executor import (
    ConversionError,
    ConversionOutcome,
    ConversionStatus,
    ExecutionSummary,
    check_input,
    run_conversion,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="md2norg",
        description="Convert Markdown notes into Neorg (.norg) documents.",
        epilog=(
            "Run `md2norg config init` to scaffold the default md2norg.toml "
            "template."
        ),
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    parser.add_argument(
        "-i",
        "--input",
        required=True,
        type=Path,
        help="Markdown file or directory to convert.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help=(
            "Directory for converted files. Omit to convert in place, "
            "replacing each Markdown file with its .norg counterpart."
        ),
    )
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        default=None,
        help="Descend into subdirectories when --input is a directory.",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        default=None,
        help="Delete Markdown sources after converting into --output.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Replace sources without asking for confirmation.",
    )
    parser.add_argument(
        "--extensions",
        nargs="+",
        help="Extensions treated as Markdown (default: md markdown).",
    )
    parser.add_argument(
        "--collision",
        choices=[policy.value for policy in CollisionPolicy],
        help="How to handle outputs that already exist (default: overwrite).",
    )
    parser.add_argument(
        "--list-indent-width",
        type=int,
        help="Leading whitespace characters per list nesting level.",
    )
    parser.add_argument(
        "--wiki-links",
        action="store_true",
        default=None,
        help="Rewrite [[Page]] links as Neorg {:Page.norg:} links.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a TOML config file.",
    )
    parser.add_argument(
        "--log-level",
        help="Level for the JSON log file (defaults to INFO).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write JSON-lines logs to this file.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Echo all log records to stderr.",
    )
    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    console: Optional[Console] = None,
    err_console: Optional[Console] = None,
) -> int:
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    out = console or Console()
    err = err_console or Console(stderr=True)

    if args_list[:1] == ["config"]:
        return _handle_config(args_list[1:], out, err)

    parser = _build_parser()
    args = parser.parse_args(args_list)

    load_dotenv(find_dotenv(usecwd=True))

    overrides = ConfigOverrides(
        extensions=args.extensions,
        recursive=args.recursive,
        collision=(
            CollisionPolicy.from_value(args.collision)
            if args.collision
            else None
        ),
        remove_source=args.replace,
        list_indent_width=args.list_indent_width,
        wiki_links=args.wiki_links,
        log_level=args.log_level,
        log_file=args.log_file,
    )

    try:
        load_result = load_config(config_path=args.config, overrides=overrides)
    except Md2NorgConfigError as exc:
        parser.error(str(exc))

    config = load_result.config
    logger, log_path = configure_logger(
        "md2norg",
        level=config.log_level,
        log_file=config.log_file,
        verbose=args.verbose,
    )
    logger.debug(
        "md2norg CLI invoked",
        extra={
            "config_path": (
                str(load_result.config_path)
                if load_result.config_path
                else None
            )
        },
    )

    try:
        check_input(args.input)
    except ConversionError as exc:
        _echo(err, f"Error: {exc}")
        return 1

    removes_sources = args.output is None or config.remove_source
    if removes_sources and not args.force:
        confirmed = _confirm_replace(out)
        if confirmed is None:
            _echo(
                err,
                "Error: No confirmation received; "
                "rerun with --force to replace the markdown files.",
            )
            return 1
        if not confirmed:
            _echo(out, "Operation cancelled.")
            return 0

    try:
        summary = run_conversion(
            args.input,
            config=config,
            output_root=args.output,
            logger=logger,
            on_outcome=lambda outcome: _print_outcome(out, outcome),
        )
    except ConversionError as exc:
        _echo(err, f"Error: {exc}")
        return 1

    _print_summary(out, summary, log_path)
    return 0


def _confirm_replace(console: Console) -> Optional[bool]:
    """Ask before sources are deleted; ``None`` means stdin had no answer."""

    _echo(console, "Warning: This will replace the original markdown files.")
    try:
        answer = console.input("Are you sure you want to continue? (y/N) ")
    except EOFError:
        _echo(console, "")
        return None
    except KeyboardInterrupt:
        _echo(console, "")
        return False
    return answer.strip().lower() in {"y", "yes"}


def _print_outcome(console: Console, outcome: ConversionOutcome) -> None:
    if outcome.status is ConversionStatus.SUCCESS:
        _echo(console, f"Converted: {outcome.source} -> {outcome.output_path}")
    else:
        _echo(console, f"Skipped: {outcome.source} ({outcome.reason})")


def _print_summary(
    console: Console,
    summary: ExecutionSummary,
    log_path: Optional[Path],
) -> None:
    lines = [
        "md2norg summary:",
        "  converted: {0}".format(summary.success_count),
        "  skipped:   {0}".format(summary.skipped_count),
    ]
    if summary.written:
        lines.append("  outputs:")
        lines.extend("    {0}".format(path) for path in summary.written)
    if log_path is not None:
        lines.append("  log file:  {0}".format(log_path))
    for line in lines:
        _echo(console, line)


def _echo(console: Console, text: str) -> None:
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def _package_version() -> str:
    try:
        return metadata.version("md2norg")
    except metadata.PackageNotFoundError:
        return "unknown"


def _handle_config(
    argv: Sequence[str], out: Console, err: Console
) -> int:
    parser = _build_config_parser()
    args = parser.parse_args(argv)

    return _handle_config_init(args, out, err)


def _build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="md2norg config",
        description="Manage md2norg configuration files.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Write the default md2norg.toml template.",
    )
    init_parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Destination for the config TOML (defaults to "
            "$XDG_CONFIG_HOME/md2norg/md2norg.toml)."
        ),
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination if a config already exists.",
    )
    return parser


def _handle_config_init(
    args: argparse.Namespace, out: Console, err: Console
) -> int:
    target = _resolve_config_target(args)

    try:
        written = write_config_template(target, overwrite=args.force)
    except Md2NorgConfigError as exc:
        _echo(err, str(exc))
        return 1

    _echo(out, f"Wrote md2norg config to {written}")
    return 0


def _resolve_config_target(args: argparse.Namespace) -> Path:
    if args.path is not None:
        candidate = args.path.expanduser()
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate
    return default_config_path()


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
