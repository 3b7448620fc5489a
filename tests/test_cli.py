from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterator

import pytest
from rich.console import Console

from md2norg import cli

pytestmark = pytest.mark.usefixtures("isolated_env")


@pytest.fixture(autouse=True)
def _reset_md2norg_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("md2norg")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch: pytest.MonkeyPatch) -> list[object]:
    calls: list[object] = []
    monkeypatch.setattr(cli, "load_dotenv", lambda path: calls.append(path))
    return calls


def _consoles() -> tuple[Console, Console]:
    return (
        Console(record=True, width=100, force_terminal=False),
        Console(record=True, width=100, force_terminal=False),
    )


def _run(argv: list[str]) -> tuple[int, str, str]:
    out, err = _consoles()
    code = cli.main(argv, console=out, err_console=err)
    return code, out.export_text(), err.export_text()


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_recursive_run_into_output_directory(tmp_path):
    source = tmp_path / "dir"
    _write(source / "a.md", "# Title\n\n- [ ] task one\n- [x] task two\n")
    _write(source / "sub" / "b.md", "```rust\nfn main() {}\n```\n")
    out = tmp_path / "out"

    code, stdout, stderr = _run(
        ["--input", str(source), "--output", str(out), "--recursive"]
    )

    assert code == 0
    assert stderr == ""
    assert (out / "a.norg").read_text(encoding="utf-8") == (
        "* Title\n\n- ( ) task one\n- (x) task two\n"
    )
    assert (out / "sub" / "b.norg").read_text(encoding="utf-8") == (
        "@code rust\nfn main() {}\n@end\n"
    )
    assert f"Converted: {source / 'a.md'} -> {out / 'a.norg'}" in stdout
    assert "converted: 2" in stdout
    assert "skipped:   0" in stdout
    summary = stdout[stdout.index("md2norg summary:"):]
    assert f"    {out / 'a.norg'}" in summary
    assert f"    {out / 'sub' / 'b.norg'}" in summary


def test_short_flags(tmp_path):
    source = _write(tmp_path / "in" / "a.md", "## Two\n")
    out = tmp_path / "out"

    code, _, _ = _run(["-i", str(source), "-o", str(out)])

    assert code == 0
    assert (out / "a.norg").read_text(encoding="utf-8") == "** Two\n"


def _answer(monkeypatch: pytest.MonkeyPatch, reply) -> list[str]:
    prompts: list[str] = []

    def fake_input(self, prompt="", **kwargs):  # noqa: ANN001
        prompts.append(prompt)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    monkeypatch.setattr(Console, "input", fake_input)
    return prompts


def test_in_place_run_asks_for_confirmation(tmp_path, monkeypatch):
    source = _write(tmp_path / "note.md", "# Note\n")
    prompts = _answer(monkeypatch, "n")

    code, stdout, _ = _run(["--input", str(source)])

    assert code == 0
    assert prompts == ["Are you sure you want to continue? (y/N) "]
    assert "replace the original markdown files" in stdout
    assert "Operation cancelled." in stdout
    assert source.exists()
    assert not (tmp_path / "note.norg").exists()


@pytest.mark.parametrize("reply", ["y", " Y\n", "yes"])
def test_in_place_run_confirmed(tmp_path, monkeypatch, reply):
    source = _write(tmp_path / "note.md", "# Note\n")
    _answer(monkeypatch, reply)

    code, _, _ = _run(["--input", str(source)])

    assert code == 0
    assert not source.exists()
    assert (tmp_path / "note.norg").read_text(encoding="utf-8") == "* Note\n"


def test_confirmation_interrupt_cancels(tmp_path, monkeypatch):
    source = _write(tmp_path / "note.md", "# Note\n")
    _answer(monkeypatch, KeyboardInterrupt())

    code, stdout, _ = _run(["--input", str(source)])

    assert code == 0
    assert "Operation cancelled." in stdout
    assert source.exists()


def test_unanswered_confirmation_fails(tmp_path, monkeypatch):
    source = _write(tmp_path / "note.md", "# Note\n")
    _answer(monkeypatch, EOFError())

    code, stdout, stderr = _run(["--input", str(source)])

    assert code == 1
    assert "No confirmation received" in stderr
    assert "--force" in stderr
    assert "Operation cancelled." not in stdout
    assert source.exists()
    assert not (tmp_path / "note.norg").exists()


def test_missing_input_reported_before_prompt(tmp_path, monkeypatch):
    missing = tmp_path / "missing.md"
    prompts = _answer(monkeypatch, "y")

    code, stdout, stderr = _run(["--input", str(missing)])

    assert code == 1
    assert prompts == []
    assert f"Input not found: {missing}" in stderr
    assert "Warning" not in stdout


def test_force_skips_confirmation(tmp_path, monkeypatch):
    source = _write(tmp_path / "note.md", "- item\n")
    prompts = _answer(monkeypatch, "n")

    code, _, _ = _run(["--input", str(source), "--force"])

    assert code == 0
    assert prompts == []
    assert not source.exists()
    assert (tmp_path / "note.norg").read_text(encoding="utf-8") == "- item\n"


def test_replace_with_output_requires_confirmation(tmp_path, monkeypatch):
    source = _write(tmp_path / "in" / "a.md", "text\n")
    _answer(monkeypatch, "")

    out = str(tmp_path / "out")
    code, stdout, _ = _run(["--input", str(source), "--output", out, "--replace"])

    assert code == 0
    assert "Operation cancelled." in stdout
    assert source.exists()


def test_missing_input_exits_with_error(tmp_path):
    missing = tmp_path / "missing"

    code, stdout, stderr = _run(
        ["--input", str(missing), "--output", str(tmp_path / "out")]
    )

    assert code == 1
    assert f"Input not found: {missing}" in stderr
    assert "summary" not in stdout


def test_read_failure_exits_with_error(tmp_path):
    bad = tmp_path / "in" / "bad.md"
    bad.parent.mkdir()
    bad.write_bytes(b"\xff\xff")

    code, _, stderr = _run(
        ["--input", str(bad), "--output", str(tmp_path / "out")]
    )

    assert code == 1
    assert str(bad) in stderr


def test_input_is_required(capsys):
    with pytest.raises(SystemExit) as exc_info:
        _run([])

    assert exc_info.value.code == 2
    assert "--input" in capsys.readouterr().err


def test_config_errors_exit_via_parser(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        _run(
            [
                "--input",
                str(tmp_path),
                "--config",
                str(tmp_path / "missing.toml"),
            ]
        )

    assert exc_info.value.code == 2
    assert "Config file not found" in capsys.readouterr().err


def test_options_flow_into_conversion(tmp_path, monkeypatch):
    source = _write(
        tmp_path / "in" / "a.mkd", "  - nested [[Link]]\n"
    )
    out = tmp_path / "out"
    monkeypatch.setenv("MD2NORG_LIST_INDENT_WIDTH", "2")

    code, _, _ = _run(
        [
            "--input",
            str(source.parent),
            "--output",
            str(out),
            "--extensions",
            "mkd",
            "--wiki-links",
        ]
    )

    assert code == 0
    assert (out / "a.norg").read_text(encoding="utf-8") == (
        "-- nested {:Link.norg:}\n"
    )


def test_collision_skip_reports_skipped(tmp_path):
    _write(tmp_path / "in" / "a.md", "# A\n")
    existing = _write(tmp_path / "out" / "a.norg", "keep")

    code, stdout, _ = _run(
        [
            "--input",
            str(tmp_path / "in"),
            "--output",
            str(tmp_path / "out"),
            "--collision",
            "skip",
        ]
    )

    assert code == 0
    assert "Skipped:" in stdout
    assert "skipped:   1" in stdout
    assert existing.read_text(encoding="utf-8") == "keep"


def test_log_file_receives_json_records(tmp_path):
    _write(tmp_path / "in" / "a.md", "# A\n")
    log_file = tmp_path / "logs" / "run.log"

    code, stdout, _ = _run(
        [
            "--input",
            str(tmp_path / "in"),
            "--output",
            str(tmp_path / "out"),
            "--log-file",
            str(log_file),
        ]
    )

    assert code == 0
    assert f"log file:  {log_file}" in stdout
    for handler in logging.getLogger("md2norg").handlers:
        handler.flush()
    records = [
        json.loads(line)
        for line in log_file.read_text(encoding="utf-8").splitlines()
    ]
    messages = [record["message"] for record in records]
    assert "Converted document" in messages
    assert records[-1]["extra"]["success_count"] == 1


def test_dotenv_loaded_before_config(tmp_path, _no_dotenv):
    _write(tmp_path / "in" / "a.md", "# A\n")

    _run(["--input", str(tmp_path / "in"), "--output", str(tmp_path / "out")])

    assert len(_no_dotenv) == 1


def test_config_init_writes_template(tmp_path):
    target = tmp_path / "conf" / "md2norg.toml"

    code, stdout, _ = _run(["config", "init", "--path", str(target)])

    assert code == 0
    assert "[discovery]" in target.read_text(encoding="utf-8")
    assert str(target) in stdout

    code, _, stderr = _run(["config", "init", "--path", str(target)])
    assert code == 1
    assert "already exists" in stderr

    code, _, _ = _run(["config", "init", "--path", str(target), "--force"])
    assert code == 0


def test_config_init_defaults_to_xdg_location(tmp_path):
    code, _, _ = _run(["config", "init"])

    assert code == 0
    assert (tmp_path / "xdg-config" / "md2norg" / "md2norg.toml").exists()
