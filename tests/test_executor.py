from __future__ import annotations

import asyncio
from pathlib import Path

from clisense.executor import execute


def test_execute_captures_stdout() -> None:
    result = asyncio.run(execute("echo hello"))
    assert result.ok
    assert result.returncode == 0
    assert result.stdout == "hello\n"
    assert result.stderr == ""


def test_execute_reports_failure_without_raising() -> None:
    result = asyncio.run(execute("echo partial; echo oops 1>&2; exit 3"))
    assert not result.ok
    assert result.returncode == 3
    assert result.stdout == "partial\n"
    assert result.stderr == "oops\n"


def test_execute_runs_in_cwd(tmp_path: Path) -> None:
    (tmp_path / "marker.txt").write_text("", encoding="utf-8")
    result = asyncio.run(execute("ls", cwd=tmp_path))
    assert result.ok
    assert "marker.txt" in result.stdout


def test_execute_missing_cwd(tmp_path: Path) -> None:
    result = asyncio.run(execute("echo hi", cwd=tmp_path / "missing"))
    assert not result.ok
    assert result.returncode == -1
    assert result.stderr


def test_execute_replaces_undecodable_bytes() -> None:
    result = asyncio.run(execute("printf '\\377ok'"))
    assert result.ok
    assert result.stdout.endswith("ok")
    assert "�" in result.stdout
