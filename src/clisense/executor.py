from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, TypeAlias

from loguru import logger


@dataclass(frozen=True)
class ExecutionResult:
    ok: bool
    stdout: str
    stderr: str = ""
    returncode: int = 0


Executor: TypeAlias = Callable[[str], Awaitable[ExecutionResult]]


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


async def execute(line: str, *, cwd: Path | None = None) -> ExecutionResult:
    """Run ``line`` through the shell and capture its output.

    A non-zero exit status is reported as a failed result, never raised.
    """
    logger.debug("executing {!r}", line)
    try:
        process = await asyncio.create_subprocess_shell(
            line,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        return ExecutionResult(ok=False, stdout="", stderr=str(exc), returncode=-1)
    stdout_bytes, stderr_bytes = await process.communicate()
    returncode = process.returncode if process.returncode is not None else -1
    result = ExecutionResult(
        ok=returncode == 0,
        stdout=_decode(stdout_bytes),
        stderr=_decode(stderr_bytes),
        returncode=returncode,
    )
    if not result.ok:
        logger.debug("{!r} exited with {}", line, returncode)
    return result
