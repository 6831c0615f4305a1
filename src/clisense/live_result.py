"""Live result view: run a command line, show its output, filter it live.

Running a line is expensive and produces the ground truth (the parsed JSON
output). Re-rendering on edits is cheap: it re-applies the ``--query``
expression currently written on the line to the cached result without
running the command again.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Hashable, Protocol

from loguru import logger

from clisense.exceptions import QueryError
from clisense.executor import Executor, execute
from clisense.json_types import DEFAULT_INDENT, JSONValue, dump_json
from clisense.query import evaluate, extract_query

RUNNING_KEY = "Running command"

Evaluator = Callable[[JSONValue, str], JSONValue]


class Phase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RENDERED = "rendered"
    FAILED = "failed"


@dataclass
class LiveResultState:
    source_line: str | None = None
    raw_output: str | None = None
    parsed_result: JSONValue = None
    has_result: bool = False
    query_expression: str | None = None
    query_enabled: bool = False
    side_view: Hashable | None = None
    phase: Phase = Phase.IDLE

    def snapshot(self) -> LiveResultState:
        return replace(self)


@dataclass(frozen=True)
class RenderOutcome:
    content: str | None
    value: JSONValue = None
    filtered: bool = False
    error: QueryError | None = None


class SideView(Protocol):
    async def open(self) -> Hashable:
        """Create the side view document and return its handle."""
        ...

    async def replace(self, handle: Hashable, content: str) -> None:
        """Replace the whole content and move the selection to the start."""
        ...


def render_result(
    state: LiveResultState,
    *,
    evaluator: Evaluator = evaluate,
    indent: int | None = DEFAULT_INDENT,
) -> RenderOutcome:
    """Content for the side view given a state snapshot.

    ``content`` is None when the view should be left as it is: nothing has
    been parsed yet, or the query failed.
    """
    if not state.has_result:
        return RenderOutcome(content=None)
    if state.query_enabled and state.query_expression:
        try:
            value = evaluator(state.parsed_result, state.query_expression)
        except QueryError as exc:
            return RenderOutcome(content=None, error=exc)
        return RenderOutcome(content=dump_json(value, indent=indent), value=value, filtered=True)
    return RenderOutcome(
        content=dump_json(state.parsed_result, indent=indent),
        value=state.parsed_result,
    )


def failure_content(stdout: str, stderr: str, *, indent: int | None = DEFAULT_INDENT) -> str:
    return dump_json({"stderr": stderr, "stdout": stdout}, indent=indent)


class LiveResultPipeline:
    def __init__(
        self,
        side_view: SideView,
        *,
        executor: Executor = execute,
        evaluator: Evaluator = evaluate,
        query_enabled: bool = False,
        indent: int | None = DEFAULT_INDENT,
        on_query_toggled: Callable[[bool], None] | None = None,
        report: Callable[[str], None] | None = None,
    ) -> None:
        self.state = LiveResultState(query_enabled=query_enabled)
        self._side_view = side_view
        self._executor = executor
        self._evaluator = evaluator
        self._indent = indent
        self._on_query_toggled = on_query_toggled
        self._report = report

    async def _find_side_view(self) -> Hashable:
        if self.state.side_view is None:
            self.state.side_view = await self._side_view.open()
        return self.state.side_view

    def close(self, handle: Hashable) -> None:
        if handle == self.state.side_view:
            self.state.side_view = None

    async def run(self, line: str) -> None:
        """Execute ``line`` and show its output in the side view.

        The line is captured once; later edits to the source do not change
        what is shown as running. Concurrent runs are not serialised and the
        last one to finish owns the view.
        """
        state = self.state
        state.source_line = line
        state.raw_output = None
        state.parsed_result = None
        state.has_result = False
        state.query_expression = None
        state.phase = Phase.RUNNING
        try:
            await self._show_run(line)
        finally:
            if state.phase is Phase.RUNNING:
                state.phase = Phase.FAILED

    async def _show_run(self, line: str) -> None:
        state = self.state
        handle = await self._find_side_view()
        await self._side_view.replace(handle, dump_json({RUNNING_KEY: line}, indent=None) + "\n")
        result = await self._executor(line)
        if result.ok:
            content = result.stdout
        else:
            content = failure_content(result.stdout, result.stderr, indent=self._indent)
        state.raw_output = content
        await self._side_view.replace(handle, content)
        if result.ok:
            try:
                parsed = json.loads(content)
            except ValueError:
                # Plain text or empty output is shown as is.
                pass
            else:
                state.parsed_result = parsed
                state.has_result = True
        state.phase = Phase.RENDERED

    async def on_text_changed(self, line: str) -> None:
        await self.set_query(extract_query(line))

    async def set_query(self, query: str | None) -> None:
        if query == self.state.query_expression:
            return
        self.state.query_expression = query
        if self.state.query_enabled and self.state.has_result:
            await self.render()

    async def toggle_query(self) -> bool:
        enabled = not self.state.query_enabled
        self.state.query_enabled = enabled
        if self._on_query_toggled is not None:
            self._on_query_toggled(enabled)
        if self.state.phase is Phase.RENDERED:
            await self.render()
        return enabled

    async def render(self) -> RenderOutcome:
        outcome = render_result(
            self.state.snapshot(), evaluator=self._evaluator, indent=self._indent
        )
        error = outcome.error
        if error is not None and not error.parse_error:
            message = f"query {error.expression!r} failed: {error}"
            logger.error(message)
            if self._report is not None:
                self._report(message)
        handle = self.state.side_view
        if outcome.content is not None and handle is not None:
            await self._side_view.replace(handle, outcome.content)
        return outcome
