from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Hashable, Optional

import typer

from clisense.adapters import completion_request, insert_text_for, matching_entries
from clisense.backend import CatalogBackend, load_catalog
from clisense.config import Settings, load_settings
from clisense.exceptions import CatalogError
from clisense.executor import ExecutionResult, execute
from clisense.json_types import JSONObject
from clisense.live_result import LiveResultPipeline
from clisense.logging_utils import configure_logging
from clisense.parsing import Node, find_node, parse, resolve_context
from clisense.schema import CatalogDTO

app = typer.Typer(add_completion=False)


def _settings(root: Optional[Path], config: Optional[Path]) -> Settings:
    return load_settings(root=root, config_path=config)


def _node_payload(node: Node) -> JSONObject:
    return {
        "kind": node.kind.value,
        "text": node.text,
        "offset": node.offset,
        "length": node.length,
    }


def _cursor(line: str, cursor: Optional[int]) -> int:
    if cursor is None:
        return len(line)
    if cursor < 0 or cursor > len(line):
        raise typer.BadParameter(f"cursor must be between 0 and {len(line)}")
    return cursor


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


class _BufferSideView:
    """Side view that keeps the last content in memory."""

    def __init__(self) -> None:
        self.content = ""

    async def open(self) -> Hashable:
        return "buffer"

    async def replace(self, handle: Hashable, content: str) -> None:
        self.content = content


@app.callback()
def main() -> None:
    """Editor intelligence and live results for CLI command lines."""
    configure_logging()


@app.command("lsp")
def lsp() -> None:
    """Start the language server over stdio."""
    from clisense import server

    server.start()


@app.command("parse")
def parse_line(
    line: str = typer.Argument(..., help="Command line to parse."),
    offset: Optional[int] = typer.Option(
        None, "--offset", help="Only print the node under this offset."
    ),
) -> None:
    """Print the node tree of a command line as JSON."""
    command = parse(line)
    if offset is None:
        _echo_json([_node_payload(node) for node in command.nodes])
        return
    node = find_node(command, offset)
    _echo_json(_node_payload(node) if node is not None else None)


@app.command("context")
def context(
    line: str = typer.Argument(..., help="Command line being edited."),
    cursor: Optional[int] = typer.Option(None, "--cursor", help="Cursor offset (default: end)."),
    root: Optional[Path] = typer.Option(None, "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Print the completion context at the cursor as JSON."""
    settings = _settings(root, config)
    position = _cursor(line, cursor)
    resolved = resolve_context(line[:position], line=line, root=settings.tool_name)
    _echo_json(asdict(resolved))


@app.command("complete")
def complete(
    line: str = typer.Argument(..., help="Command line being edited."),
    cursor: Optional[int] = typer.Option(None, "--cursor", help="Cursor offset (default: end)."),
    catalog: Optional[Path] = typer.Option(None, "--catalog", help="YAML command catalog."),
    root: Optional[Path] = typer.Option(None, "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Print completion entries for the cursor position as JSON."""
    settings = _settings(root, config)
    catalog_path = catalog or settings.catalog_path
    try:
        catalog_dto = load_catalog(catalog_path) if catalog_path else CatalogDTO()
    except CatalogError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2)
    position = _cursor(line, cursor)
    resolved = resolve_context(line[:position], line=line, root=settings.tool_name)
    request = completion_request(resolved)
    if request is None:
        _echo_json([])
        return
    backend = CatalogBackend(catalog_dto, tool=settings.tool_name)
    entries = asyncio.run(backend.get_completions(request))
    _echo_json(
        [
            {**entry.model_dump(exclude_none=True), "insert_text": insert_text_for(entry, resolved)}
            for entry in matching_entries(entries, resolved)
        ]
    )


@app.command("run")
def run(
    line: str = typer.Argument(..., help="Command line to execute."),
    query: Optional[str] = typer.Option(
        None, "--query", help="Query expression applied to the JSON output."
    ),
    live: bool = typer.Option(True, "--live/--no-live", help="Apply --query to the output."),
    root: Optional[Path] = typer.Option(None, "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Execute a command line and print the rendered result."""
    settings = _settings(root, config)
    view = _BufferSideView()
    outcomes: list[ExecutionResult] = []

    async def _execute(command_line: str) -> ExecutionResult:
        result = await execute(command_line, cwd=root)
        outcomes.append(result)
        return result

    async def _run() -> None:
        pipeline = LiveResultPipeline(
            view,
            executor=_execute,
            query_enabled=live,
            indent=settings.result_indent,
        )
        await pipeline.run(line)
        await pipeline.set_query(query)

    asyncio.run(_run())
    typer.echo(view.content)
    if outcomes and not outcomes[-1].ok:
        raise typer.Exit(code=1)
