"""Knowledge backend answering completion, hover and status queries."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Awaitable, Callable, Protocol

import yaml
from loguru import logger
from pydantic import ValidationError

from clisense.exceptions import CatalogError, ToolNotFound
from clisense.executor import ExecutionResult, execute
from clisense.schema import (
    CatalogCommandDTO,
    CatalogDTO,
    CatalogParameterDTO,
    CompletionEntry,
    CompletionRequest,
    HoverRequest,
    HoverText,
    Status,
)

NotFoundHandler = Callable[[ToolNotFound], Awaitable[None]]
Which = Callable[[str], "str | None"]


class KnowledgeBackend(Protocol):
    async def get_completions(self, request: CompletionRequest) -> list[CompletionEntry]: ...

    async def get_hover(self, request: HoverRequest) -> HoverText | None: ...

    async def get_status(self) -> Status: ...


def _normalize_sections(data: dict) -> dict:
    normalized: dict[str, object] = {}
    for section in ("groups", "commands"):
        raw = data.get(section) or {}
        if not isinstance(raw, dict):
            raise CatalogError(f"catalog section '{section}' must be a mapping")
        entries: dict[str, object] = {}
        for key, value in raw.items():
            entry = dict(value or {})
            if section == "commands":
                entry["parameters"] = {
                    str(name): (param or {})
                    for name, param in (entry.get("parameters") or {}).items()
                }
            entries[" ".join(str(key).split())] = entry
        normalized[section] = entries
    return normalized


def parse_catalog(text: str) -> CatalogDTO:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise CatalogError(f"invalid catalog YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogError("catalog must be a mapping")
    try:
        return CatalogDTO.model_validate(_normalize_sections(data))
    except (ValidationError, AttributeError, TypeError, ValueError) as exc:
        raise CatalogError(f"invalid catalog: {exc}") from exc


def load_catalog(path: Path) -> CatalogDTO:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"cannot read catalog {path}: {exc}") from exc
    return parse_catalog(text)


def parameter_aliases(key: str) -> list[str]:
    return key.split()


def _snippet_for(word: str, command: CatalogCommandDTO) -> str | None:
    required = [key for key, param in command.parameters.items() if param.required]
    if not required:
        return None
    parts = [word]
    for index, key in enumerate(required, start=1):
        name = parameter_aliases(key)[0]
        parts.append(f"{name} ${{{index}:{name.lstrip('-')}}}")
    return " ".join(parts)


class CatalogBackend:
    """Backend answering from a static command catalog.

    Tool availability is checked once, by the first status query or an
    explicit ensure_available(). When the tool is missing the not-found
    handler runs once and every later query degrades to an empty answer.
    """

    def __init__(
        self,
        catalog: CatalogDTO | None = None,
        *,
        tool: str = "az",
        status_command: str | None = None,
        not_found_handler: NotFoundHandler | None = None,
        executor: Callable[[str], Awaitable[ExecutionResult]] = execute,
        which: Which = shutil.which,
    ) -> None:
        self.catalog = catalog or CatalogDTO()
        self.tool = tool
        self.status_command = status_command
        self._not_found_handler = not_found_handler
        self._executor = executor
        self._which = which
        self._available: bool | None = None

    async def ensure_available(self) -> bool:
        if self._available is None:
            self._available = self._which(self.tool) is not None
            if not self._available:
                logger.warning("'{}' not found on PATH", self.tool)
                if self._not_found_handler is not None:
                    await self._not_found_handler(ToolNotFound(self.tool))
        return self._available

    def _find_parameter(
        self, command: CatalogCommandDTO, argument: str
    ) -> tuple[str, CatalogParameterDTO] | None:
        for key, param in command.parameters.items():
            if argument in parameter_aliases(key):
                return key, param
        return None

    def _parameter_entries(
        self, command: CatalogCommandDTO, arguments: dict[str, str | None]
    ) -> list[CompletionEntry]:
        entries: list[CompletionEntry] = []
        for key, param in command.parameters.items():
            aliases = parameter_aliases(key)
            if any(alias in arguments for alias in aliases):
                continue
            entries.append(
                CompletionEntry(
                    name=aliases[0],
                    kind="parameter_name",
                    detail="required" if param.required else None,
                    documentation=param.summary or None,
                )
            )
        return entries

    def _child_entries(self, path: str) -> list[CompletionEntry]:
        depth = len(path.split())
        prefix = f"{path} " if path else ""
        entries: list[CompletionEntry] = []
        for key, group in sorted(self.catalog.groups.items()):
            words = key.split()
            if len(words) == depth + 1 and key.startswith(prefix):
                entries.append(
                    CompletionEntry(
                        name=words[-1],
                        kind="group",
                        documentation=group.summary or None,
                    )
                )
        for key, command in sorted(self.catalog.commands.items()):
            words = key.split()
            if len(words) != depth + 1 or not key.startswith(prefix):
                continue
            entries.append(
                CompletionEntry(
                    name=words[-1],
                    kind="command",
                    documentation=command.summary or None,
                )
            )
            snippet = _snippet_for(words[-1], command)
            if snippet is not None:
                entries.append(
                    CompletionEntry(
                        name=words[-1],
                        kind="snippet",
                        detail="with required parameters",
                        documentation=command.summary or None,
                        snippet=snippet,
                    )
                )
        return entries

    async def get_completions(self, request: CompletionRequest) -> list[CompletionEntry]:
        if self._available is False:
            return []
        path = " ".join((request.subcommand or "").split())
        command = self.catalog.commands.get(path)
        if request.argument:
            if command is None:
                return []
            found = self._find_parameter(command, request.argument)
            if found is None:
                return []
            return [
                CompletionEntry(name=option, kind="parameter_value")
                for option in found[1].options
            ]
        if command is not None:
            return self._parameter_entries(command, request.arguments)
        return self._child_entries(path)

    async def get_hover(self, request: HoverRequest) -> HoverText | None:
        if self._available is False:
            return None
        path = " ".join(request.subcommand.split())
        command = self.catalog.commands.get(path)
        if request.argument:
            if command is None:
                return None
            found = self._find_parameter(command, request.argument)
            if found is None:
                return None
            key, param = found
            paragraphs = [f"`{' '.join(parameter_aliases(key))}`"]
            if param.summary:
                paragraphs.append(param.summary)
            if param.options:
                paragraphs.append("Allowed values: " + ", ".join(param.options))
            return HoverText(paragraphs=paragraphs)
        entry = command if command is not None else self.catalog.groups.get(path)
        if entry is None:
            return None
        paragraphs = [text for text in (entry.summary, entry.description) if text]
        return HoverText(paragraphs=paragraphs) if paragraphs else None

    async def get_status(self) -> Status:
        if self.status_command is None:
            return Status()
        if not await self.ensure_available():
            return Status()
        result = await self._executor(self.status_command)
        if not result.ok:
            logger.debug("status command failed: {}", result.stderr.strip())
            return Status()
        lines = result.stdout.strip().splitlines()
        return Status(message=lines[0].strip() if lines else "")
