from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Hashable
from urllib.parse import unquote, urlparse

from loguru import logger
from lsprotocol.types import (
    INITIALIZED,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_HOVER,
    ApplyWorkspaceEditParams,
    CompletionItem,
    CompletionOptions,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    Hover,
    HoverParams,
    InitializedParams,
    LogMessageParams,
    MessageActionItem,
    MessageType,
    Position,
    Range,
    ShowDocumentParams,
    ShowMessageRequestParams,
    TextEdit,
    WorkspaceEdit,
)
from pydantic import ValidationError
from pygls.lsp.server import LanguageServer

from clisense import __version__
from clisense.adapters import (
    completion_items,
    completion_request,
    hover_result,
    hover_request,
)
from clisense.backend import CatalogBackend, KnowledgeBackend, load_catalog
from clisense.config import Settings, load_settings
from clisense.exceptions import CatalogError, ClisenseError, ToolNotFound
from clisense.invariants import never
from clisense.live_result import LiveResultPipeline
from clisense.parsing import parse, resolve_context
from clisense.schema import (
    CatalogDTO,
    LiveQueryNotification,
    RunLineRequest,
    Status,
    StatusNotification,
)
from clisense.status import StatusPoller

RUN_LINE_COMMAND = "clisense.runLineInEditor"
TOGGLE_LIVE_QUERY_COMMAND = "clisense.toggleLiveQuery"
STATUS_NOTIFICATION = "clisense/status"
LIVE_QUERY_NOTIFICATION = "clisense/liveQuery"
INSTALL_ACTION = "Install..."
CLOSE_ACTION = "Close"
COMPLETION_TRIGGER_CHARACTERS = [" "]


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _require_payload(payload: object, *, command: str) -> dict[str, object]:
    if payload is None:
        never("missing command payload", command=command)
    if not isinstance(payload, dict):
        never(
            "invalid command payload type",
            command=command,
            payload_type=type(payload).__name__,
        )
    return payload


def _line_text(document, line: int) -> str:
    lines = document.lines
    if 0 <= line < len(lines):
        return lines[line].rstrip("\r\n")
    return ""


def _document_end(lines: list[str]) -> Position:
    if not lines:
        return Position(line=0, character=0)
    last = lines[-1]
    if last.endswith("\n"):
        return Position(line=len(lines), character=0)
    return Position(line=len(lines) - 1, character=len(last))


_START = Position(line=0, character=0)


class LspSideView:
    """Side view backed by a JSON file the client is asked to show.

    While the client has the document open, content is replaced through
    ``workspace/applyEdit``; otherwise the file itself is rewritten.
    """

    def __init__(self, ls: ClisenseServer, path: Path) -> None:
        self._ls = ls
        self.path = path

    async def open(self) -> Hashable:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("", encoding="utf-8")
        uri = self.path.as_uri()
        await self._ls.window_show_document_async(
            ShowDocumentParams(uri=uri, take_focus=False)
        )
        return uri

    async def replace(self, handle: Hashable, content: str) -> None:
        uri = str(handle)
        document = self._ls.workspace.text_documents.get(uri)
        if document is None:
            _uri_to_path(uri).write_text(content, encoding="utf-8")
            return
        edit = WorkspaceEdit(
            changes={
                uri: [
                    TextEdit(
                        range=Range(start=_START, end=_document_end(document.lines)),
                        new_text=content,
                    )
                ]
            }
        )
        await self._ls.workspace_apply_edit_async(
            ApplyWorkspaceEditParams(edit=edit, label="clisense result")
        )
        await self._ls.window_show_document_async(
            ShowDocumentParams(
                uri=uri,
                take_focus=False,
                selection=Range(start=_START, end=_START),
            )
        )


class ClisenseServer(LanguageServer):
    def __init__(self, *args, settings: Settings | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.dsl_documents: set[str] = set()
        self.poller: StatusPoller | None = None
        self.configure(settings or Settings())

    def configure(
        self,
        settings: Settings,
        *,
        backend: KnowledgeBackend | None = None,
    ) -> None:
        if self.poller is not None:
            self.poller.stop()
        self.settings = settings
        self.backend = backend or self._catalog_backend(settings)
        self.side_view = LspSideView(self, settings.effective_result_path)
        self.pipeline = LiveResultPipeline(
            self.side_view,
            query_enabled=settings.live_query_enabled,
            indent=settings.result_indent,
            on_query_toggled=self.publish_live_query,
            report=self.report_error,
        )
        self.poller = StatusPoller(
            self.backend,
            self.publish_status,
            interval=settings.status_interval_seconds,
        )

    def _catalog_backend(self, settings: Settings) -> CatalogBackend:
        catalog = CatalogDTO()
        if settings.catalog_path is not None:
            try:
                catalog = load_catalog(settings.catalog_path)
            except CatalogError as exc:
                logger.error("catalog not loaded: {}", exc)
        return CatalogBackend(
            catalog,
            tool=settings.tool_name,
            status_command=settings.status_command,
            not_found_handler=self.tool_not_found,
        )

    def is_dsl_document(self, uri: str) -> bool:
        return uri in self.dsl_documents

    def report_error(self, message: str) -> None:
        self.window_log_message(LogMessageParams(type=MessageType.Error, message=message))

    def publish_status(self, status: Status) -> None:
        visible = bool(status.message) and bool(self.dsl_documents)
        self.protocol.notify(
            STATUS_NOTIFICATION,
            StatusNotification(message=status.message, visible=visible).model_dump(),
        )

    def refresh_status(self) -> None:
        if self.poller is not None:
            self.publish_status(self.poller.last_status)

    def publish_live_query(self, enabled: bool) -> None:
        self.protocol.notify(
            LIVE_QUERY_NOTIFICATION,
            LiveQueryNotification(enabled=enabled).model_dump(),
        )

    async def tool_not_found(self, error: ToolNotFound) -> None:
        choice = await self.window_show_message_request_async(
            ShowMessageRequestParams(
                type=MessageType.Info,
                message=str(error),
                actions=[
                    MessageActionItem(title=INSTALL_ACTION),
                    MessageActionItem(title=CLOSE_ACTION),
                ],
            )
        )
        if choice is not None and choice.title == INSTALL_ACTION:
            await self.window_show_document_async(
                ShowDocumentParams(uri=self.settings.install_url, external=True)
            )

    async def check_tool(self) -> None:
        if isinstance(self.backend, CatalogBackend):
            await self.backend.ensure_available()

    def start_services(self) -> None:
        loop = asyncio.get_running_loop()
        loop.create_task(self.check_tool())
        if self.poller is not None:
            self.poller.start()

    def shutdown(self) -> None:
        if self.poller is not None:
            self.poller.stop()
        super().shutdown()


server = ClisenseServer("clisense", __version__)


@server.feature(INITIALIZED)
def initialized(ls: ClisenseServer, params: InitializedParams) -> None:
    root = Path(ls.workspace.root_path) if ls.workspace.root_path else None
    ls.configure(load_settings(root))
    ls.start_services()


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: ClisenseServer, params: DidOpenTextDocumentParams) -> None:
    document = params.text_document
    if document.language_id == ls.settings.language_id:
        ls.dsl_documents.add(document.uri)
        ls.refresh_status()


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: ClisenseServer, params: DidCloseTextDocumentParams) -> None:
    uri = params.text_document.uri
    ls.pipeline.close(uri)
    if uri in ls.dsl_documents:
        ls.dsl_documents.discard(uri)
        ls.refresh_status()


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
async def did_change(ls: ClisenseServer, params: DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    if not ls.is_dsl_document(uri) or len(params.content_changes) != 1:
        return
    change_range = getattr(params.content_changes[0], "range", None)
    if change_range is None or change_range.start.line != change_range.end.line:
        return
    document = ls.workspace.get_text_document(uri)
    await ls.pipeline.on_text_changed(_line_text(document, change_range.start.line))


@server.feature(
    TEXT_DOCUMENT_COMPLETION,
    CompletionOptions(trigger_characters=COMPLETION_TRIGGER_CHARACTERS),
)
async def completions(ls: ClisenseServer, params: CompletionParams) -> list[CompletionItem]:
    document = ls.workspace.get_text_document(params.text_document.uri)
    line = _line_text(document, params.position.line)
    context = resolve_context(
        line[: params.position.character],
        line=line,
        root=ls.settings.tool_name,
    )
    request = completion_request(context)
    if request is None:
        return []
    try:
        entries = await ls.backend.get_completions(request)
    except ClisenseError as exc:
        logger.warning("completions unavailable: {}", exc)
        return []
    return completion_items(entries, context, params.position)


@server.feature(TEXT_DOCUMENT_HOVER)
async def hover(ls: ClisenseServer, params: HoverParams) -> Hover | None:
    document = ls.workspace.get_text_document(params.text_document.uri)
    line = _line_text(document, params.position.line)
    target = hover_request(parse(line), params.position.character, ls.settings.tool_name)
    if target is None:
        return None
    request, node = target
    try:
        text = await ls.backend.get_hover(request)
    except ClisenseError as exc:
        logger.warning("hover unavailable: {}", exc)
        return None
    return hover_result(text, node, params.position.line)


@server.command(RUN_LINE_COMMAND)
async def run_line_in_editor(ls: ClisenseServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=RUN_LINE_COMMAND)
    try:
        request = RunLineRequest.model_validate(payload)
    except ValidationError as exc:
        return {"ok": False, "errors": [str(exc)]}
    document = ls.workspace.get_text_document(request.uri)
    line = _line_text(document, request.line)
    try:
        await ls.pipeline.run(line)
    except Exception as exc:  # noqa: BLE001
        logger.error("running {!r} failed: {}", line, exc)
        ls.report_error(f"running {line!r} failed: {exc}")
        return {"ok": False, "errors": [str(exc)]}
    return {"ok": True, "line": line, "parsed": ls.pipeline.state.has_result}


@server.command(TOGGLE_LIVE_QUERY_COMMAND)
async def toggle_live_query(ls: ClisenseServer, *_args: object) -> dict:
    enabled = await ls.pipeline.toggle_query()
    return {"enabled": enabled}


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
