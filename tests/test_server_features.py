from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace

import pytest

pytest.importorskip("pygls")
pytest.importorskip("lsprotocol")

from lsprotocol.types import (
    CompletionParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    HoverParams,
    MessageActionItem,
    Position,
    Range,
    TextDocumentIdentifier,
    TextDocumentItem,
)

from clisense import server
from clisense.backend import CatalogBackend
from clisense.config import Settings
from clisense.exceptions import NeverThrown
from clisense.executor import ExecutionResult
from clisense.live_result import LiveResultPipeline
from clisense.schema import Status
from tests.side_views import FailingSideView, RecordingSideView, fixed_executor

URI = "file:///work/commands.azcli"


def _document(*lines: str) -> SimpleNamespace:
    return SimpleNamespace(lines=list(lines))


def _fake_ls(backend: CatalogBackend, *lines: str, **extra) -> SimpleNamespace:
    document = _document(*lines)
    return SimpleNamespace(
        workspace=SimpleNamespace(get_text_document=lambda _uri: document),
        settings=Settings(),
        backend=backend,
        **extra,
    )


class _FakeClient:
    def __init__(self, open_documents: dict[str, object] | None = None) -> None:
        self.workspace = SimpleNamespace(text_documents=open_documents or {})
        self.shown: list[object] = []
        self.edits: list[object] = []

    async def window_show_document_async(self, params):
        self.shown.append(params)

    async def workspace_apply_edit_async(self, params):
        self.edits.append(params)


def _server(monkeypatch, **settings) -> tuple[server.ClisenseServer, list[tuple[str, dict]]]:
    ls = server.ClisenseServer("clisense-test", "0", settings=Settings(**settings))
    sent: list[tuple[str, dict]] = []
    monkeypatch.setattr(
        ls.protocol, "notify", lambda method, params=None: sent.append((method, params))
    )
    return ls, sent


def test_document_end() -> None:
    assert server._document_end([]) == Position(line=0, character=0)
    assert server._document_end(["{\n", "}"]) == Position(line=1, character=1)
    assert server._document_end(["{}\n"]) == Position(line=1, character=0)


def test_line_text_strips_line_endings() -> None:
    document = _document("az vm list\r\n", "az group list")
    assert server._line_text(document, 0) == "az vm list"
    assert server._line_text(document, 1) == "az group list"
    assert server._line_text(document, 5) == ""


def test_completions_feature(backend: CatalogBackend) -> None:
    ls = _fake_ls(backend, "# comment\n", "az vm create --na\n")
    params = CompletionParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=1, character=17),
    )
    items = asyncio.run(server.completions(ls, params))
    labels = [item.label for item in items]
    assert labels == ["--name"]
    assert items[0].text_edit.new_text == "me"


def test_completions_ignore_foreign_lines(backend: CatalogBackend) -> None:
    ls = _fake_ls(backend, "echo vm ")
    params = CompletionParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=0, character=8),
    )
    assert asyncio.run(server.completions(ls, params)) == []


def test_hover_feature(backend: CatalogBackend) -> None:
    ls = _fake_ls(backend, "az vm create -g rg")
    params = HoverParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=0, character=14),
    )
    hover = asyncio.run(server.hover(ls, params))
    assert hover.contents.value == "`--resource-group -g`\n\nName of resource group."
    assert hover.range.start == Position(line=0, character=13)

    params = HoverParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=0, character=17),
    )
    assert asyncio.run(server.hover(ls, params)) is None


def test_run_line_command(backend: CatalogBackend) -> None:
    view = RecordingSideView()
    calls: list[str] = []
    pipeline = LiveResultPipeline(
        view, executor=fixed_executor(ExecutionResult(ok=True, stdout="[1]"), calls)
    )
    ls = _fake_ls(backend, "az vm list\n", "az group list -o json\n", pipeline=pipeline)
    result = asyncio.run(server.run_line_in_editor(ls, {"uri": URI, "line": 1}))
    assert result == {"ok": True, "line": "az group list -o json", "parsed": True}
    assert calls == ["az group list -o json"]
    assert view.content == "[1]"


def test_run_line_command_rejects_bad_payloads(backend: CatalogBackend) -> None:
    ls = _fake_ls(backend, "az vm list")
    with pytest.raises(NeverThrown):
        asyncio.run(server.run_line_in_editor(ls, None))
    with pytest.raises(NeverThrown):
        asyncio.run(server.run_line_in_editor(ls, ["not", "a", "dict"]))
    result = asyncio.run(server.run_line_in_editor(ls, {"uri": URI}))
    assert result["ok"] is False
    assert result["errors"]


def test_toggle_live_query_command(backend: CatalogBackend) -> None:
    toggled: list[bool] = []
    pipeline = LiveResultPipeline(RecordingSideView(), on_query_toggled=toggled.append)
    ls = _fake_ls(backend, pipeline=pipeline)
    assert asyncio.run(server.toggle_live_query(ls)) == {"enabled": True}
    assert asyncio.run(server.toggle_live_query(ls)) == {"enabled": False}
    assert toggled == [True, False]


def test_did_change_updates_query(backend: CatalogBackend) -> None:
    seen: list[str] = []

    async def _on_text_changed(line: str) -> None:
        seen.append(line)

    ls = _fake_ls(
        backend,
        "az vm list --query '[0]'\n",
        pipeline=SimpleNamespace(on_text_changed=_on_text_changed),
        is_dsl_document=lambda uri: uri == URI,
    )

    def _params(uri: str, start_line: int, end_line: int, changes: int = 1):
        change = SimpleNamespace(
            range=Range(
                start=Position(line=start_line, character=0),
                end=Position(line=end_line, character=0),
            ),
            text="",
        )
        return SimpleNamespace(
            text_document=SimpleNamespace(uri=uri),
            content_changes=[change] * changes,
        )

    asyncio.run(server.did_change(ls, _params(URI, 0, 0)))
    asyncio.run(server.did_change(ls, _params(URI, 0, 1)))
    asyncio.run(server.did_change(ls, _params(URI, 0, 0, changes=2)))
    asyncio.run(server.did_change(ls, _params("file:///other.txt", 0, 0)))
    assert seen == ["az vm list --query '[0]'"]


def test_initialized_loads_workspace_settings(tmp_path: Path) -> None:
    (tmp_path / "clisense.toml").write_text("[tool]\nname = 'gh'\n", encoding="utf-8")
    configured: list[Settings] = []
    started: list[bool] = []
    ls = SimpleNamespace(
        workspace=SimpleNamespace(root_path=str(tmp_path)),
        configure=configured.append,
        start_services=lambda: started.append(True),
    )
    server.initialized(ls, None)
    assert configured[0].tool_name == "gh"
    assert started == [True]


def test_configure_loads_catalog(monkeypatch, catalog_path: Path, tmp_path: Path) -> None:
    ls, _ = _server(monkeypatch, catalog_path=catalog_path, result_path=tmp_path / "r.json")
    assert "vm create" in ls.backend.catalog.commands
    assert ls.side_view.path == tmp_path / "r.json"

    ls.configure(Settings(catalog_path=tmp_path / "missing.yaml"))
    assert ls.backend.catalog.commands == {}


def test_status_visibility_follows_open_documents(monkeypatch) -> None:
    ls, sent = _server(monkeypatch)
    item = TextDocumentItem(uri=URI, language_id="azcli", version=1, text="az vm list")
    server.did_open(ls, DidOpenTextDocumentParams(text_document=item))
    other = TextDocumentItem(uri="file:///x.py", language_id="python", version=1, text="")
    server.did_open(ls, DidOpenTextDocumentParams(text_document=other))
    assert ls.dsl_documents == {URI}

    ls.poller.last_status = Status(message="My Subscription")
    ls.refresh_status()
    server.did_close(
        ls, DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI))
    )
    assert sent == [
        (server.STATUS_NOTIFICATION, {"message": "", "visible": False}),
        (server.STATUS_NOTIFICATION, {"message": "My Subscription", "visible": True}),
        (server.STATUS_NOTIFICATION, {"message": "My Subscription", "visible": False}),
    ]


def test_live_query_toggle_is_published(monkeypatch) -> None:
    ls, sent = _server(monkeypatch)
    asyncio.run(ls.pipeline.toggle_query())
    assert sent == [(server.LIVE_QUERY_NOTIFICATION, {"enabled": True})]


def test_tool_not_found_offers_install(monkeypatch, catalog) -> None:
    ls, _ = _server(monkeypatch)
    requests: list[object] = []
    shown: list[object] = []

    async def _request(params):
        requests.append(params)
        return MessageActionItem(title=server.INSTALL_ACTION)

    async def _show(params):
        shown.append(params)

    monkeypatch.setattr(ls, "window_show_message_request_async", _request)
    monkeypatch.setattr(ls, "window_show_document_async", _show)
    ls.configure(
        ls.settings,
        backend=CatalogBackend(
            catalog, not_found_handler=ls.tool_not_found, which=lambda _name: None
        ),
    )
    asyncio.run(ls.check_tool())
    asyncio.run(ls.check_tool())
    assert len(requests) == 1
    assert "'az' not found on PATH" in requests[0].message
    assert [action.title for action in requests[0].actions] == ["Install...", "Close"]
    assert shown[0].uri == "https://aka.ms/GetTheAzureCLI"
    assert shown[0].external is True


def test_tool_not_found_close_does_nothing(monkeypatch) -> None:
    ls, _ = _server(monkeypatch)
    shown: list[object] = []

    async def _request(params):
        return MessageActionItem(title=server.CLOSE_ACTION)

    async def _show(params):
        shown.append(params)

    monkeypatch.setattr(ls, "window_show_message_request_async", _request)
    monkeypatch.setattr(ls, "window_show_document_async", _show)
    asyncio.run(ls.tool_not_found(server.ToolNotFound("az")))
    assert shown == []


def test_side_view_open_and_replace_file(tmp_path: Path) -> None:
    client = _FakeClient()
    view = server.LspSideView(client, tmp_path / "out" / "result.json")
    handle = asyncio.run(view.open())
    assert handle == (tmp_path / "out" / "result.json").as_uri()
    assert client.shown[0].take_focus is False
    asyncio.run(view.replace(handle, "[1, 2]"))
    assert (tmp_path / "out" / "result.json").read_text(encoding="utf-8") == "[1, 2]"
    assert client.edits == []


def test_side_view_replace_open_document(tmp_path: Path) -> None:
    path = tmp_path / "result.json"
    uri = path.as_uri()
    client = _FakeClient({uri: _document("{\n", "  \"a\": 1\n", "}")})
    view = server.LspSideView(client, path)
    asyncio.run(view.replace(uri, "1"))
    edit = client.edits[0].edit.changes[uri][0]
    assert edit.new_text == "1"
    assert edit.range.start == Position(line=0, character=0)
    assert edit.range.end == Position(line=2, character=1)
    assert client.shown[-1].selection.start == Position(line=0, character=0)


def test_start_uses_given_function() -> None:
    called: list[bool] = []
    server.start(lambda: called.append(True))
    assert called == [True]


def test_run_line_command_reports_side_view_failures(backend: CatalogBackend) -> None:
    reported: list[str] = []
    pipeline = LiveResultPipeline(
        FailingSideView(fail_after=1),
        executor=fixed_executor(ExecutionResult(ok=True, stdout="[1]")),
    )
    ls = _fake_ls(backend, "az vm list", pipeline=pipeline, report_error=reported.append)
    result = asyncio.run(server.run_line_in_editor(ls, {"uri": URI, "line": 0}))
    assert result == {"ok": False, "errors": ["edit rejected"]}
    assert len(reported) == 1
    assert "edit rejected" in reported[0]
    assert pipeline.state.phase.value == "failed"
