"""Mapping between cursor contexts, backend answers and LSP items."""

from __future__ import annotations

from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    Hover,
    InsertTextFormat,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    TextEdit,
)

from clisense.parsing import Command, CursorContext, Node, NodeKind, find_node
from clisense.schema import (
    CompletionEntry,
    CompletionKind,
    CompletionRequest,
    HoverRequest,
    HoverText,
)

COMMIT_CHARACTERS = [" "]

COMPLETION_KINDS: dict[CompletionKind, CompletionItemKind] = {
    "group": CompletionItemKind.Module,
    "command": CompletionItemKind.Function,
    "parameter_name": CompletionItemKind.Variable,
    "parameter_value": CompletionItemKind.EnumMember,
    "snippet": CompletionItemKind.Snippet,
}


def completion_request(context: CursorContext) -> CompletionRequest | None:
    if not context.recognized:
        return None
    return CompletionRequest(
        subcommand=context.subcommand_path,
        argument=context.active_parameter_name,
        arguments=dict(context.arguments),
    )


def _trim(text: str, context: CursorContext) -> str:
    prefix = context.typed_prefix
    if prefix and text.startswith(prefix):
        return text[len(prefix):]
    lead = context.lead
    if lead and text.startswith(lead):
        return text[len(lead):]
    return text


def insert_text_for(entry: CompletionEntry, context: CursorContext) -> str:
    """Text to insert at the cursor so that already typed characters are not repeated."""
    if entry.snippet:
        return _trim(entry.snippet, context)
    return _trim(entry.name, context)


def matching_entries(
    entries: list[CompletionEntry], context: CursorContext
) -> list[CompletionEntry]:
    """Entries that extend the word already typed at the cursor."""
    prefix = context.typed_prefix
    return [entry for entry in entries if entry.name.startswith(prefix)]


def completion_items(
    entries: list[CompletionEntry],
    context: CursorContext,
    position: Position,
) -> list[CompletionItem]:
    cursor = Range(start=position, end=position)
    items: list[CompletionItem] = []
    for entry in matching_entries(entries, context):
        item = CompletionItem(
            label=entry.name,
            kind=COMPLETION_KINDS[entry.kind],
            filter_text=entry.name,
            text_edit=TextEdit(range=cursor, new_text=insert_text_for(entry, context)),
            commit_characters=list(COMMIT_CHARACTERS),
        )
        if entry.snippet:
            item.insert_text_format = InsertTextFormat.Snippet
        if entry.detail:
            item.detail = entry.detail
        if entry.documentation:
            item.documentation = entry.documentation
        items.append(item)
    return items


def hover_request(command: Command, offset: int, root: str) -> tuple[HoverRequest, Node] | None:
    """Backend hover request for the node under ``offset``, with that node."""
    if not command.has_root(root):
        return None
    node = find_node(command, offset)
    if node is None:
        return None
    words = [item.text for item in command.subcommand]
    if node.kind is NodeKind.SUBCOMMAND:
        index = command.subcommand.index(node)
        if index == 0:
            return None
        return HoverRequest(subcommand=" ".join(words[1 : index + 1])), node
    if node.kind is NodeKind.PARAMETER_NAME:
        return HoverRequest(subcommand=" ".join(words[1:]), argument=node.text), node
    return None


def node_range(node: Node, line: int) -> Range:
    return Range(
        start=Position(line=line, character=node.offset),
        end=Position(line=line, character=node.end),
    )


def hover_result(text: HoverText | None, node: Node, line: int) -> Hover | None:
    if text is None or not text.paragraphs:
        return None
    return Hover(
        contents=MarkupContent(kind=MarkupKind.Markdown, value="\n\n".join(text.paragraphs)),
        range=node_range(node, line),
    )
