from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, TypeAlias

from clisense.parsing.tokenizer import Token, tokenize


class NodeKind(str, Enum):
    SUBCOMMAND = "subcommand"
    PARAMETER_NAME = "parameter_name"
    PARAMETER_VALUE = "parameter_value"

    def __str__(self) -> str:
        return str(self.value)


Arguments: TypeAlias = dict[str, str | None]


@dataclass(frozen=True)
class Node:
    kind: NodeKind
    token: Token

    @property
    def text(self) -> str:
        return self.token.text

    @property
    def offset(self) -> int:
        return self.token.offset

    @property
    def length(self) -> int:
        return self.token.length

    @property
    def end(self) -> int:
        return self.token.end

    def contains(self, offset: int) -> bool:
        return self.offset <= offset < self.end


@dataclass(frozen=True)
class Command:
    line: str
    nodes: tuple[Node, ...] = ()
    subcommand: tuple[Node, ...] = field(default=())

    def has_root(self, root: str) -> bool:
        return bool(self.subcommand) and self.subcommand[0].text == root

    def subcommand_path(self, root: str) -> str:
        """Subcommand path without the root invocation token."""
        words = [node.text for node in self.subcommand]
        if words and words[0] == root:
            words = words[1:]
        return " ".join(words)

    def parameters(self) -> list[Node]:
        return [node for node in self.nodes if node.kind is NodeKind.PARAMETER_NAME]


def parse(line: str) -> Command:
    """Assemble the node sequence of ``line`` in one left-to-right pass.

    Non-dash tokens before the first dash-led token form the subcommand path
    (the root invocation token included). A dash-led token is a parameter
    name; a non-dash token directly after it is that parameter's value. Any
    other token is not modelled. Never raises.
    """
    nodes: list[Node] = []
    subcommand: list[Node] = []
    in_subcommand = True
    pending: Node | None = None
    for token in tokenize(line):
        if token.is_dash:
            in_subcommand = False
            pending = Node(NodeKind.PARAMETER_NAME, token)
            nodes.append(pending)
        elif in_subcommand:
            node = Node(NodeKind.SUBCOMMAND, token)
            nodes.append(node)
            subcommand.append(node)
        elif pending is not None:
            nodes.append(Node(NodeKind.PARAMETER_VALUE, token))
            pending = None
    return Command(line=line, nodes=tuple(nodes), subcommand=tuple(subcommand))


def find_node(command: Command, offset: int) -> Node | None:
    nodes = command.nodes
    index = bisect_right([node.offset for node in nodes], offset) - 1
    if index < 0:
        return None
    node = nodes[index]
    return node if node.contains(offset) else None


def arguments_from_tokens(tokens: Iterable[Token]) -> Arguments:
    args: Arguments = {}
    name: str | None = None
    for token in tokens:
        if token.is_dash:
            name = token.text
            args[name] = None
        else:
            if name is not None:
                args[name] = token.text
            name = None
    return args


def build_arguments(line: str) -> Arguments:
    """Map each parameter name to the literal text of its value, or None."""
    return arguments_from_tokens(tokenize(line))
