"""Tokenizer, line parser and cursor context resolution."""

from clisense.parsing.context import CursorContext, resolve_context
from clisense.parsing.parser import (
    Arguments,
    Command,
    Node,
    NodeKind,
    build_arguments,
    find_node,
    parse,
)
from clisense.parsing.tokenizer import Token, tokenize, unquote

__all__ = [
    "Arguments",
    "Command",
    "CursorContext",
    "Node",
    "NodeKind",
    "Token",
    "build_arguments",
    "find_node",
    "parse",
    "resolve_context",
    "tokenize",
    "unquote",
]
