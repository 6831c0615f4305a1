from __future__ import annotations

import re
from dataclasses import dataclass, field

from clisense.parsing.parser import Arguments, build_arguments

DEFAULT_ROOT = "az"

# Leading run of whitespace-terminated words that do not start with a dash.
_SUBCOMMAND_RE = re.compile(r"^\s*((?:[^-\s]\S*\s+)*)")
# Dash-led word followed by whitespace and a (possibly empty) non-dash
# placeholder that reaches the cursor.
_ARGUMENT_RE = re.compile(r"\s(-[^\s\"']*)\s+[^-\s]*\Z")
_PREFIX_RE = re.compile(r"(?:^|\s)(\S*)\Z")
_LEAD_RE = re.compile(r"^-*")


@dataclass(frozen=True)
class CursorContext:
    subcommand_path: str = ""
    active_parameter_name: str | None = None
    typed_prefix: str = ""
    lead: str = ""
    arguments: Arguments = field(default_factory=dict)
    recognized: bool = False

    @property
    def subcommand_words(self) -> list[str]:
        return self.subcommand_path.split()


def subcommand_words(text_before_cursor: str) -> list[str]:
    match = _SUBCOMMAND_RE.match(text_before_cursor)
    raw = match.group(1) if match else ""
    return raw.split()


def active_argument(text_before_cursor: str) -> str | None:
    match = _ARGUMENT_RE.search(text_before_cursor)
    return match.group(1) if match else None


def typed_prefix(text_before_cursor: str) -> str:
    match = _PREFIX_RE.search(text_before_cursor)
    return match.group(1) if match else ""


def resolve_context(
    text_before_cursor: str,
    *,
    line: str | None = None,
    root: str = DEFAULT_ROOT,
) -> CursorContext:
    """Derive the completion intent at the end of ``text_before_cursor``.

    Works on partial input without building a node tree. ``line`` is the
    full source line used for the arguments map; without it only the text
    before the cursor is considered.
    """
    words = subcommand_words(text_before_cursor)
    recognized = bool(words) and words[0] == root
    prefix = typed_prefix(text_before_cursor)
    lead_match = _LEAD_RE.match(prefix)
    return CursorContext(
        subcommand_path=" ".join(words[1:]) if recognized else "",
        active_parameter_name=active_argument(text_before_cursor),
        typed_prefix=prefix,
        lead=lead_match.group(0) if lead_match else "",
        arguments=build_arguments(text_before_cursor if line is None else line),
        recognized=recognized,
    )
