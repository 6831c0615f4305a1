"""Error types raised across clisense."""

from __future__ import annotations


class ClisenseError(RuntimeError):
    pass


class ToolNotFound(ClisenseError):
    """The command line tool backing the knowledge service is not on PATH."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"'{tool}' not found on PATH, make sure it is installed.")
        self.tool = tool


class CatalogError(ClisenseError):
    pass


class QueryError(ClisenseError):
    """A query expression could not be evaluated.

    ``parse_error`` separates expressions that are syntactically incomplete or
    invalid (expected while the user is still typing) from evaluation failures
    against the data.
    """

    def __init__(self, message: str, *, expression: str, parse_error: bool) -> None:
        super().__init__(message)
        self.expression = expression
        self.parse_error = parse_error


class NeverThrown(ClisenseError):
    """Raised by never() when a state that should be unreachable is reached."""

    def __init__(self, message: str, *, env: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.env = dict(env or {})
