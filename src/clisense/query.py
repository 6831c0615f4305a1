from __future__ import annotations

import re

import jmespath
from jmespath import exceptions as jmespath_exceptions

from clisense.exceptions import QueryError
from clisense.json_types import JSONValue

QUERY_PARAMETER = "--query"

_QUERY_RE = re.compile(
    r"""\s--query\s+("([^"]*)"|'([^']*)'|([^\s"']+))"""
)

# Syntax-class failures: the expression is incomplete or not valid yet.
_PARSE_ERRORS: tuple[type[Exception], ...] = (
    jmespath_exceptions.ParseError,
    jmespath_exceptions.EmptyExpressionError,
)


def extract_query(line: str) -> str | None:
    """Return the ``--query`` expression written on ``line`` without quotes.

    An empty quoted expression counts as absent.
    """
    match = _QUERY_RE.search(line)
    if match is None:
        return None
    for group in match.groups()[1:]:
        if group:
            return group
    return None


def is_parse_error(exc: BaseException) -> bool:
    return isinstance(exc, _PARSE_ERRORS)


def evaluate(value: JSONValue, expression: str) -> JSONValue:
    try:
        return jmespath.search(expression, value)
    except jmespath_exceptions.JMESPathError as exc:
        raise QueryError(
            str(exc) or type(exc).__name__,
            expression=expression,
            parse_error=is_parse_error(exc),
        ) from exc
