"""Invariant markers."""

from __future__ import annotations

from typing import NoReturn

from clisense.exceptions import NeverThrown


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as unreachable.

    The env payload is carried on the exception for diagnostics only.
    """
    detail = ", ".join(f"{key}={value!r}" for key, value in sorted(env.items()))
    message = reason or "never() marker reached"
    if detail:
        message = f"{message} ({detail})"
    raise NeverThrown(message, env=env)
