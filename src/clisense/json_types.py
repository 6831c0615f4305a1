"""JSON-like value types for command output and transport payloads."""

from __future__ import annotations

import json
from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONArray: TypeAlias = list[JSONValue]

DEFAULT_INDENT = 4


def dump_json(value: JSONValue, *, indent: int | None = DEFAULT_INDENT) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False)
