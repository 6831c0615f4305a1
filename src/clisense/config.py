from __future__ import annotations

import tempfile
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "clisense.toml"
DEFAULT_TOOL_NAME = "az"
DEFAULT_LANGUAGE_ID = "azcli"
DEFAULT_INSTALL_URL = "https://aka.ms/GetTheAzureCLI"
DEFAULT_STATUS_INTERVAL_SECONDS = 5.0
DEFAULT_RESULT_INDENT = 4

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def tool_defaults(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "tool")


def live_query_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "live_query")


def status_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    return _section(load_config(root=root, config_path=config_path), "status")


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_text(value: TomlValue, default: str | None) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _as_positive_float(value: TomlValue, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _as_indent(value: TomlValue, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value >= 0:
        return value
    return default


def _resolve_path(value: str | None, base: Path) -> Path | None:
    if value is None:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def default_result_path() -> Path:
    return Path(tempfile.gettempdir()) / "clisense" / "result.json"


@dataclass(frozen=True)
class Settings:
    tool_name: str = DEFAULT_TOOL_NAME
    language_id: str = DEFAULT_LANGUAGE_ID
    install_url: str = DEFAULT_INSTALL_URL
    catalog_path: Path | None = None
    status_command: str | None = None
    live_query_enabled: bool = False
    result_path: Path | None = None
    result_indent: int = DEFAULT_RESULT_INDENT
    status_interval_seconds: float = DEFAULT_STATUS_INTERVAL_SECONDS

    @property
    def effective_result_path(self) -> Path:
        return self.result_path or default_result_path()


def settings_from_tables(
    *,
    tool: TomlTable,
    live_query: TomlTable,
    status: TomlTable,
    base: Path,
) -> Settings:
    return Settings(
        tool_name=_as_text(tool.get("name"), DEFAULT_TOOL_NAME) or DEFAULT_TOOL_NAME,
        language_id=_as_text(tool.get("language_id"), DEFAULT_LANGUAGE_ID)
        or DEFAULT_LANGUAGE_ID,
        install_url=_as_text(tool.get("install_url"), DEFAULT_INSTALL_URL)
        or DEFAULT_INSTALL_URL,
        catalog_path=_resolve_path(_as_text(tool.get("catalog"), None), base),
        status_command=_as_text(tool.get("status_command"), None),
        live_query_enabled=_as_bool(live_query.get("enabled")),
        result_path=_resolve_path(_as_text(live_query.get("result_path"), None), base),
        result_indent=_as_indent(live_query.get("indent"), DEFAULT_RESULT_INDENT),
        status_interval_seconds=_as_positive_float(
            status.get("interval_seconds"), DEFAULT_STATUS_INTERVAL_SECONDS
        ),
    )


def load_settings(
    root: Path | None = None,
    config_path: Path | None = None,
    *,
    overrides: TomlTable | None = None,
) -> Settings:
    """Read ``clisense.toml`` and apply explicit tool-section overrides."""
    data = load_config(root=root, config_path=config_path)
    if config_path is not None:
        base = config_path.parent
    else:
        base = root if root is not None else Path.cwd()
    tool = merge_payload(overrides or {}, _section(data, "tool"))
    return settings_from_tables(
        tool=tool,
        live_query=_section(data, "live_query"),
        status=_section(data, "status"),
        base=base,
    )
