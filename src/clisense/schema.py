from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel

CompletionKind = Literal["group", "command", "parameter_name", "parameter_value", "snippet"]


class CompletionRequest(BaseModel):
    subcommand: Optional[str] = None
    argument: Optional[str] = None
    arguments: Dict[str, Optional[str]] = {}


class CompletionEntry(BaseModel):
    name: str
    kind: CompletionKind
    detail: Optional[str] = None
    documentation: Optional[str] = None
    snippet: Optional[str] = None


class HoverRequest(BaseModel):
    subcommand: str
    argument: Optional[str] = None


class HoverText(BaseModel):
    paragraphs: List[str]


class Status(BaseModel):
    message: str = ""


class RunLineRequest(BaseModel):
    uri: str
    line: int


class StatusNotification(BaseModel):
    message: str
    visible: bool


class LiveQueryNotification(BaseModel):
    enabled: bool


class CatalogParameterDTO(BaseModel):
    summary: str = ""
    options: List[str] = []
    required: bool = False


class CatalogGroupDTO(BaseModel):
    summary: str = ""
    description: str = ""


class CatalogCommandDTO(BaseModel):
    summary: str = ""
    description: str = ""
    parameters: Dict[str, CatalogParameterDTO] = {}


class CatalogDTO(BaseModel):
    groups: Dict[str, CatalogGroupDTO] = {}
    commands: Dict[str, CatalogCommandDTO] = {}
