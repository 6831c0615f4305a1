from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (ROOT, SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from clisense.backend import CatalogBackend, load_catalog
from clisense.schema import CatalogDTO


@pytest.fixture
def catalog_path() -> Path:
    return ROOT / "catalogs" / "az.yaml"


@pytest.fixture
def catalog(catalog_path: Path) -> CatalogDTO:
    return load_catalog(catalog_path)


@pytest.fixture
def backend(catalog: CatalogDTO) -> CatalogBackend:
    return CatalogBackend(catalog, tool="az", which=lambda _name: "/usr/bin/az")
