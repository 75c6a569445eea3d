from pathlib import Path

import pytest

from erp2json.config import ExtractorConfig
from erp2json.models import Cell, CellType, Row

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture()
def config():
    return ExtractorConfig()


@pytest.fixture()
def fixture_path():
    return lambda name: FIXTURES / name


def make_rows(*rows):
    """Rows of String cells; a ``(type, value)`` tuple gives a typed cell."""
    built = []
    for index, values in enumerate(rows):
        cells = []
        for value in values:
            if isinstance(value, tuple):
                cells.append(Cell(CellType(value[0]), value[1]))
            else:
                cells.append(Cell.string(value))
        built.append(Row(index=index, cells=tuple(cells)))
    return built


def text_rows(text):
    return make_rows(*([line.strip()] for line in text.strip().splitlines() if line.strip()))
