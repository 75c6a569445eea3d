"""Row tokenizers, one per input form."""

from __future__ import annotations

import csv
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from .logging import get_logger
from .models import Cell, CellType, InputFormat, Row
from .normalizer import normalize_lines, normalize_text

logger = get_logger(__name__)

__all__ = ["tokenize", "tokenize_markup", "tokenize_delimited", "tokenize_plain_text"]


def _local_name(name: Optional[str]) -> str:
    return (name or "").split(":")[-1].lower()


def _attr(tag: Tag, local: str) -> Optional[str]:
    # lxml-xml keeps the "ss:" prefix on attribute keys, bare fragments may not.
    for key, value in tag.attrs.items():
        if _local_name(str(key)) == local:
            return value if isinstance(value, str) else " ".join(value)
    return None


def _is_element(local: str) -> Callable[[Tag], bool]:
    return lambda tag: isinstance(tag, Tag) and _local_name(tag.name) == local


def _column_index(cell: Tag, previous: int) -> int:
    raw = _attr(cell, "index")
    if raw is None:
        return previous + 1
    try:
        index = int(raw.strip())
    except ValueError:
        logger.warning("cell_index_invalid", value=raw)
        return previous + 1
    # A backwards index would overwrite earlier columns; keep appending instead.
    return index if index > previous else previous + 1


def _markup_cell(cell: Tag) -> Cell:
    data = cell.find(_is_element("data"))
    if data is None:
        return Cell.string()
    cell_type = CellType.from_markup(_attr(data, "type"))
    return Cell(cell_type, normalize_text(data.get_text()))


def tokenize_markup(markup: str) -> List[Row]:
    """Split spreadsheet markup into rows of typed cells.

    Honors the 1-based ``ss:Index`` column hint and fills skipped columns with
    empty String cells so that a cell's position is always its column.
    """
    soup = BeautifulSoup(markup, "xml")
    rows: List[Row] = []
    for row_tag in soup.find_all(_is_element("row")):
        cells: List[Cell] = []
        last_index = 0
        for cell_tag in row_tag.find_all(_is_element("cell"), recursive=False):
            column = _column_index(cell_tag, last_index)
            while len(cells) < column - 1:
                cells.append(Cell.string())
            cells.append(_markup_cell(cell_tag))
            last_index = column
        if cells:
            rows.append(Row(index=len(rows), cells=tuple(cells)))
    logger.debug("markup_tokenized", rows=len(rows))
    return rows


def tokenize_delimited(text: str) -> List[Row]:
    """One row per physical line, cells split on the quoted-CSV delimiter."""
    rows: List[Row] = []
    for line in text.splitlines():
        line = line.replace("\r", "")
        if not line.strip():
            continue
        try:
            fields = next(csv.reader([line], skipinitialspace=True))
        except csv.Error:
            logger.warning("delimited_line_unparsable", line=line[:80])
            fields = [line.strip('"')]
        cells = tuple(Cell.string(normalize_text(value)) for value in fields)
        if any(cell.value for cell in cells):
            rows.append(Row(index=len(rows), cells=cells))
    logger.debug("delimited_tokenized", rows=len(rows))
    return rows


def tokenize_plain_text(text: str) -> List[Row]:
    """One single-cell row per cleaned line of extracted text."""
    rows = [
        Row(index=index, cells=(Cell.string(line),))
        for index, line in enumerate(normalize_lines(text))
    ]
    logger.debug("plain_text_tokenized", rows=len(rows))
    return rows


TOKENIZERS: Dict[InputFormat, Callable[[str], List[Row]]] = {
    InputFormat.MARKUP: tokenize_markup,
    InputFormat.DELIMITED: tokenize_delimited,
    InputFormat.PLAIN_TEXT: tokenize_plain_text,
}


def tokenize(text: str, input_format: InputFormat) -> List[Row]:
    return TOKENIZERS[input_format](text)
