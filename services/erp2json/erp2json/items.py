"""Item table location and line-item extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from . import labels
from .config import ExtractorConfig
from .logging import get_logger
from .models import InputFormat, LineItem, Row
from .numeral import is_amount, money, parse_amount

logger = get_logger(__name__)

__all__ = [
    "TableState",
    "TableBounds",
    "ColumnMap",
    "TableExtraction",
    "LINE_PATTERNS",
    "is_header_row",
    "locate_table",
    "column_map",
    "clean_remark",
    "is_valid_remark",
    "extract_items",
]

_NUM = r"\d[\d,]*(?:\.\d+)?"
_UNITS = "|".join(re.escape(unit) for unit in sorted(labels.UNIT_WORDS, key=len, reverse=True))

# Line number, description, quantity, unit, unit price, amount.
STRICT_LINE = re.compile(
    rf"^(\d+)\s*([^0-9]+?)\s+({_NUM})\s+({_UNITS})\s+({_NUM})\s+({_NUM})$"
)
LOOSE_LINE = re.compile(rf"^(\d+)\s*(.+?)\s+({_NUM})\s+([^\s\d]\S*)\s+({_NUM})\s+({_NUM})$")
LINE_PATTERNS: Tuple[Pattern[str], ...] = (STRICT_LINE, LOOSE_LINE)

PRODUCT_CODE = re.compile(r"^(?=[A-Za-z0-9./-]*\d)(?=[A-Za-z0-9./-]*[A-Za-z])([A-Za-z0-9][A-Za-z0-9./-]{2,})\s+(\S.*)$")
BULLET = re.compile(r"^\s*[-•*]\s*")
PUNCTUATION_ONLY = re.compile(r"^[\s\W_]*$")
DIGITS_ONLY = re.compile(r"^[\d\s.,]+$")

FALLBACK_MIN_DESCRIPTION = 5

# ERP's standard layout: line number, code, description, quantity, unit, unit price.
STANDARD_POSITIONS = {"code": 1, "description": 2, "quantity": 3, "unit": 4, "unit_price": 5}

_CODE_COLUMN = ("รหัสสินค้า", "รหัส", "code")
_DESCRIPTION_COLUMN = ("รายละเอียด", "description", "สินค้า")
_AMOUNT_COLUMN = labels.HEADER_AMOUNT_LABELS + ("ราคารวม", "total")


class TableState(str, Enum):
    SEEKING_HEADER = "seeking_header"
    IN_TABLE = "in_table"
    DONE = "done"


@dataclass(frozen=True)
class TableBounds:
    header: int
    start: int
    end: int
    terminated: bool

    @property
    def summary_start(self) -> int:
        """First row that may carry the financial summary.

        Without a terminator the summary rows sit inside the open table, so
        they are read from the first body row on.
        """
        return self.end if self.terminated else self.start


@dataclass(frozen=True)
class ColumnMap:
    width: int
    code: int
    description: int
    quantity: int
    unit: int
    unit_price: int
    amount: Optional[int] = None


@dataclass
class TableExtraction:
    items: List[LineItem] = field(default_factory=list)
    bounds: Optional[TableBounds] = None
    pattern: Optional[int] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def header_found(self) -> bool:
        return self.bounds is not None


def is_header_row(text: str) -> bool:
    return (
        labels.contains_any(text, labels.HEADER_CODE_LABELS)
        and labels.contains_any(text, labels.HEADER_DESCRIPTION_LABELS)
        and labels.contains_any(text, labels.HEADER_QUANTITY_LABELS)
        and labels.contains_any(text, labels.HEADER_PRICE_LABELS)
    )


def locate_table(rows: Sequence[Row]) -> Optional[TableBounds]:
    """Run the header/terminator state machine over ``rows``."""
    state = TableState.SEEKING_HEADER
    header = -1
    for position, row in enumerate(rows):
        if state is TableState.SEEKING_HEADER:
            if is_header_row(row.text):
                header = position
                state = TableState.IN_TABLE
        elif state is TableState.IN_TABLE:
            if any(labels.is_table_terminator(cell.value) for cell in row.cells if cell.value):
                state = TableState.DONE
                return TableBounds(header=header, start=header + 1, end=position, terminated=True)
    if state is TableState.IN_TABLE:
        return TableBounds(header=header, start=header + 1, end=len(rows), terminated=False)
    return None


def _find_column(
    row: Row,
    wanted: Iterable[str],
    taken: Iterable[int] = (),
    excluded: Iterable[str] = (),
) -> Optional[int]:
    taken = set(taken)
    excluded = tuple(excluded)
    for label in wanted:
        for position, cell in enumerate(row.cells):
            if position in taken or not cell.value:
                continue
            if label.lower() in cell.value.lower() and not labels.contains_any(cell.value, excluded):
                return position
    return None


def column_map(header: Row) -> ColumnMap:
    """Column positions named by the header labels, standard positions otherwise."""
    amount = _find_column(header, _AMOUNT_COLUMN, excluded=("ราคา/หน่วย", "unit price"))
    taken = {amount} if amount is not None else set()
    code = _find_column(header, _CODE_COLUMN, taken)
    if code is not None:
        taken.add(code)
    description = _find_column(header, _DESCRIPTION_COLUMN, taken)
    if description is not None:
        taken.add(description)
    quantity = _find_column(header, labels.HEADER_QUANTITY_LABELS, taken)
    if quantity is not None:
        taken.add(quantity)
    unit_price = _find_column(header, labels.HEADER_PRICE_LABELS, taken)
    if unit_price is not None:
        taken.add(unit_price)
    unit = _find_column(header, labels.HEADER_UNIT_LABELS, taken)

    located = {
        "code": code,
        "description": description,
        "quantity": quantity,
        "unit": unit,
        "unit_price": unit_price,
    }
    resolved = {
        name: position if position is not None else STANDARD_POSITIONS[name]
        for name, position in located.items()
    }
    return ColumnMap(width=len(header), amount=amount, **resolved)


def clean_remark(text: str) -> str:
    return re.sub(r"\s+", " ", BULLET.sub("", text)).strip()


def is_valid_remark(text: str, config: ExtractorConfig) -> bool:
    if not (config.remark_min_length <= len(text) <= config.remark_max_length):
        return False
    if DIGITS_ONLY.match(text) or PUNCTUATION_ONLY.match(text):
        return False
    return not labels.is_summary_text(text)


def _split_product_code(description: str) -> Tuple[str, str]:
    match = PRODUCT_CODE.match(description)
    if not match:
        return "", description
    return match.group(1), match.group(2).strip()


def _clean_description(description: str) -> str:
    return re.sub(r"\s+", " ", description).strip(" \"'")


def _build_item(
    description: str,
    quantity: Optional[Decimal],
    unit_price: Optional[Decimal],
    amount: Optional[Decimal],
    product_code: str = "",
    unit: str = "",
    source_line_number: Optional[int] = None,
) -> Optional[LineItem]:
    """A qualifying item, or None; nothing is clamped."""
    description = _clean_description(description)
    if not description or labels.is_summary_text(description):
        return None
    if quantity is None or quantity <= 0 or amount is None or amount <= 0:
        return None
    if unit_price is None or unit_price <= 0:
        unit_price = money(amount / quantity)
    if unit_price is None or unit_price <= 0:
        return None
    return LineItem(
        line_number=0,
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        amount=amount,
        product_code=product_code,
        unit=unit,
        source_line_number=source_line_number,
    )


def _last_value(row: Row) -> Tuple[int, str]:
    for position in range(len(row) - 1, -1, -1):
        value = row.value(position)
        if value:
            return position, value
    return -1, ""


def _markup_item(row: Row, columns: ColumnMap) -> Optional[LineItem]:
    code = row.value(columns.code)
    if not code:
        return None
    quantity = parse_amount(row.value(columns.quantity))
    unit_price = parse_amount(row.value(columns.unit_price))
    position, value = _last_value(row)
    if position > columns.unit_price:
        amount = parse_amount(value)
    elif quantity is not None and unit_price is not None:
        amount = money(quantity * unit_price)
    else:
        amount = None
    unit = row.value(columns.unit)
    if is_amount(unit):
        unit = ""
    return _build_item(
        row.value(columns.description), quantity, unit_price, amount, product_code=code, unit=unit
    )


def _line_item(match: "re.Match[str]", min_description: int = 0) -> Optional[LineItem]:
    number, description, quantity, unit, unit_price, amount = match.groups()
    code, description = _split_product_code(_clean_description(description))
    if len(description) <= min_description:
        return None
    return _build_item(
        description,
        parse_amount(quantity),
        parse_amount(unit_price),
        parse_amount(amount),
        product_code=code,
        unit=unit.strip(),
        source_line_number=int(number),
    )


def _choose_pattern(lines: Sequence[str]) -> Optional[int]:
    for index, pattern in enumerate(LINE_PATTERNS):
        if any(pattern.match(line) for line in lines):
            return index
    return None


class _Collector:
    """Deduplicates items and folds remarks into the latest one."""

    def __init__(self, config: ExtractorConfig) -> None:
        self.config = config
        self.items: List[LineItem] = []
        self._numbers: set[int] = set()
        self._pairs: set[Tuple[str, Decimal]] = set()

    def add(self, item: Optional[LineItem]) -> bool:
        if item is None:
            return False
        pair = (item.description, item.amount)
        if item.source_line_number is not None and item.source_line_number in self._numbers:
            logger.debug("item_duplicate", line=item.source_line_number, reason="line_number")
            return False
        if pair in self._pairs:
            logger.debug("item_duplicate", description=item.description, reason="description_amount")
            return False
        if item.source_line_number is not None:
            self._numbers.add(item.source_line_number)
        self._pairs.add(pair)
        self.items.append(item)
        return True

    def remark(self, text: str) -> None:
        if not self.items:
            return
        remark = clean_remark(text)
        if is_valid_remark(remark, self.config):
            self.items[-1].remarks.append(remark)

    def finish(self) -> List[LineItem]:
        for number, item in enumerate(self.items, start=1):
            item.line_number = number
        return self.items


def _extract_markup(rows: Sequence[Row], bounds: TableBounds, config: ExtractorConfig) -> List[LineItem]:
    columns = column_map(rows[bounds.header])
    collector = _Collector(config)
    for row in rows[bounds.start:bounds.end]:
        if len(row) < columns.width:
            continue
        if collector.add(_markup_item(row, columns)):
            continue
        if not any(is_amount(cell.value) for cell in row.cells):
            collector.remark(row.text)
    return collector.finish()


def _extract_lines(lines: Sequence[str], pattern: Pattern[str], config: ExtractorConfig) -> List[LineItem]:
    collector = _Collector(config)
    for line in lines:
        match = pattern.match(line)
        if match:
            collector.add(_line_item(match))
        else:
            collector.remark(line)
    return collector.finish()


def _extract_fallback(lines: Sequence[str], config: ExtractorConfig) -> Tuple[List[LineItem], Optional[int]]:
    """Pattern scan without table bounds; no remark folding."""
    for index, pattern in enumerate(LINE_PATTERNS):
        collector = _Collector(config)
        for line in lines:
            match = pattern.match(line)
            if match:
                collector.add(_line_item(match, FALLBACK_MIN_DESCRIPTION))
        if collector.items:
            return collector.finish(), index
    return [], None


def extract_items(rows: Sequence[Row], input_format: InputFormat, config: ExtractorConfig) -> TableExtraction:
    result = TableExtraction(bounds=locate_table(rows))
    bounds = result.bounds

    if bounds is None:
        result.items, result.pattern = _extract_fallback([row.text for row in rows], config)
        logger.info("items_fallback_scan", count=len(result.items), pattern=result.pattern)
        return result

    if not bounds.terminated:
        result.diagnostics.append(
            f"table_terminator_missing: item table opened at row {bounds.header} was closed at end of document"
        )

    if input_format is InputFormat.MARKUP:
        result.items = _extract_markup(rows, bounds, config)
    else:
        lines = [row.text for row in rows[bounds.start:bounds.end]]
        result.pattern = _choose_pattern(lines)
        if result.pattern is not None:
            result.items = _extract_lines(lines, LINE_PATTERNS[result.pattern], config)

    logger.info(
        "items_extracted",
        count=len(result.items),
        header=bounds.header,
        end=bounds.end,
        pattern=result.pattern,
    )
    return result
