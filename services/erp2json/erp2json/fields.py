"""Document-level field extraction.

A single ordered pass over every cell of every row. Each recognizer claims one
or more ``DocumentMeta`` fields; a claimed field is never overwritten, so the
list order below is the priority order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Pattern, Sequence, Set, Tuple

from . import labels
from .config import ExtractorConfig
from .dates import find_dates, parse_date
from .logging import get_logger
from .models import CellType, DocumentMeta, DocumentType, InputFormat, Row
from .numeral import first_int

logger = get_logger(__name__)

__all__ = ["FieldRecognizer", "ScanContext", "RECOGNIZERS", "extract_fields"]

LABEL_WINDOW = 30

COMPANY_PHRASE = re.compile(r"(?:บริษัท|บมจ\.?)\s*\S.*?\s*จำกัด(?:\s*\(มหาชน\))?")


def _bounded(pattern: Pattern[str]) -> Pattern[str]:
    return re.compile(rf"(?<![A-Za-z0-9]){pattern.pattern}(?![A-Za-z0-9])")


_LINE_QUOTATION = _bounded(labels.QUOTATION_NUMBER)
_LINE_SALES_ORDER = _bounded(labels.SALES_ORDER_NUMBER)
_LINE_CUSTOMER = _bounded(labels.CUSTOMER_CODE)
_LINE_SALES_PERSON = _bounded(labels.SALES_PERSON)
_LINE_PO = _bounded(labels.PO_REFERENCE)


@dataclass
class ScanContext:
    rows: Sequence[Row]
    input_format: InputFormat
    config: ExtractorConfig
    meta: DocumentMeta = field(default_factory=DocumentMeta)
    claimed: Set[str] = field(default_factory=set)
    deferred_dates: List[date] = field(default_factory=list)
    customer_row: Optional[int] = None

    @property
    def markup(self) -> bool:
        return self.input_format is InputFormat.MARKUP

    def is_claimed(self, name: str) -> bool:
        return name in self.claimed

    def claim(self, name: str, value: object) -> bool:
        if name in self.claimed or value is None or value == "":
            return False
        setattr(self.meta, name, value)
        self.claimed.add(name)
        logger.debug("field_claimed", field=name, value=str(value))
        return True


@dataclass(frozen=True)
class FieldRecognizer:
    name: str
    fields: Tuple[str, ...]
    recognize: Callable[[ScanContext, int, int], None]

    def __call__(self, ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
        if all(ctx.is_claimed(name) for name in self.fields):
            return
        self.recognize(ctx, row_pos, cell_pos)


def _cell(ctx: ScanContext, row_pos: int, cell_pos: int) -> str:
    return ctx.rows[row_pos].value(cell_pos)


def _shape(ctx: ScanContext, value: str, exact: Pattern[str], bounded: Pattern[str]) -> Optional[str]:
    if ctx.markup:
        return value if exact.fullmatch(value) else None
    match = bounded.search(value)
    return match.group(0) if match else None


def _next_value(row: Row, cell_pos: int) -> Optional[str]:
    for position in range(cell_pos + 1, len(row)):
        value = row.value(position)
        if value:
            return value
    return None


def _recognize_number(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
    value = _cell(ctx, row_pos, cell_pos)
    if ctx.markup:
        found = [(0, value)] if labels.QUOTATION_NUMBER.fullmatch(value) or labels.SALES_ORDER_NUMBER.fullmatch(value) else []
    else:
        found = sorted(
            (match.start(), match.group(0))
            for pattern in (_LINE_QUOTATION, _LINE_SALES_ORDER)
            for match in pattern.finditer(value)
        )
    if not found:
        return
    number = found[0][1]
    doc_type = DocumentType.QUOTATION if number.startswith("QT") else DocumentType.SALES_ORDER
    if ctx.claim("document_number", number):
        ctx.claim("document_type", doc_type)


def _recognize_customer_code(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
    code = _shape(ctx, _cell(ctx, row_pos, cell_pos), labels.CUSTOMER_CODE, _LINE_CUSTOMER)
    if ctx.claim("customer_code", code):
        ctx.customer_row = row_pos


def _recognize_sales_person(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
    value = _cell(ctx, row_pos, cell_pos)
    if ctx.markup:
        ctx.claim("sales_person", value if labels.SALES_PERSON.match(value) else None)
        return
    match = _LINE_SALES_PERSON.search(value)
    ctx.claim("sales_person", match.group(0) if match else None)


def _recognize_po_reference(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
    value = _cell(ctx, row_pos, cell_pos)
    if ctx.markup:
        ctx.claim("po_reference", value if labels.PO_REFERENCE.match(value) else None)
        return
    match = _LINE_PO.search(value)
    ctx.claim("po_reference", match.group(0) if match else None)


def _labeled_value(name: str, label_set: Tuple[str, ...], convert: Callable[[str], object] = str.strip):
    def recognize(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
        # Line forms have no reliable column adjacency.
        if not ctx.markup:
            return
        value = _cell(ctx, row_pos, cell_pos)
        if not labels.contains_any(value, label_set):
            return
        following = _next_value(ctx.rows[row_pos], cell_pos)
        if following is not None:
            ctx.claim(name, convert(following))

    return recognize


def _recognize_validity(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
    value = _cell(ctx, row_pos, cell_pos)
    if labels.contains_any(value, labels.DUE_DATE_LABELS):
        return
    _labeled_value("valid_days", labels.VALIDITY_LABELS, first_int)(ctx, row_pos, cell_pos)


def _date_field(label_text: str) -> Optional[str]:
    label = labels.compact(label_text[-LABEL_WINDOW:])
    if labels.contains_any(label, labels.DELIVERY_DATE_LABELS):
        return "delivery_date"
    if labels.contains_any(label, labels.DUE_DATE_LABELS):
        return "due_date"
    if labels.contains_any(label, labels.DOCUMENT_DATE_LABELS):
        return "document_date"
    return None


def _previous_value(row: Row, cell_pos: int) -> str:
    for position in range(cell_pos - 1, -1, -1):
        value = row.value(position)
        if value:
            return value
    return ""


def _assign_date(ctx: ScanContext, label_text: str, value: date) -> None:
    target = _date_field(label_text)
    if target is not None:
        ctx.claim(target, value)
    elif not ctx.is_claimed("document_date") and not ctx.deferred_dates:
        ctx.claim("document_date", value)
    else:
        ctx.deferred_dates.append(value)


def _recognize_dates(ctx: ScanContext, row_pos: int, cell_pos: int) -> None:
    row = ctx.rows[row_pos]
    cell = row.cells[cell_pos]
    if not cell.value:
        return
    if cell.type is CellType.DATETIME:
        value = parse_date(cell.value)
        if value is not None:
            _assign_date(ctx, _previous_value(row, cell_pos), value)
        return

    consumed = 0
    for start, end, value in find_dates(cell.value):
        label_text = cell.value[consumed:start]
        if consumed == 0 and not label_text.strip() and ctx.markup:
            label_text = _previous_value(row, cell_pos)
        _assign_date(ctx, label_text, value)
        consumed = end


RECOGNIZERS: List[FieldRecognizer] = [
    FieldRecognizer("document_number", ("document_number", "document_type"), _recognize_number),
    FieldRecognizer("customer_code", ("customer_code",), _recognize_customer_code),
    FieldRecognizer("sales_person", ("sales_person",), _recognize_sales_person),
    FieldRecognizer("po_reference", ("po_reference",), _recognize_po_reference),
    FieldRecognizer(
        "payment_term", ("payment_term",), _labeled_value("payment_term", labels.PAYMENT_TERM_LABELS)
    ),
    FieldRecognizer(
        "contact_person", ("contact_person",), _labeled_value("contact_person", labels.CONTACT_LABELS)
    ),
    FieldRecognizer("valid_days", ("valid_days",), _recognize_validity),
    FieldRecognizer("dates", ("document_date", "due_date", "delivery_date"), _recognize_dates),
]


def _resolve_deferred_dates(ctx: ScanContext) -> None:
    if not ctx.deferred_dates:
        return
    if ctx.meta.document_type is DocumentType.QUOTATION:
        target = "due_date"
    elif ctx.meta.document_type is DocumentType.SALES_ORDER:
        target = "delivery_date"
    else:
        logger.debug("deferred_dates_dropped", count=len(ctx.deferred_dates))
        return
    ctx.claim(target, ctx.deferred_dates[0])


def _second_column(row: Optional[Row]) -> Optional[str]:
    if row is None or len(row) < 2:
        return None
    return row.value(1) or None


def _company_cell(ctx: ScanContext, row: Row) -> Optional[str]:
    for cell in row.cells:
        if cell.type is not CellType.STRING or cell.value == ctx.meta.customer_code:
            continue
        if labels.is_company_name(cell.value) and not ctx.config.is_seller(cell.value):
            return cell.value
    return None


def _resolve_customer_block(ctx: ScanContext) -> None:
    """Name and address from the rows around the customer code."""
    if ctx.customer_row is None:
        return

    def row_at(offset: int) -> Optional[Row]:
        position = ctx.customer_row + offset
        return ctx.rows[position] if position < len(ctx.rows) else None

    same_row = _company_cell(ctx, ctx.rows[ctx.customer_row])
    if same_row is not None:
        ctx.claim("customer_name", same_row)
        first_address = 1
    else:
        name_row = row_at(1)
        name = _second_column(name_row)
        if name is None and name_row is not None:
            name = _company_cell(ctx, name_row)
        if not ctx.claim("customer_name", name):
            return
        first_address = 2

    ctx.claim("address_line1", _second_column(row_at(first_address)))
    second = _second_column(row_at(first_address + 1))
    if second is not None and not labels.contains_any(second, labels.CONTACT_LABELS):
        ctx.claim("address_line2", second)


def _resolve_customer_phrase(ctx: ScanContext) -> None:
    """First company phrase that is not the seller's own letterhead."""
    fallback: Optional[str] = None
    for row in ctx.rows:
        for cell in row.cells:
            for match in COMPANY_PHRASE.finditer(cell.value):
                if not ctx.config.is_seller(match.group(0)):
                    ctx.claim("customer_name", match.group(0).strip())
                    return
            if (
                fallback is None
                and labels.contains_any(cell.value, labels.COMPANY_MARKERS)
                and not ctx.config.is_seller(cell.value)
            ):
                fallback = cell.value
    ctx.claim("customer_name", fallback)


def extract_fields(
    rows: Sequence[Row], input_format: InputFormat, config: ExtractorConfig
) -> DocumentMeta:
    ctx = ScanContext(rows=rows, input_format=input_format, config=config)
    for row_pos, row in enumerate(rows):
        for cell_pos in range(len(row)):
            for recognizer in RECOGNIZERS:
                recognizer(ctx, row_pos, cell_pos)

    _resolve_deferred_dates(ctx)
    if ctx.markup:
        _resolve_customer_block(ctx)
    else:
        _resolve_customer_phrase(ctx)

    logger.info(
        "fields_extracted",
        document_type=ctx.meta.document_type.value,
        document_number=ctx.meta.document_number,
        customer_code=ctx.meta.customer_code,
        claimed=sorted(ctx.claimed),
    )
    return ctx.meta
