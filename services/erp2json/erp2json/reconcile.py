"""Financial summary extraction and reconciliation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional, Pattern, Sequence, Tuple

from . import labels
from .config import ExtractorConfig
from .logging import get_logger
from .models import FinancialSummary, InputFormat, LineItem, Row
from .numeral import money, parse_amount, parse_percent

logger = get_logger(__name__)

__all__ = [
    "TotalPriority",
    "TotalCandidate",
    "SummaryReading",
    "read_summary_rows",
    "total_candidates_from_text",
    "best_total",
    "derive_summary",
    "reconcile",
]

_AMOUNT = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
AMOUNT_TOKEN = re.compile(rf"(?<![A-Za-z0-9.,/-]){_AMOUNT}(?![\d,/]|\.\d)")
PERCENT_TOKEN = re.compile(r"\d+(?:\.\d+)?\s*%")

_TEXT_AMOUNT = rf"(?<![\d.,])({_AMOUNT})(?![\d,]|\.\d)"
_BAHT_TEXT = r"\([^()]*(?:บาท|สตางค์|ถ้วน)[^()]*\)\.?"
_PRICE_SHAPED = r"(?<![\d.,])(\d{1,3}(?:,\d{3})*\.\d{2})(?![\d,]|\.\d)"


class TotalPriority(IntEnum):
    EXCLUSIVE_LABEL = 0
    NET_AMOUNT = 1
    BAHT_TEXT = 2
    GENERIC_LABEL = 3
    EXCLUSIVE_LABEL_BEFORE = 4
    LARGEST_NUMBER = 5


# Most specific first; the printed ERP layout puts the number before its label.
TEXT_TOTAL_PATTERNS: Tuple[Tuple[TotalPriority, Pattern[str]], ...] = (
    (
        TotalPriority.EXCLUSIVE_LABEL,
        re.compile(rf"{_TEXT_AMOUNT}\s*(?:{labels.GRAND_TOTAL_EXCLUSIVE.pattern})", re.I),
    ),
    (TotalPriority.NET_AMOUNT, re.compile(rf"{_TEXT_AMOUNT}\s*net\s*amount", re.I)),
    (TotalPriority.BAHT_TEXT, re.compile(rf"{_BAHT_TEXT}\s*{_TEXT_AMOUNT}", re.I)),
    (
        TotalPriority.GENERIC_LABEL,
        re.compile(rf"(?:{labels.GRAND_TOTAL.pattern})[^0-9]*{_TEXT_AMOUNT}", re.I),
    ),
    (
        TotalPriority.EXCLUSIVE_LABEL_BEFORE,
        re.compile(rf"(?:{labels.GRAND_TOTAL_EXCLUSIVE.pattern})[^0-9]*{_TEXT_AMOUNT}", re.I),
    ),
    (TotalPriority.LARGEST_NUMBER, re.compile(_PRICE_SHAPED)),
)


@dataclass(frozen=True)
class TotalCandidate:
    amount: Decimal
    priority: TotalPriority
    context: str = ""

    @property
    def rank(self) -> Tuple[int, Decimal]:
        return (int(self.priority), -self.amount)


@dataclass
class SummaryReading:
    """Values read directly from the document, before any derivation."""

    subtotal: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    vat_percent: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    total_candidates: List[TotalCandidate] = field(default_factory=list)


def _first_amount(text: str) -> Optional[Decimal]:
    match = AMOUNT_TOKEN.search(text)
    return parse_amount(match.group(0)) if match else None


def _last_amount(text: str) -> Optional[Decimal]:
    matches = AMOUNT_TOKEN.findall(text)
    return parse_amount(matches[-1]) if matches else None


def _adjacent_amount(before: str, after: str, prefer_before: bool) -> Optional[Decimal]:
    before = PERCENT_TOKEN.sub(" ", before)
    after = PERCENT_TOKEN.sub(" ", after)
    if prefer_before:
        found = _last_amount(before)
        return found if found is not None else _first_amount(after)
    found = _first_amount(after)
    return found if found is not None else _last_amount(before)


def _split_around(row: Row, cell_pos: int, span: Tuple[int, int]) -> Tuple[str, str]:
    value = row.value(cell_pos)
    before = " ".join(row.value(i) for i in range(cell_pos) if row.value(i))
    after = " ".join(row.value(i) for i in range(cell_pos + 1, len(row)) if row.value(i))
    return f"{before} {value[:span[0]]}", f"{value[span[1]:]} {after}"


def read_summary_rows(rows: Sequence[Row], prefer_before: bool, collect_totals: bool = True) -> SummaryReading:
    """Label-adjacent values, first match per field in document order."""
    reading = SummaryReading()
    for row in rows:
        for cell_pos, cell in enumerate(row.cells):
            text = cell.value
            if not text:
                continue

            subtotal = labels.SUBTOTAL.search(text)
            if reading.subtotal is None and subtotal:
                value = _adjacent_amount(*_split_around(row, cell_pos, subtotal.span()), prefer_before)
                if value is not None and value > 0:
                    reading.subtotal = value

            if reading.discount is None and labels.is_discount_label(text):
                discount = labels.DISCOUNT.search(text)
                reading.discount = _adjacent_amount(*_split_around(row, cell_pos, discount.span()), prefer_before)

            vat = None if labels.TAX_ID.search(text) else labels.VAT.search(text)
            if reading.vat_amount is None and vat:
                before, after = _split_around(row, cell_pos, vat.span())
                amount = _adjacent_amount(before, after, prefer_before)
                if amount is not None and amount > 0:
                    reading.vat_amount = amount
                    reading.vat_percent = parse_percent(f"{before} {text} {after}")

            if not collect_totals:
                continue
            for priority, pattern in (
                (TotalPriority.EXCLUSIVE_LABEL, labels.GRAND_TOTAL_EXCLUSIVE),
                (TotalPriority.NET_AMOUNT, labels.NET_AMOUNT),
                (TotalPriority.GENERIC_LABEL, labels.GRAND_TOTAL),
            ):
                match = pattern.search(text)
                if not match:
                    continue
                value = _adjacent_amount(*_split_around(row, cell_pos, match.span()), prefer_before)
                if value is not None and value > 0:
                    reading.total_candidates.append(TotalCandidate(value, priority, text))
                break
    return reading


def total_candidates_from_text(text: str, minimum: Decimal) -> List[TotalCandidate]:
    """Every labeled and magnitude-based total candidate above ``minimum``."""
    candidates: List[TotalCandidate] = []
    for priority, pattern in TEXT_TOTAL_PATTERNS:
        for match in pattern.finditer(text):
            amount = parse_amount(match.group(1))
            if amount is None or amount <= minimum:
                continue
            start = max(0, match.start() - 50)
            candidates.append(TotalCandidate(amount, priority, text[start:match.end() + 50].strip()))
    return candidates


def best_total(candidates: Sequence[TotalCandidate]) -> Optional[TotalCandidate]:
    """Rank by label priority, then by magnitude descending."""
    if not candidates:
        return None
    return min(candidates, key=lambda candidate: candidate.rank)


def derive_summary(
    reading: SummaryReading,
    items: Sequence[LineItem],
    config: ExtractorConfig,
) -> Tuple[FinancialSummary, List[str]]:
    """Apply the fallbacks and the consistency check to what was read."""
    diagnostics: List[str] = []
    summary = FinancialSummary(
        subtotal=reading.subtotal,
        discount=reading.discount if reading.discount is not None else Decimal("0"),
        items_total=money(sum((item.amount for item in items), Decimal("0"))) if items else None,
    )

    if summary.subtotal is None and items:
        summary.subtotal = summary.items_total
        summary.derived.append("subtotal")

    if summary.subtotal is not None and summary.discount > 0 and summary.discount == summary.subtotal:
        diagnostics.append(
            f"discount_reset: discount {summary.discount} equals subtotal, treated as mislabeled and reset to 0"
        )
        summary.discount = Decimal("0")

    if reading.vat_amount is not None:
        if reading.vat_percent is not None:
            summary.vat_percent = reading.vat_percent
            summary.vat_amount = reading.vat_amount
        else:
            base = summary.net_before_vat
            if base is not None and base > 0:
                summary.vat_amount = reading.vat_amount
                summary.vat_percent = money(reading.vat_amount / base * 100)
                summary.derived.append("vat_percent")
                diagnostics.append(
                    f"vat_percent_derived: {summary.vat_percent}% from vat {reading.vat_amount} over base {base}"
                )
            else:
                diagnostics.append(
                    f"vat_unpaired: vat amount {reading.vat_amount} found without a rate or base, dropped"
                )

    chosen = best_total(reading.total_candidates)
    if chosen is not None:
        summary.total = chosen.amount
        logger.debug("total_selected", amount=str(chosen.amount), priority=chosen.priority.name)
    elif summary.subtotal is not None:
        summary.total = money(summary.subtotal - summary.discount + (summary.vat_amount or Decimal("0")))
        summary.derived.append("total")

    read_directly = (
        "subtotal" not in summary.derived
        and "total" not in summary.derived
        and summary.subtotal is not None
        and summary.vat_amount is not None
        and summary.total is not None
    )
    if read_directly:
        expected = summary.subtotal - summary.discount + summary.vat_amount
        if abs(expected - summary.total) > config.total_tolerance:
            diagnostics.append(
                f"reconciliation_mismatch: subtotal {summary.subtotal} - discount {summary.discount} "
                f"+ vat {summary.vat_amount} = {expected}, document total {summary.total}"
            )
    return summary, diagnostics


def reconcile(
    rows: Sequence[Row],
    items: Sequence[LineItem],
    input_format: InputFormat,
    config: ExtractorConfig,
    summary_start: Optional[int] = None,
) -> Tuple[FinancialSummary, List[str]]:
    plain = input_format is InputFormat.PLAIN_TEXT
    summary_rows = rows[summary_start:] if summary_start is not None else rows
    reading = read_summary_rows(summary_rows, prefer_before=plain, collect_totals=not plain)
    if plain:
        collapsed = " ".join(row.text for row in rows)
        reading.total_candidates = total_candidates_from_text(collapsed, config.min_total_candidate)

    summary, diagnostics = derive_summary(reading, items, config)
    logger.info(
        "summary_reconciled",
        subtotal=str(summary.subtotal),
        discount=str(summary.discount),
        vat=str(summary.vat_amount),
        total=str(summary.total),
        derived=summary.derived,
        candidates=len(reading.total_candidates),
    )
    return summary, diagnostics
