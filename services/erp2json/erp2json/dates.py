"""Date parsing for Thai ERP documents (Buddhist-era years, Thai month names)."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import List, Optional, Tuple

import dateparser

from .logging import get_logger

logger = get_logger(__name__)

__all__ = ["DateMatch", "to_gregorian_year", "parse_date", "find_dates"]

BUDDHIST_ERA_OFFSET = 543

MONTH_FALLBACK = {
    "มกราคม": "January", "ม.ค.": "January",
    "กุมภาพันธ์": "February", "ก.พ.": "February",
    "มีนาคม": "March", "มี.ค.": "March",
    "เมษายน": "April", "เม.ย.": "April",
    "พฤษภาคม": "May", "พ.ค.": "May",
    "มิถุนายน": "June", "มิ.ย.": "June",
    "กรกฎาคม": "July", "ก.ค.": "July",
    "สิงหาคม": "August", "ส.ค.": "August",
    "กันยายน": "September", "ก.ย.": "September",
    "ตุลาคม": "October", "ต.ค.": "October",
    "พฤศจิกายน": "November", "พ.ย.": "November",
    "ธันวาคม": "December", "ธ.ค.": "December",
}

_MONTH_NAMES = "|".join(
    re.escape(name) for name in sorted(MONTH_FALLBACK, key=len, reverse=True)
)
NUMERIC_DATE = re.compile(r"(?<![\d.,])(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})(?![\d.,]*\d)")
NAMED_DATE = re.compile(
    rf"(?<!\d)(\d{{1,2}})\s*({_MONTH_NAMES}|[A-Za-z]{{3,9}}\.?)\s*(\d{{4}}|\d{{2}})(?!\d)"
)
ISO_DATETIME = re.compile(r"(\d{4})-(\d{2})-(\d{2})(?:[T ][\d:.]*)?")

DateMatch = Tuple[int, int, date]


def to_gregorian_year(year: int, digits: int) -> int:
    """Map a printed year to the Gregorian calendar.

    Four-digit years past 2400 are Buddhist era. Two-digit years from 43 up
    are read as BE 25xx (43 -> 2500 BE -> 1957 CE), lower ones as 20xx.
    """
    if digits <= 2:
        if year >= 43:
            return 2500 + year - BUDDHIST_ERA_OFFSET
        return 2000 + year
    if year > 2400:
        return year - BUDDHIST_ERA_OFFSET
    return year


def _build(day: str, month: str, year: str) -> Optional[date]:
    gregorian = to_gregorian_year(int(year), len(year))
    month_name = MONTH_FALLBACK.get(month, month)
    parsed = dateparser.parse(
        f"{int(day)} {month_name} {gregorian}" if not month_name.isdigit()
        else f"{int(day)}/{int(month_name)}/{gregorian}",
        languages=["en"],
        settings={"DATE_ORDER": "DMY", "STRICT_PARSING": True},
    )
    if parsed is None:
        return None
    return parsed.date()


def _iso(text: str) -> Optional[date]:
    match = ISO_DATETIME.fullmatch(text.strip())
    if not match:
        return None
    try:
        return datetime.fromisoformat(text.strip()[:10]).date()
    except ValueError:
        return None


def find_dates(text: str) -> List[DateMatch]:
    """Every date-shaped token in ``text`` as ``(start, end, date)``, in order."""
    found: List[DateMatch] = []
    taken: List[Tuple[int, int]] = []
    for pattern in (NUMERIC_DATE, NAMED_DATE):
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < t_end and t_start < end for t_start, t_end in taken):
                continue
            value = _build(*match.groups())
            if value is None:
                logger.debug("date_token_rejected", token=match.group(0))
                continue
            taken.append((start, end))
            found.append((start, end, value))
    for match in ISO_DATETIME.finditer(text):
        start, end = match.span()
        if any(start < t_end and t_start < end for t_start, t_end in taken):
            continue
        value = _iso(match.group(0))
        if value is not None:
            found.append((start, end, value))
    return sorted(found, key=lambda item: item[0])


def parse_date(text: Optional[str]) -> Optional[date]:
    """Parse a DateTime cell value or the first date token inside ``text``."""
    if not text:
        return None
    iso = _iso(text)
    if iso is not None:
        return iso
    found = find_dates(text)
    return found[0][2] if found else None
