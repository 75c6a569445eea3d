"""Label vocabulary and token shapes of the ERP quotation/sales-order layouts."""

from __future__ import annotations

import re
from typing import Iterable

THAI_CHARS = "ก-๎"

# Canonical identifier shapes. Markup cells must match them exactly; the line
# forms search for them between token boundaries.
QUOTATION_NUMBER = re.compile(r"QT\d+")
SALES_ORDER_NUMBER = re.compile(r"SO\d+")
CUSTOMER_CODE = re.compile(r"CU\d+")
SALES_PERSON = re.compile(rf"\d{{4,5}}-[{THAI_CHARS}]+")
PO_REFERENCE = re.compile(r"(?:PO\.|PRPO)[^\s,\"]*")

PAYMENT_TERM_LABELS = ("เงื่อนไข", "ชำระเงิน")
CONTACT_LABELS = ("ติดต่อ",)
VALIDITY_LABELS = ("ยืนราคา",)

DELIVERY_DATE_LABELS = ("ส่งของ", "delivery")
DUE_DATE_LABELS = ("ถึงวันที่", "ครบกำหนด", "ยืนราคาถึง", "due")
DOCUMENT_DATE_LABELS = ("วันที่", "date")

COMPANY_MARKERS = ("บริษัท", "บมจ", "จำกัด", "ห้างหุ้นส่วน")
NAME_EXCLUDED_LABELS = ("เลขที่", "วันที่")

# Item table header: every family must be present on the same row.
HEADER_CODE_LABELS = ("รหัสสินค้า", "รหัส", "ลำดับ", "code")
HEADER_DESCRIPTION_LABELS = ("รายละเอียด", "สินค้า", "description")
HEADER_QUANTITY_LABELS = ("จำนวน", "qty", "quantity")
HEADER_PRICE_LABELS = ("ราคา", "price")
HEADER_UNIT_LABELS = ("หน่วย", "unit")
HEADER_AMOUNT_LABELS = ("จำนวนเงิน", "amount")

# Sara am is normalized upstream, but PDF text may drop or reorder the marks.
_TANG_SIN = "ท[ั้]*งส[ิี้]*น"
GRAND_TOTAL_EXCLUSIVE = re.compile(rf"จำนวนเงินรวม{_TANG_SIN}|grand\s*total", re.I)
NET_AMOUNT = re.compile(r"net\s*amount", re.I)
GRAND_TOTAL = re.compile(rf"รวม{_TANG_SIN}|total\s*amount", re.I)
SUBTOTAL = re.compile(rf"รวมเป็นเงิน(?!\s*{_TANG_SIN})|sub\s*-?\s*total", re.I)
TERMINATOR = re.compile(r"รวมเป็นเงิน|รวมทั้งหมด|sub\s*-?\s*total|รวม", re.I)
VAT = re.compile(r"จำนวนภาษี|ภาษีมูลค่าเพิ่ม|(?<![A-Za-z])vat(?![A-Za-z])", re.I)
# Registration numbers printed in letterheads, never an amount.
TAX_ID = re.compile(r"ผู้เสียภาษี|tax\s*-?\s*id|tax\s*no", re.I)
DISCOUNT_DEDUCT = re.compile(r"หัก|less", re.I)
DISCOUNT = re.compile(r"ส่วนลด|discount", re.I)

# Lines carrying any of these words belong to the financial summary, never to
# the item table.
SUMMARY_VOCABULARY = re.compile(
    r"รวมเป็นเงิน|subtotal|ภาษี|(?<![A-Za-z])vat(?![A-Za-z])|discount|ส่วนลด|total|รวม", re.I
)

UNIT_WORDS = (
    "ห่อ", "ตัว", "อัน", "หลอด", "ม้วน", "แผ่น", "เมตร", "ชิ้น", "กิโลกรัม", "กรัม",
    "กล่อง", "ชุด", "เส้น", "ลัง", "แพ็ค", "โหล", "คู่", "ถุง", "ขวด", "ลิตร", "ใบ",
    "เครื่อง", "ดวง", "ก้อน", "แกลลอน", "ถัง", "ตลับ", "หลา", "ฟุต", "นิ้ว",
)


def contains_any(text: str, labels: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(label.lower() in lowered for label in labels)


def compact(text: str) -> str:
    """Drop all whitespace, the way label cells are compared."""
    return re.sub(r"\s+", "", text)


def is_summary_text(text: str) -> bool:
    return SUMMARY_VOCABULARY.search(text) is not None


def is_table_terminator(text: str) -> bool:
    """Subtotal-style label; the grand-total label alone does not close the table."""
    remainder = GRAND_TOTAL.sub(" ", GRAND_TOTAL_EXCLUSIVE.sub(" ", text))
    return TERMINATOR.search(remainder) is not None


def is_discount_label(text: str) -> bool:
    return DISCOUNT_DEDUCT.search(text) is not None and DISCOUNT.search(text) is not None


def is_company_name(text: str) -> bool:
    if len(text) <= 5 or contains_any(text, NAME_EXCLUDED_LABELS):
        return False
    return contains_any(text, COMPANY_MARKERS) or len(text) > 15
