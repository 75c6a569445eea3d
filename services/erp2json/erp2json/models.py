"""Domain models for parsed quotations and sales orders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .numeral import number_out

PARSER_VERSION = "erp2json-1.0"


class InputFormat(str, Enum):
    MARKUP = "markup"
    DELIMITED = "delimited"
    PLAIN_TEXT = "plain_text"


class CellType(str, Enum):
    STRING = "String"
    NUMBER = "Number"
    DATETIME = "DateTime"

    @classmethod
    def from_markup(cls, raw: Optional[str]) -> "CellType":
        for member in cls:
            if raw and member.value.lower() == raw.strip().lower():
                return member
        return cls.STRING


class DocumentType(str, Enum):
    QUOTATION = "quotation"
    SALES_ORDER = "sales_order"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class RawInput:
    """Document payload handed over by the file-intake side."""

    payload: Union[bytes, str]
    format: InputFormat
    source_name: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Cell:
    type: CellType
    value: str

    @classmethod
    def string(cls, value: str = "") -> "Cell":
        return cls(CellType.STRING, value)


@dataclass(slots=True, frozen=True)
class Row:
    """One table row; position in ``cells`` is the column."""

    index: int
    cells: tuple[Cell, ...]

    @property
    def text(self) -> str:
        return " ".join(cell.value for cell in self.cells if cell.value)

    def value(self, position: int) -> str:
        if 0 <= position < len(self.cells):
            return self.cells[position].value
        return ""

    def __len__(self) -> int:
        return len(self.cells)


@dataclass(slots=True)
class DocumentMeta:
    document_type: DocumentType = DocumentType.UNKNOWN
    document_number: Optional[str] = None
    customer_code: Optional[str] = None
    customer_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    contact_person: Optional[str] = None
    document_date: Optional[date] = None
    due_date: Optional[date] = None
    delivery_date: Optional[date] = None
    po_reference: Optional[str] = None
    sales_person: Optional[str] = None
    payment_term: Optional[str] = None
    valid_days: int = 0

    @property
    def sales_person_code(self) -> Optional[str]:
        """Numeric employee code in front of the sales person's name."""
        if not self.sales_person or "-" not in self.sales_person:
            return None
        return self.sales_person.split("-", 1)[0].strip() or None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_type": self.document_type.value,
            "document_number": self.document_number,
            "customer_code": self.customer_code,
            "customer_name": self.customer_name,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "contact_person": self.contact_person,
            "document_date": _iso(self.document_date),
            "due_date": _iso(self.due_date),
            "delivery_date": _iso(self.delivery_date),
            "po_reference": self.po_reference,
            "sales_person": self.sales_person,
            "sales_person_code": self.sales_person_code,
            "payment_term": self.payment_term,
            "valid_days": self.valid_days,
        }


@dataclass(slots=True)
class LineItem:
    """Single line of the item table; amounts are per the printed document."""

    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    product_code: str = ""
    unit: str = ""
    remarks: List[str] = field(default_factory=list)
    source_line_number: Optional[int] = None

    @property
    def has_remarks(self) -> bool:
        return bool(self.remarks)

    @property
    def remark_count(self) -> int:
        return len(self.remarks)

    @property
    def full_description(self) -> str:
        if not self.remarks:
            return self.description
        return f"{self.description} ({', '.join(self.remarks)})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_number": self.line_number,
            "product_code": self.product_code,
            "description": self.description,
            "full_description": self.full_description,
            "quantity": number_out(self.quantity),
            "unit": self.unit,
            "unit_price": number_out(self.unit_price),
            "amount": number_out(self.amount),
            "remarks": list(self.remarks),
            "has_remarks": self.has_remarks,
            "remark_count": self.remark_count,
        }


@dataclass(slots=True)
class FinancialSummary:
    subtotal: Optional[Decimal] = None
    discount: Decimal = Decimal("0")
    vat_percent: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    total: Optional[Decimal] = None
    items_total: Optional[Decimal] = None
    derived: List[str] = field(default_factory=list)

    @property
    def net_before_vat(self) -> Optional[Decimal]:
        if self.subtotal is None:
            return None
        return self.subtotal - self.discount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": number_out(self.subtotal),
            "discount": number_out(self.discount),
            "net_before_vat": number_out(self.net_before_vat),
            "items_total": number_out(self.items_total),
            "vat_percent": number_out(self.vat_percent),
            "vat_amount": number_out(self.vat_amount),
            "total": number_out(self.total),
            "derived": list(self.derived),
        }


@dataclass(slots=True)
class ParseResult:
    meta: DocumentMeta
    items: List[LineItem]
    summary: FinancialSummary
    success: bool
    diagnostics: List[str] = field(default_factory=list)
    input_format: Optional[InputFormat] = None
    source_name: Optional[str] = None
    parser_version: str = PARSER_VERSION
    processed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def items_with_remarks(self) -> int:
        return sum(1 for item in self.items if item.has_remarks)

    @property
    def total_remarks(self) -> int:
        return sum(item.remark_count for item in self.items)

    def to_dict(self, include_timestamp: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "input_format": self.input_format.value if self.input_format else None,
            "source_name": self.source_name,
            "parser_version": self.parser_version,
            "meta": self.meta.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "summary": self.summary.to_dict(),
            "item_count": self.item_count,
            "items_with_remarks": self.items_with_remarks,
            "total_remarks": self.total_remarks,
            "diagnostics": list(self.diagnostics),
        }
        if include_timestamp:
            out["processed_at"] = self.processed_at.isoformat()
        return out


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
