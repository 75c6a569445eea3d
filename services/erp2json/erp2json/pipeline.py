"""Document pipeline: decode, tokenize, extract, reconcile, assemble."""

from __future__ import annotations

from typing import Callable, List, Optional, TypeVar

from .config import ExtractorConfig
from .fields import extract_fields
from .items import TableExtraction, extract_items
from .logging import get_logger
from .models import DocumentMeta, FinancialSummary, ParseResult, RawInput, Row
from .normalizer import PayloadDecodeError, decode_payload
from .reconcile import reconcile
from .tokenizer import tokenize

logger = get_logger(__name__)

__all__ = ["parse_document", "is_successful"]

T = TypeVar("T")


def is_successful(meta: DocumentMeta, items: List, summary: FinancialSummary) -> bool:
    has_total = summary.total is not None and summary.total > 0
    return bool(meta.document_number and meta.customer_code and (has_total or items))


def _failed(raw: RawInput, diagnostic: str) -> ParseResult:
    logger.warning("document_failed", source=raw.source_name, diagnostic=diagnostic)
    return ParseResult(
        meta=DocumentMeta(),
        items=[],
        summary=FinancialSummary(),
        success=False,
        diagnostics=[diagnostic],
        input_format=raw.format,
        source_name=raw.source_name,
    )


def _stage(name: str, diagnostics: List[str], fallback: Callable[[], T], func: Callable[..., T], *args) -> T:
    try:
        return func(*args)
    except Exception as exc:
        logger.exception("stage_error", stage=name, error=str(exc))
        diagnostics.append(f"stage_failed: {name} raised {type(exc).__name__}: {exc}")
        return fallback()


def parse_document(raw: RawInput, config: Optional[ExtractorConfig] = None) -> ParseResult:
    """Parse one quotation or sales order. Never raises."""
    config = config or ExtractorConfig()
    logger.info("document_received", source=raw.source_name, input_format=raw.format.value)

    try:
        text, encoding = decode_payload(raw.payload, config.encodings)
    except PayloadDecodeError as exc:
        return _failed(raw, f"encoding_failed: {exc}")

    diagnostics: List[str] = []
    rows: List[Row] = _stage("tokenize", diagnostics, list, tokenize, text, raw.format)
    if not rows:
        detail = diagnostics[0] if diagnostics else "structural_anchor_missing: no extractable rows"
        return _failed(raw, detail)

    meta = _stage("fields", diagnostics, DocumentMeta, extract_fields, rows, raw.format, config)
    table = _stage("items", diagnostics, TableExtraction, extract_items, rows, raw.format, config)
    diagnostics.extend(table.diagnostics)

    if meta.document_number is None and not table.header_found:
        diagnostics.append("structural_anchor_missing: no document number and no item table header")

    summary_start = table.bounds.summary_start if table.bounds is not None else None
    summary, reconcile_diagnostics = _stage(
        "summary",
        diagnostics,
        lambda: (FinancialSummary(), []),
        reconcile,
        rows,
        table.items,
        raw.format,
        config,
        summary_start,
    )
    diagnostics.extend(reconcile_diagnostics)

    result = ParseResult(
        meta=meta,
        items=table.items,
        summary=summary,
        success=is_successful(meta, table.items, summary),
        diagnostics=diagnostics,
        input_format=raw.format,
        source_name=raw.source_name,
    )
    logger.info(
        "document_parsed",
        source=raw.source_name,
        encoding=encoding,
        success=result.success,
        document_number=meta.document_number,
        items=result.item_count,
        diagnostics=len(diagnostics),
    )
    return result
