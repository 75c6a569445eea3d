"""Core package for the ERP quotation / sales-order extractor."""

from .config import ExtractorConfig, load_config
from .models import (
    DocumentMeta,
    DocumentType,
    FinancialSummary,
    InputFormat,
    LineItem,
    ParseResult,
    RawInput,
)
from .normalizer import PayloadDecodeError
from .pipeline import parse_document
from .sources import UnsupportedSourceError, load_source

__all__ = [
    "DocumentMeta",
    "DocumentType",
    "ExtractorConfig",
    "FinancialSummary",
    "InputFormat",
    "LineItem",
    "ParseResult",
    "PayloadDecodeError",
    "RawInput",
    "UnsupportedSourceError",
    "load_config",
    "load_source",
    "parse_document",
]
