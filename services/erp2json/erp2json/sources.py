"""Turn files on disk into ``RawInput`` payloads."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Union

import pdfplumber

from .logging import get_logger
from .models import InputFormat, RawInput

logger = get_logger(__name__)

__all__ = ["UnsupportedSourceError", "EXTENSION_FORMATS", "detect_format", "extract_pdf_text", "load_source"]

EXTENSION_FORMATS: Dict[str, InputFormat] = {
    ".xml": InputFormat.MARKUP,
    ".xls": InputFormat.MARKUP,
    ".csv": InputFormat.DELIMITED,
    ".txt": InputFormat.PLAIN_TEXT,
    ".pdf": InputFormat.PLAIN_TEXT,
}


class UnsupportedSourceError(ValueError):
    """Raised for files whose format cannot be inferred."""


def detect_format(path: Path) -> InputFormat:
    try:
        return EXTENSION_FORMATS[path.suffix.lower()]
    except KeyError:
        raise UnsupportedSourceError(
            f"Unsupported file extension '{path.suffix}' for {path.name}; "
            f"expected one of {', '.join(sorted(EXTENSION_FORMATS))}"
        ) from None


def extract_pdf_text(pdf_path: Path) -> str:
    """Page texts joined by newlines, keeping pdfplumber's line breaks."""
    pages = []
    with pdfplumber.open(str(pdf_path)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    logger.debug("pdf_text_extracted", path=str(pdf_path), pages=len(pages))
    return "\n".join(pages)


def load_source(path: Union[str, Path], input_format: Optional[InputFormat] = None) -> RawInput:
    path = Path(path)
    fmt = input_format or detect_format(path)
    if path.suffix.lower() == ".pdf":
        payload: Union[bytes, str] = extract_pdf_text(path)
    else:
        payload = path.read_bytes()
    logger.info("source_loaded", path=str(path), input_format=fmt.value)
    return RawInput(payload=payload, format=fmt, source_name=path.name)
