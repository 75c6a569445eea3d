"""Text normalization and payload decoding.

Runs before any pattern matching. Everything here is total: malformed text
degrades to best-effort cleanup, only an undecodable byte payload raises.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Tuple, Union

from .logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "PayloadDecodeError",
    "decode_payload",
    "repair_text",
    "normalize_text",
    "normalize_lines",
]

# Map a few visually-similar punctuation marks to ASCII for stability
PUNCT_MAP = {
    "\u2018": "'", "\u2019": "'", "\u201B": "'",
    "\u201C": '"', "\u201D": '"',
    "\u2013": "-", "\u2014": "-", "\u2212": "-",  # en/em/fraction minus
}

ZERO_WIDTH = re.compile("[\u200B\u200C\u200D\u200E\u200F\u2060\uFEFF]")
CONTROL_CHARS = re.compile("[\u0000-\u001F\u007F-\u009F]")
WHITESPACE = re.compile(r"\s+")
LINE_BREAK = re.compile(r"\r\n|\r|\n")

THAI = "\u0E01-\u0E4E"
# Following vowels, above/below vowels and tone marks never start a word, so
# whitespace in front of them is an extraction artifact. Mai yamok is left
# alone, it is written after a space.
_THAI_COMBINING_GAP = re.compile(
    f"(?<=[{THAI}])[ \\t\u00A0]+(?=[\u0E30-\u0E3A\u0E45\u0E47-\u0E4E])"
)
# Leading vowels never end a word.
_THAI_LEADING_VOWEL_GAP = re.compile("(?<=[\u0E40-\u0E44])[ \\t\u00A0]+(?=[\u0E01-\u0E2E])")
# Nikhahit + sara aa is the decomposed form of sara am.
_DECOMPOSED_SARA_AM = re.compile("\u0E4D\u0E32")
_SPLIT_THOUSANDS = re.compile("(?<=\\d,)[ \\t\u00A0]+(?=\\d{3}(?!\\d))")

_STRAY = "[\u00AD\uFFFD]"
_SAME_CLASS_STRAY = [
    re.compile(f"(?<=[{THAI}]){_STRAY}(?=[{THAI}])"),
    re.compile(f"(?<=[A-Za-z]){_STRAY}(?=[A-Za-z])"),
    re.compile(f"(?<=\\d){_STRAY}(?=\\d)"),
]


class PayloadDecodeError(ValueError):
    """Raised when none of the candidate encodings decodes the payload cleanly."""

    def __init__(self, tried: Iterable[str]) -> None:
        self.tried = tuple(tried)
        super().__init__(f"unable to decode payload with any of: {', '.join(self.tried)}")


def decode_payload(payload: Union[bytes, str], encodings: Iterable[str]) -> Tuple[str, str]:
    """Return ``(text, encoding)`` for the first clean strict decoding."""
    if isinstance(payload, str):
        return payload, "str"

    candidates: List[str] = list(encodings)
    if payload.startswith(b"\xef\xbb\xbf"):
        candidates.insert(0, "utf-8-sig")

    for encoding in candidates:
        try:
            text = payload.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
        if "\uFFFD" in text:
            continue
        logger.debug("payload_decoded", encoding=encoding, length=len(text))
        return text, encoding
    raise PayloadDecodeError(candidates)


def repair_text(text: str) -> str:
    """Rejoin characters split by injected artifacts; keeps whitespace layout."""
    t = ZERO_WIDTH.sub("", text)
    for pattern in _SAME_CLASS_STRAY:
        t = pattern.sub("", t)
    t = _THAI_COMBINING_GAP.sub("", t)
    t = _THAI_LEADING_VOWEL_GAP.sub("", t)
    t = _DECOMPOSED_SARA_AM.sub("\u0E33", t)
    t = _SPLIT_THOUSANDS.sub("", t)
    return "".join(PUNCT_MAP.get(ch, ch) for ch in t)


def normalize_text(text: str) -> str:
    """Clean the whole document into a single whitespace-collapsed line."""
    if not text:
        return ""
    t = CONTROL_CHARS.sub(" ", text)
    t = repair_text(t)
    return WHITESPACE.sub(" ", t).strip()


def normalize_lines(text: str) -> List[str]:
    """Clean each physical line, dropping the ones left empty."""
    if not text:
        return []
    lines: List[str] = []
    for raw in LINE_BREAK.split(text):
        line = normalize_text(raw)
        if line:
            lines.append(line)
    return lines
