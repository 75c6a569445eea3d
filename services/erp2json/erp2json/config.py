"""Configuration for the ERP document extractor."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

ENV_PREFIX = "ERP2JSON_"

DEFAULT_ENCODINGS = ("utf-8", "cp874", "tis-620")
DEFAULT_SELLER_NAMES = ("พี.เค.เทคนิค", "pktechnic")


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + key)
    if value is not None:
        value = value.strip()
        if value == "":
            return default
        return value
    return default


def _get_int(key: str, default: int) -> int:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {ENV_PREFIX}{key} must be an integer") from exc


def _get_decimal(key: str, default: Decimal) -> Decimal:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Environment variable {ENV_PREFIX}{key} must be a number") from exc


def _get_list(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = _get_env(key)
    if value is None:
        return default
    items = tuple(part.strip() for part in value.split(",") if part.strip())
    if not items:
        raise ValueError(f"Environment variable {ENV_PREFIX}{key} must list at least one value")
    return items


@dataclass(slots=True, frozen=True)
class ExtractorConfig:
    log_level: str = "INFO"
    encodings: tuple[str, ...] = DEFAULT_ENCODINGS
    seller_names: tuple[str, ...] = DEFAULT_SELLER_NAMES
    total_tolerance: Decimal = Decimal("1")
    min_total_candidate: Decimal = Decimal("100")
    remark_min_length: int = 3
    remark_max_length: int = 200

    def is_seller(self, name: str) -> bool:
        lowered = name.lower()
        return any(seller.lower() in lowered for seller in self.seller_names)


def load_config() -> ExtractorConfig:
    log_level = (_get_env("LOG_LEVEL", "INFO") or "INFO").upper()
    encodings = _get_list("ENCODINGS", DEFAULT_ENCODINGS)
    seller_names = _get_list("SELLER_NAMES", DEFAULT_SELLER_NAMES)
    total_tolerance = _get_decimal("TOTAL_TOLERANCE", Decimal("1"))
    if total_tolerance < 0:
        raise ValueError(f"{ENV_PREFIX}TOTAL_TOLERANCE must not be negative")
    min_total_candidate = _get_decimal("MIN_TOTAL_CANDIDATE", Decimal("100"))
    remark_min_length = max(1, _get_int("REMARK_MIN_LENGTH", 3))
    remark_max_length = max(remark_min_length, _get_int("REMARK_MAX_LENGTH", 200))

    return ExtractorConfig(
        log_level=log_level,
        encodings=encodings,
        seller_names=seller_names,
        total_tolerance=total_tolerance,
        min_total_candidate=min_total_candidate,
        remark_min_length=remark_min_length,
        remark_max_length=remark_max_length,
    )
