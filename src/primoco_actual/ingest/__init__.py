"""
Source ingestion.

Provides:
- Encoding and delimiter detection (normalizer)
- Row parsing and field repair (parser)
- Row → ParsedTransaction mapping (mapper)
"""

from .mapper import build_payee_name, map_row
from .normalizer import (
    DEFAULT_DELIMITER,
    NormalizedSource,
    SourceReadError,
    decode_source,
    detect_delimiter,
    detect_encoding,
    load_source,
)
from .parser import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_ENCODING_FIXES,
    Column,
    build_encoding_fixes,
    iter_raw_rows,
    parse_amount,
    parse_date,
    parse_source,
    repair_text,
)

__all__ = [
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_DELIMITER",
    "DEFAULT_ENCODING_FIXES",
    "Column",
    "NormalizedSource",
    "SourceReadError",
    "build_encoding_fixes",
    "build_payee_name",
    "decode_source",
    "detect_delimiter",
    "detect_encoding",
    "iter_raw_rows",
    "load_source",
    "map_row",
    "parse_amount",
    "parse_date",
    "parse_source",
    "repair_text",
]
