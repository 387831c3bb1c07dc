"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .dedupe import (
    DUPLICATE_SUFFIX_SEPARATOR,
    FINGERPRINT_LENGTH,
    ImportIdentityIndex,
    compute_row_fingerprint,
    make_import_identity,
    serialize_row,
)
from .posting import LedgerPosting, link_transfer, new_posting_id
from .transaction import CategoryKey, EntryKind, ParsedTransaction, ParseResult

__all__ = [
    # Dedupe
    "DUPLICATE_SUFFIX_SEPARATOR",
    "FINGERPRINT_LENGTH",
    "ImportIdentityIndex",
    "compute_row_fingerprint",
    "make_import_identity",
    "serialize_row",
    # Postings
    "LedgerPosting",
    "link_transfer",
    "new_posting_id",
    # Transactions
    "CategoryKey",
    "EntryKind",
    "ParsedTransaction",
    "ParseResult",
]
