"""
Import identity generation (CRITICAL).

This module defines THE deterministic imported_id function.
Actual Budget uses imported_id to skip rows it has already seen, so
the identity must be:
- Stable: the same source row always produces the same id
- Sensitive: any difference in the original row (even whitespace) changes it
- Content-derived: computed from the row as read, before any repair

Identity format:
    {sha256-hex}        first occurrence, and every duplicate in default mode
    {sha256-hex}-{n}    n-th duplicate (1-based) when duplicates are forced

The fingerprint is SHA-256 over the compact JSON form of the row
(`{"Date":"01.02.2024",...}`, key order preserved, non-ASCII kept verbatim).
"""

import hashlib
import json
from collections.abc import Mapping

# Separator between fingerprint and duplicate counter
DUPLICATE_SUFFIX_SEPARATOR = "-"

# Length of a full SHA-256 hex digest
FINGERPRINT_LENGTH = 64


def serialize_row(row: Mapping[str, str]) -> str:
    """Serialize a raw row into its canonical JSON form (key order preserved)."""
    return json.dumps(dict(row), ensure_ascii=False, separators=(",", ":"))


def compute_row_fingerprint(row: Mapping[str, str]) -> str:
    """
    Compute the content fingerprint of an original source row.

    Args:
        row: Mapping of trimmed header → raw field text, in column order

    Returns:
        64-character lowercase hex SHA-256 hash

    Examples:
        >>> compute_row_fingerprint({"Date": "01.02.2024", "Value": "-3,50"})
        '...'  # Deterministic hash
    """
    return hashlib.sha256(serialize_row(row).encode("utf-8")).hexdigest()


def make_import_identity(fingerprint: str, duplicate_index: int = 0) -> str:
    """
    Build the imported_id for the n-th occurrence of a fingerprint.

    Args:
        fingerprint: Row fingerprint
        duplicate_index: 0 for the first occurrence, n for the n-th duplicate

    Returns:
        The fingerprint itself, or fingerprint with a ``-n`` suffix
    """
    if duplicate_index < 0:
        raise ValueError(f"duplicate_index must be non-negative, got: {duplicate_index}")
    if duplicate_index == 0:
        return fingerprint
    return f"{fingerprint}{DUPLICATE_SUFFIX_SEPARATOR}{duplicate_index}"


class ImportIdentityIndex:
    """
    Fingerprint → original rows sharing it, in encounter order.

    Only grows during the parse pass; afterwards it is used for duplicate
    reporting. Registering never raises.
    """

    def __init__(self, force_duplicates: bool = False):
        self.force_duplicates = force_duplicates
        self._rows: dict[str, list[dict[str, str]]] = {}

    def register(self, fingerprint: str, row: Mapping[str, str]) -> str:
        """
        Record a row and return the import identity to use for it.

        In default mode every occurrence shares the fingerprint as identity
        (the ledger will ignore exact repeats). With force_duplicates, the
        n-th duplicate gets the suffix ``-n`` so all rows are imported.
        """
        entries = self._rows.setdefault(fingerprint, [])
        duplicate_index = len(entries)

        if self.force_duplicates:
            identity = make_import_identity(fingerprint, duplicate_index)
        else:
            identity = fingerprint

        entries.append({**row, "imported_id": identity})
        return identity

    def duplicates(self) -> dict[str, list[dict[str, str]]]:
        """Fingerprints seen more than once, with all their rows."""
        return {fp: list(rows) for fp, rows in self._rows.items() if len(rows) > 1}

    @property
    def duplicate_count(self) -> int:
        """Number of fingerprints that occur more than once."""
        return sum(1 for rows in self._rows.values() if len(rows) > 1)

    @property
    def duplicate_rows(self) -> int:
        """Number of rows beyond the first occurrence of their fingerprint."""
        return sum(len(rows) - 1 for rows in self._rows.values())
