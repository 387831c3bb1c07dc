"""Services for ledger-side import stages."""

from .directory import DirectoryResult, DirectoryService, PreconditionError, map_concurrently
from .importer import ImportService, ImportSummary
from .reconciliation import (
    BATCH_SIZE,
    Reconciler,
    ReconciliationResult,
    build_transfer_payee_map,
    chunk_postings,
)
from .upload import UploadResult, upload_postings

__all__ = [
    "BATCH_SIZE",
    "DirectoryResult",
    "DirectoryService",
    "ImportService",
    "ImportSummary",
    "PreconditionError",
    "Reconciler",
    "ReconciliationResult",
    "UploadResult",
    "build_transfer_payee_map",
    "chunk_postings",
    "map_concurrently",
    "upload_postings",
]
