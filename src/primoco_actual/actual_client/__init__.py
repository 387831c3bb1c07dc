"""
Actual Budget API Client.

Provides:
- Account, category group, category and payee directories
- Account / category creation
- Bulk transaction import per account
- Sync checkpoint and shutdown

Treats Actual errors as loud failures with actionable messages.
"""

from .client import (
    ActualAccount,
    ActualAPIError,
    ActualCategory,
    ActualCategoryGroup,
    ActualClient,
    ActualConnectionError,
    ActualError,
    ActualPayee,
    ImportResult,
)

__all__ = [
    "ActualClient",
    "ActualError",
    "ActualAPIError",
    "ActualConnectionError",
    "ActualAccount",
    "ActualCategory",
    "ActualCategoryGroup",
    "ActualPayee",
    "ImportResult",
]
