"""
Primoco CSV export → Actual Budget bulk importer.

A deterministic, testable pipeline that turns a Primoco finance export into
Actual Budget accounts, categories and transactions, with content-based
import identities and double-entry transfer reconciliation.
"""

__version__ = "0.1.0"
