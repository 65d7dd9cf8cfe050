"""
Ledger Engine - Source Package

Records income and expense transactions, tracks them against monthly
per-category budgets and notifies the user when a budget runs hot.

DESIGN PRINCIPLES:
1. Validate before anything is written
2. Totals are always recomputed from the ledger, never cached
3. Fail early, fail visibly (Ok / Err, never a raw exception)
4. Every write must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Engine Team"
