"""
Invoice Ledger - Source Package

A local, offline ledger for issued and received invoices.

DESIGN PRINCIPLES:
1. Storage layer is swappable (indexed database or flat file)
2. Derived figures are computed, never stored
3. Validate before writing, fail visibly
4. Backups must restore exactly what was exported
"""

__version__ = "1.0.0"
__author__ = "Invoice Ledger Team"
