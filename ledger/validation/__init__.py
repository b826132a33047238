"""Validation package."""

from ledger.validation.validator import InvoiceValidationError, InvoiceValidator

__all__ = ["InvoiceValidationError", "InvoiceValidator"]
