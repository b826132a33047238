"""
Invoice Validation

DESIGN DECISION: Every invoice is validated before any store call.
A failed validation has no side effect; the caller shows the first
error to the user and nothing is written.

Checks:
- required fields (number, date, entity, concept)
- base must be a non-negative number
- number must not belong to another invoice

The duplicate check here gives a clean message. The unique index in the
indexed backend remains the real guard.
"""

import math
from typing import Iterable

from ledger.models.invoice import Invoice, ValidationIssue, ValidationResult


REQUIRED_FIELDS = [
    ("number", "Invoice number is required"),
    ("date", "Invoice date is required"),
    ("entity", "Client or supplier is required"),
    ("concept", "Concept is required"),
]


class InvoiceValidationError(Exception):
    """Raised when an invoice fails validation. Carries the full result."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.first_error or "Invalid invoice")


class InvoiceValidator:
    """Validates an invoice against the current collection."""

    def _check_required(self, invoice: Invoice) -> list[ValidationIssue]:
        issues = []
        for field, message in REQUIRED_FIELDS:
            if not getattr(invoice, field).strip():
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=message,
                ))
        return issues

    def _check_amounts(self, invoice: Invoice) -> list[ValidationIssue]:
        if not math.isfinite(invoice.base) or invoice.base < 0:
            return [ValidationIssue(
                field="base",
                issue_type="invalid_value",
                message="Taxable base is not valid",
            )]
        return []

    def _check_duplicate(
        self,
        invoice: Invoice,
        existing: Iterable[Invoice],
    ) -> list[ValidationIssue]:
        for other in existing:
            if other.number == invoice.number and other.id != invoice.id:
                return [ValidationIssue(
                    field="number",
                    issue_type="duplicate",
                    message="An invoice with that number already exists",
                )]
        return []

    def validate(
        self,
        invoice: Invoice,
        existing: Iterable[Invoice] = (),
    ) -> ValidationResult:
        """
        Validate an invoice.

        Args:
            invoice: The invoice about to be written
            existing: The current collection, for the duplicate check

        Returns:
            ValidationResult with all issues found, in form order
        """
        issues = self._check_required(invoice)
        issues.extend(self._check_amounts(invoice))
        if invoice.number.strip():
            issues.extend(self._check_duplicate(invoice, existing))

        return ValidationResult(invoice_id=invoice.id, issues=issues)
