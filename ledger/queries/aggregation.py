"""
Aggregation Engine

DESIGN DECISION: Everything here is a pure function of the invoice list
and explicit parameters. No storage access, no settings lookups, no I/O.
The same input always produces the same view and the same totals.

Amounts are floats and are never rounded here; rounding happens only
when a value is displayed.
"""

from datetime import date
from typing import Iterable, Optional, Sequence

from ledger.models.invoice import (
    UNCATEGORIZED,
    GroupedTotals,
    Invoice,
    InvoiceFilter,
    Totals,
)


def _matches(invoice: Invoice, criteria: InvoiceFilter) -> bool:
    if criteria.type and invoice.type != criteria.type:
        return False
    if not criteria.include_archived and invoice.archived:
        return False
    if criteria.category and criteria.category.lower() not in invoice.category.lower():
        return False

    if criteria.date_from or criteria.date_to:
        invoice_date = invoice.parsed_date
        # An unreadable date is never inside a requested range
        if invoice_date is None:
            return False
        if criteria.date_from and invoice_date < criteria.date_from:
            return False
        if criteria.date_to and invoice_date > criteria.date_to:
            return False

    if criteria.search:
        blob = f"{invoice.number} {invoice.entity} {invoice.concept} {invoice.notes}"
        if criteria.search.lower() not in blob.lower():
            return False

    return True


def _date_sort_key(invoice: Invoice) -> tuple[int, date]:
    parsed = invoice.parsed_date
    if parsed is None:
        return (0, date.min)
    return (1, parsed)


def apply_filters(
    invoices: Iterable[Invoice],
    criteria: Optional[InvoiceFilter] = None,
) -> list[Invoice]:
    """
    Filter invoices and sort them newest first.

    Invoices sharing a date keep their input order. Invoices with an
    unreadable date sort after all others.
    """
    criteria = criteria or InvoiceFilter()
    matching = [invoice for invoice in invoices if _matches(invoice, criteria)]
    return sorted(matching, key=_date_sort_key, reverse=True)


def compute_totals(
    invoices: Iterable[Invoice],
    withholding_pct: float,
) -> Totals:
    """
    Compute KPI totals.

    Withholding applies to positive profit only, so it is never negative.
    """
    total_issued = total_received = 0.0
    tax_issued = tax_received = 0.0
    count_issued = count_received = 0

    for invoice in invoices:
        tax = invoice.tax
        total = invoice.base + tax
        if invoice.is_issued:
            total_issued += total
            tax_issued += tax
            count_issued += 1
        else:
            total_received += total
            tax_received += tax
            count_received += 1

    profit = total_issued - total_received
    withholding = max(0.0, profit) * withholding_pct / 100

    return Totals(
        total_issued=total_issued,
        total_received=total_received,
        profit=profit,
        tax_issued=tax_issued,
        tax_received=tax_received,
        tax_balance=tax_issued - tax_received,
        count_issued=count_issued,
        count_received=count_received,
        withholding=max(0.0, withholding),
    )


def _group(keyed: Iterable[tuple[str, Invoice]]) -> dict[str, list[float]]:
    groups: dict[str, list[float]] = {}
    for key, invoice in keyed:
        bucket = groups.setdefault(key, [0.0, 0.0])
        if invoice.is_issued:
            bucket[0] += invoice.total
        else:
            bucket[1] += invoice.total
    return groups


def _to_grouped(groups: dict[str, list[float]], labels: Sequence[str]) -> GroupedTotals:
    return GroupedTotals(
        labels=list(labels),
        issued=[groups[label][0] for label in labels],
        received=[groups[label][1] for label in labels],
    )


def group_by_category(invoices: Iterable[Invoice]) -> GroupedTotals:
    """
    Issued and received totals per category.

    Invoices without a category are grouped under UNCATEGORIZED.
    Groups appear in order of first occurrence.
    """
    groups = _group(
        (invoice.category or UNCATEGORIZED, invoice) for invoice in invoices
    )
    return _to_grouped(groups, list(groups))


def month_key(invoice: Invoice) -> Optional[str]:
    """YYYY-MM for the invoice date, or None if the date is unreadable."""
    parsed = invoice.parsed_date
    if parsed is None:
        return None
    return f"{parsed.year:04d}-{parsed.month:02d}"


def group_by_month(invoices: Iterable[Invoice]) -> GroupedTotals:
    """
    Issued and received totals per calendar month, oldest first.

    Invoices with an unreadable date are left out.
    """
    keyed = []
    for invoice in invoices:
        key = month_key(invoice)
        if key is not None:
            keyed.append((key, invoice))
    groups = _group(keyed)
    return _to_grouped(groups, sorted(groups))
