"""Display formatting for the UI. Amounts are rounded here and nowhere else."""

from typing import Optional

from ledger.models.invoice import Invoice, to_number


CURRENCY_SYMBOL = "€"


def format_currency(value) -> str:
    """
    Format an amount as Spanish-style euros: 12.345,67 €

    Thousands are grouped only from five integer digits on (1234,50 €),
    as es-ES formatting does.
    """
    amount = to_number(value)
    integer, decimals = f"{abs(amount):.2f}".split(".")
    sign = "-" if amount < 0 and (integer, decimals) != ("0", "00") else ""
    if len(integer) > 4:
        integer = f"{int(integer):,}".replace(",", ".")
    return f"{sign}{integer},{decimals} {CURRENCY_SYMBOL}"


def format_short(value) -> str:
    """Compact amount label for chart captions: 1.2M, 3.4k or a rounded integer."""
    amount = to_number(value)
    sign = "-" if amount < 0 else ""
    magnitude = abs(amount)
    if magnitude >= 1_000_000:
        return f"{sign}{magnitude / 1_000_000:.1f}M"
    if magnitude >= 1_000:
        return f"{sign}{magnitude / 1_000:.1f}k"
    return str(round(amount))


def unreadable_date_notice(invoice: Invoice) -> Optional[str]:
    """Warning for the edit form when the stored date cannot be parsed, else None."""
    if invoice.parsed_date is not None:
        return None
    stored = invoice.date or "(empty)"
    return f"Stored date '{stored}' is not a valid date; saving replaces it with the date above."
