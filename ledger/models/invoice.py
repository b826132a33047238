"""
Core Data Models for Invoice Ledger

These models define the schemas for all data flowing through the system.
They are designed to:
1. Coerce loosely typed input (form fields, backup files) into clean values
2. Serialize to the camelCase record shape used by every storage format
3. Expose derived amounts without ever persisting them

DESIGN DECISION: Numeric fields are coerced, never rejected.
A value that cannot be read as a number becomes 0 so that no NaN or
infinity can reach a stored record or a computed total. Rejecting bad
input (negative base, missing number) is the validator's job.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


DEFAULT_TAX_PCT = 21.0

# Category label used when an invoice has no category
UNCATEGORIZED = "—"

# Field order shared by the tabular export and the record shape
RECORD_FIELDS = [
    "id",
    "number",
    "date",
    "type",
    "entity",
    "concept",
    "base",
    "taxPct",
    "payment",
    "category",
    "notes",
    "pdfPath",
    "archived",
]


# =============================================================================
# COERCION HELPERS
# =============================================================================

def new_invoice_id() -> str:
    """Generate a fresh opaque invoice identifier."""
    return uuid4().hex


def to_number(value: Any) -> float:
    """
    Parse a value as a float, defaulting to zero.

    Strings are stripped before parsing. Anything unparseable, and any
    non-finite result, becomes 0.0. Digit separators ("1_000") are not
    accepted, only plain decimal or exponent notation.
    """
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value or "_" in value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def to_flag(value: Any) -> bool:
    """Coerce a stored or imported value to a boolean."""
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "on"}
    return bool(value)


def to_text(value: Any) -> str:
    """Missing values become empty strings."""
    if value is None:
        return ""
    return str(value)


def parse_iso_date(value: Any) -> Optional[date]:
    """
    Parse an ISO date (or datetime) string.

    Returns None when the value is not a readable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


# =============================================================================
# ENUMS
# =============================================================================

class InvoiceType(str, Enum):
    """Direction of an invoice."""
    ISSUED = "issued"       # We billed a client
    RECEIVED = "received"   # A supplier billed us


# =============================================================================
# CORE INVOICE MODEL
# =============================================================================

class Invoice(BaseModel):
    """
    A single invoice record.

    This is the only persisted entity. Attribute names are snake_case,
    serialized names are the camelCase record keys (taxPct, pdfPath).
    Use to_record() for the storage/backup shape.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        default_factory=new_invoice_id,
        description="Opaque identifier, assigned once"
    )
    number: str = Field(
        default="",
        description="Invoice number, unique across the ledger"
    )
    date: str = Field(
        default="",
        description="Invoice date as an ISO string (YYYY-MM-DD)"
    )
    type: InvoiceType = Field(
        default=InvoiceType.ISSUED,
        description="Issued or received"
    )
    entity: str = Field(
        default="",
        description="Client or supplier name"
    )
    concept: str = Field(
        default="",
        description="What the invoice is for"
    )
    base: float = Field(
        default=0.0,
        description="Taxable base amount"
    )
    tax_pct: float = Field(
        default=DEFAULT_TAX_PCT,
        alias="taxPct",
        description="VAT percentage applied to the base"
    )
    payment: str = ""
    category: str = ""
    notes: str = ""
    pdf_path: str = Field(
        default="",
        alias="pdfPath",
        description="Location of the invoice PDF (not checked)"
    )
    archived: bool = False

    @field_validator('id', mode='before')
    @classmethod
    def assign_missing_id(cls, v: Any) -> str:
        """Empty identifiers get a fresh one."""
        text = to_text(v).strip()
        return text or new_invoice_id()

    @field_validator(
        'number', 'date', 'entity', 'concept', 'payment',
        'category', 'notes', 'pdf_path',
        mode='before',
    )
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return to_text(v)

    @field_validator('type', mode='before')
    @classmethod
    def coerce_type(cls, v: Any) -> InvoiceType:
        """Anything other than 'received' is an issued invoice."""
        if isinstance(v, InvoiceType):
            return v
        return InvoiceType.RECEIVED if v == InvoiceType.RECEIVED.value else InvoiceType.ISSUED

    @field_validator('base', 'tax_pct', mode='before')
    @classmethod
    def coerce_number(cls, v: Any) -> float:
        return to_number(v)

    @field_validator('archived', mode='before')
    @classmethod
    def coerce_archived(cls, v: Any) -> bool:
        return to_flag(v)

    @property
    def is_issued(self) -> bool:
        return self.type != InvoiceType.RECEIVED

    @property
    def tax(self) -> float:
        """VAT amount: base * taxPct / 100."""
        return self.base * self.tax_pct / 100

    @property
    def total(self) -> float:
        """Base plus VAT."""
        return self.base + self.tax

    @property
    def parsed_date(self):
        """The invoice date, or None if it is not a readable date."""
        # No return annotation: `date` is a field name inside this class body
        return parse_iso_date(self.date)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase record used by storage and backups."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Invoice":
        """Build an invoice from a stored or imported record."""
        return cls.model_validate(record)


# =============================================================================
# FILTER MODEL
# =============================================================================

class InvoiceFilter(BaseModel):
    """
    Criteria for the invoice list view.

    All active criteria are combined with AND.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: Optional[InvoiceType] = Field(
        default=None,
        description="Only this direction (None = both)"
    )
    category: str = Field(
        default="",
        description="Case-insensitive substring of the category"
    )
    date_from: Optional[date] = Field(
        default=None,
        description="Only invoices on or after this date"
    )
    date_to: Optional[date] = Field(
        default=None,
        description="Only invoices on or before this date"
    )
    include_archived: bool = Field(
        default=False,
        description="Whether archived invoices are listed"
    )
    search: str = Field(
        default="",
        description="Case-insensitive text over number, entity, concept and notes"
    )

    @field_validator('type', mode='before')
    @classmethod
    def empty_type_means_all(cls, v: Any) -> Any:
        if v == "":
            return None
        return v


# =============================================================================
# AGGREGATE MODELS
# =============================================================================

class Totals(BaseModel):
    """KPI totals over a set of invoices."""

    total_issued: float = 0.0
    total_received: float = 0.0
    profit: float = 0.0
    tax_issued: float = 0.0
    tax_received: float = 0.0
    tax_balance: float = 0.0
    count_issued: int = 0
    count_received: int = 0
    withholding: float = Field(
        default=0.0,
        ge=0.0,
        description="Income tax withholding on positive profit"
    )


class GroupedTotals(BaseModel):
    """
    Issued and received totals per group, as parallel lists.

    labels[i] is the group key for issued[i] and received[i].
    """

    labels: list[str] = Field(default_factory=list)
    issued: list[float] = Field(default_factory=list)
    received: list[float] = Field(default_factory=list)

    def as_rows(self) -> list[dict[str, Any]]:
        """One dict per group, convenient for tables and charts."""
        return [
            {"group": label, "issued": issued, "received": received}
            for label, issued, received in zip(self.labels, self.issued, self.received)
        ]


class LedgerView(BaseModel):
    """Everything the list screen renders for one filter."""

    invoices: list[Invoice] = Field(default_factory=list)
    totals: Totals = Field(default_factory=Totals)
    by_category: GroupedTotals = Field(default_factory=GroupedTotals)
    by_month: GroupedTotals = Field(default_factory=GroupedTotals)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating an invoice before it is written."""

    invoice_id: str
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None
