"""
User Preferences

Persisted settings the user changes from the UI: the income tax
withholding percentage and the dark theme flag. Stored as a JSON
key-value file next to the invoice data.

The aggregation engine never reads these directly; the caller passes
the withholding percentage in.
"""

from pathlib import Path

from ledger.models.invoice import to_number
from ledger.services.storage.key_value import KeyValueFile


WITHHOLDING_KEY = "irpfPct"
THEME_KEY = "theme"


class PreferencesStore:
    """Read/write surface for persisted user preferences."""

    def __init__(self, path: Path, default_withholding_pct: float = 15.0):
        self._file = KeyValueFile(path)
        self._default_withholding_pct = default_withholding_pct

    @property
    def withholding_pct(self) -> float:
        """Withholding percentage; unreadable values read as 0."""
        raw = self._file.get(WITHHOLDING_KEY)
        if raw is None:
            return self._default_withholding_pct
        return to_number(raw)

    @withholding_pct.setter
    def withholding_pct(self, value: float) -> None:
        self._file.set(WITHHOLDING_KEY, clamp_percentage(value))

    @property
    def dark_theme(self) -> bool:
        return self._file.get(THEME_KEY) == "dark"

    @dark_theme.setter
    def dark_theme(self, value: bool) -> None:
        self._file.set(THEME_KEY, "dark" if value else "light")


def clamp_percentage(value) -> float:
    """Parse a percentage and clamp it into [0, 100]."""
    return max(0.0, min(100.0, to_number(value)))
