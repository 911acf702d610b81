"""Exception hierarchy for personal_finance.

Structural failures (malformed money or dates, tree invariant violations)
abort the current call.  :class:`LookupMiss` is the only non-fatal error: the
pipeline catches it per transaction and routes the record to a fallback
bucket.
"""

from __future__ import annotations


class FinanceError(Exception):
    """Base class for every error raised by this package."""


class InvalidFormat(FinanceError, ValueError):
    """A money value is not numeric."""


class InvalidDate(FinanceError, ValueError):
    """A date string is not in ``YYYY-MM-DD`` form."""


class TreeInvariantError(FinanceError):
    """A category tree mutation would break single-parent ownership."""


class AlreadyAttached(TreeInvariantError):
    """The subcategory already has a parent."""


class AlreadyAssigned(TreeInvariantError):
    """The transaction already belongs to a category."""


class CycleDetected(TreeInvariantError):
    """The subcategory is the target category or one of its ancestors."""


class LookupMiss(FinanceError, KeyError):
    """A tag, category or category group reference could not be resolved."""

    def __init__(self, kind: str, ref_id: int) -> None:
        super().__init__(f"missing {kind} from Lunch Money response: {ref_id}")
        self.kind = kind
        self.ref_id = ref_id

    def __str__(self) -> str:
        return self.args[0]


class ConfigError(FinanceError):
    """Configuration or credentials are missing or invalid."""


class ProviderError(FinanceError):
    """A provider API call failed or returned an unusable payload."""
