"""
Frostline Pricing - Errors
==========================
InputError carries every issue found in a cart or promotion payload
so the caller can surface each offending line / field at once.
The storage-side taxonomy is re-exported from core.catalog.errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from core.catalog.errors import (
    DataInconsistency,
    DuplicatePromotion,
    PricingError,
    RepositoryFailure,
)


@dataclass(frozen=True)
class ValidationIssue:
    """One failed check. index is the 0-based cart line or tier row, if any."""

    code: str
    message: str
    field: Optional[str] = None
    index: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "index": self.index,
        }


class InputError(PricingError):
    """Malformed caller input, rejected before any calculation."""

    def __init__(self, issues: Iterable[ValidationIssue]):
        self.issues: Tuple[ValidationIssue, ...] = tuple(issues)
        if not self.issues:
            raise ValueError("InputError requires at least one issue.")
        first = self.issues[0]
        extra = len(self.issues) - 1
        suffix = f" (+{extra} more)" if extra else ""
        super().__init__(f"[{first.code}] {first.message}{suffix}")

    @property
    def codes(self) -> Tuple[str, ...]:
        return tuple(i.code for i in self.issues)


__all__ = [
    "PricingError",
    "InputError",
    "ValidationIssue",
    "DataInconsistency",
    "DuplicatePromotion",
    "RepositoryFailure",
]
