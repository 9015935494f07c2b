"""
wellspring.errors — Domain Exceptions
======================================

Every failure raised by the engine derives from :class:`GamificationError`
so the web layer can map the whole family in one place.  All of them are
scoped to a single request; none is fatal to the process.
"""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for all engine errors."""


class PatientNotFound(GamificationError):
    """The referenced patient profile does not exist (never auto-created)."""

    def __init__(self, patient_id: str) -> None:
        super().__init__(f"Patient profile not found: {patient_id!r}")
        self.patient_id = patient_id


class InvalidAmount(GamificationError):
    """A point award was not a positive integer."""

    def __init__(self, amount: object) -> None:
        super().__init__(f"Point amount must be a positive integer, got {amount!r}")
        self.amount = amount


class InvalidActivityKind(GamificationError):
    """The activity kind is unknown or not accepted by this operation."""

    def __init__(self, kind: object, reason: str = "unknown activity kind") -> None:
        super().__init__(f"{reason}: {kind!r}")
        self.kind = kind


class ConcurrentAwardConflict(GamificationError):
    """A store uniqueness constraint rejected a duplicate award.

    Raised by the low-level insert helpers and always caught by their
    callers, which report the already-awarded state instead.
    """

    def __init__(self, patient_id: str, what: str) -> None:
        super().__init__(f"Concurrent award conflict for {patient_id!r}: {what}")
        self.patient_id = patient_id
        self.what = what


class PersistenceError(GamificationError):
    """Store-level failure (abort, connectivity, unexpected constraint).

    The whole ``record_activity`` / ``check_in`` call is safe to retry.
    """
