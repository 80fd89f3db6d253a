"""
Exception types raised by the engine.

Callers can tell "nothing happened" (ValidationError, NotFoundError) apart from
"something broke" (RepositoryError, ConfigurationMissingError). Batch jobs do
not raise for per-row problems; they report them in a BatchResult.
"""

from typing import Optional


class SalonBookError(Exception):
    """Base class for all engine errors."""


class ConfigurationMissingError(SalonBookError):
    """No pricing config row exists and seeding the default failed."""


class ValidationError(SalonBookError, ValueError):
    """Caller supplied input the engine refuses to apply."""


class PaymentRejectedError(ValidationError):
    """Payment amount or history index not acceptable for this reservation."""


class NotFoundError(SalonBookError, LookupError):
    """The addressed reservation or expense does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class RepositoryError(SalonBookError):
    """
    The underlying store failed. Keeps the driver's diagnostics
    (SQLSTATE code, detail, hint) for operator debugging.
    """

    def __init__(
        self,
        action: str,
        message: str,
        code: Optional[str] = None,
        detail: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.action = action
        self.message = message
        self.code = code
        self.detail = detail
        self.hint = hint
        super().__init__(self.describe())

    def describe(self) -> str:
        text = f"{self.action} failed: {self.message}"
        if self.code:
            text += f" (code: {self.code})"
        if self.detail:
            text += f" detail: {self.detail}"
        if self.hint:
            text += f" hint: {self.hint}"
        return text

    @classmethod
    def from_driver(cls, action: str, exc: Exception) -> 'RepositoryError':
        """Build from a psycopg2.Error (or anything shaped like one)."""
        diag = getattr(exc, 'diag', None)
        message = getattr(diag, 'message_primary', None) or str(exc).strip() or type(exc).__name__
        return cls(
            action=action,
            message=message,
            code=getattr(exc, 'pgcode', None),
            detail=getattr(diag, 'message_detail', None),
            hint=getattr(diag, 'message_hint', None),
        )
