"""Error taxonomy shared by the REST and tool-call transports."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError


class StickyNotesError(Exception):
    """Base class; ``status_code`` is the HTTP status the REST layer uses."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": type(self).__name__}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(StickyNotesError):
    status_code = 400


class NotFoundError(StickyNotesError):
    status_code = 404

    @classmethod
    def for_id(cls, kind: str, ident: Any) -> "NotFoundError":
        return cls(f"{kind} with id {ident} not found", {"id": ident})


class ConstraintError(StickyNotesError):
    status_code = 409


class StoreBusyError(StickyNotesError):
    """The database stayed locked past the busy timeout. Safe to retry."""

    status_code = 503


class InternalError(StickyNotesError):
    status_code = 500


_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")


def translate_store_error(exc: SQLAlchemyError) -> StickyNotesError:
    if isinstance(exc, IntegrityError):
        return ConstraintError("Constraint violation", {"reason": str(exc.orig)})
    if isinstance(exc, OperationalError):
        reason = str(exc.orig).lower()
        if any(marker in reason for marker in _BUSY_MARKERS):
            return StoreBusyError("Database is busy, please try again")
    return InternalError("Internal storage error", {"reason": str(getattr(exc, "orig", exc))})
