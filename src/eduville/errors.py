"""Engine error taxonomy.

Every failure is terminal for the attempted operation and is returned to the
caller synchronously. Handlers translate these into HTTP responses in
``eduville.middleware.error_handler``.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm.exc import StaleDataError

if TYPE_CHECKING:
    from eduville.progression.requirements import ClauseResult


class EngineError(Exception):
    """Base class for all engine failures."""

    status_code = 400
    code = "engine_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(EngineError):
    """Character, listing, event or specialization absent."""

    status_code = 404
    code = "not_found"


class PreconditionFailedError(EngineError):
    """Insufficient energy, cash, inventory, level, or an unmet requirement clause."""

    status_code = 422
    code = "precondition_failed"

    def __init__(
        self,
        message: str,
        unmet: list[ClauseResult] | None = None,
        **details: Any,
    ) -> None:
        super().__init__(message, **details)
        self.unmet = list(unmet or [])

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["unmet"] = [clause.to_dict() for clause in self.unmet]
        return body


class ConflictError(EngineError):
    """Already joined, already claimed, already specialized, or not the owner."""

    status_code = 409
    code = "conflict"


class ExpiredError(EngineError):
    """Listing or event past its window."""

    status_code = 410
    code = "expired"


def conflict_on_stale_write(func):
    """Turn a lost optimistic-lock race on a character row into ``ConflictError``.

    The wrapped coroutine must take the session as its first argument. The
    stale write can surface at autoflush as well as at commit, so the whole
    call is guarded and the session rolled back before re-raising.
    """

    @functools.wraps(func)
    async def wrapper(db, *args, **kwargs):
        try:
            return await func(db, *args, **kwargs)
        except StaleDataError as exc:
            await db.rollback()
            msg = "Character was changed by another request; try again"
            raise ConflictError(msg) from exc

    return wrapper
