"""Error classification: permanent outcomes with stable codes vs. retryable ones."""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, ClassVar, Optional, Union

from remote_dispatch._errors import (
    AlreadyExists,
    CapabilityNotSupported,
    ConfigInvalid,
    DispatchError,
    InvalidLocation,
    InvalidPath,
    InvalidRequest,
    IsADirectory,
    NotADirectory,
    NotFound,
    OperationRejected,
    PermissionDenied,
    ProfileMissingType,
    ProfileNotFound,
    UnsupportedScheme,
    UriInvalid,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

INTERNAL_ERROR = 500

_STATUS_CODES: dict[type[DispatchError], int] = {
    CapabilityNotSupported: 501,
    UnsupportedScheme: 501,
    ConfigInvalid: 400,
    UriInvalid: 400,
    InvalidLocation: 400,
    InvalidRequest: 400,
    InvalidPath: 400,
    ProfileNotFound: 400,
    ProfileMissingType: 400,
    NotFound: 404,
    PermissionDenied: 403,
    IsADirectory: 422,
    NotADirectory: 422,
    AlreadyExists: 409,
}

# Kinds that stay permanent even when flagged retryable.
_ALWAYS_PERMANENT = (
    InvalidLocation,
    InvalidRequest,
    InvalidPath,
    UriInvalid,
    UnsupportedScheme,
    ProfileMissingType,
    ConfigInvalid,
    OperationRejected,
)


@dataclasses.dataclass(frozen=True)
class Permanent:
    """A terminal failure.

    :param code: Stable HTTP-style status code.
    :param message: Human-readable message.
    """

    code: int
    message: str
    retryable: ClassVar[bool] = False


@dataclasses.dataclass(frozen=True)
class Retryable:
    """A failure the host runtime may retry by re-invoking the same request.

    :param message: Human-readable message.
    """

    message: str
    retryable: ClassVar[bool] = True


Outcome = Union[Permanent, Retryable]


def status_code(exc: DispatchError) -> int:
    """Stable code for an error kind; unmapped kinds are internal errors."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return INTERNAL_ERROR


def classify(exc: BaseException) -> Outcome:
    """Map a failure to a permanent or retryable outcome.

    Errors outside the ``remote_dispatch`` taxonomy are unexpected I/O or
    library failures and are treated as retryable.
    """
    if isinstance(exc, DispatchError):
        if exc.retryable and not isinstance(exc, _ALWAYS_PERMANENT):
            return Retryable(str(exc))
        return Permanent(status_code(exc), str(exc))
    return Retryable(str(exc) or type(exc).__name__)


class HandlerError(Exception):
    """Raised by handlers so the host runtime sees a classified failure.

    :param outcome: The classified outcome.
    """

    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome
        super().__init__(outcome.message)

    @property
    def retryable(self) -> bool:
        return self.outcome.retryable

    @property
    def code(self) -> Optional[int]:
        """Status code of a permanent failure, ``None`` when retryable."""
        return self.outcome.code if isinstance(self.outcome, Permanent) else None

    def __repr__(self) -> str:
        return f"HandlerError({self.outcome!r})"


@contextmanager
def outcomes(handler: str) -> Iterator[None]:
    """Convert any failure inside the block into a :class:`HandlerError`."""
    try:
        yield
    except HandlerError:
        raise
    except Exception as exc:
        outcome = classify(exc)
        if isinstance(outcome, Permanent):
            log.info("handler=%s failed permanently (code=%d): %s", handler, outcome.code, outcome.message)
        else:
            log.warning("handler=%s failed, retryable: %s", handler, outcome.message)
        raise HandlerError(outcome) from exc
