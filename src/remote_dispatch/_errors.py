"""Normalized error hierarchy for remote_dispatch."""

from __future__ import annotations

from typing import Optional


class DispatchError(Exception):
    """Base class for all remote_dispatch errors.

    Raised as-is for backend failures that fit no narrower kind.

    :param message: Human-readable error description.
    :param path: The path involved in the error, if any.
    :param backend: The backend name involved, if any.
    :param retryable: Whether the failure is transient on the backend side.
    """

    default_retryable = False

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        backend: Optional[str] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        self.path = path
        self.backend = backend
        self.retryable = self.default_retryable if retryable is None else retryable
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.backend is not None:
            parts.append(f"backend={self.backend!r}")
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(super().__str__())]
        if self.path is not None:
            args.append(f"path={self.path!r}")
        if self.backend is not None:
            args.append(f"backend={self.backend!r}")
        if self.retryable:
            args.append("retryable=True")
        return f"{cls}({', '.join(args)})"


# region: request and resolution errors
class InvalidLocation(DispatchError):
    """Raised when a request location cannot be split into root and path."""


class InvalidRequest(DispatchError):
    """Raised when a request body is missing fields or has the wrong shape."""


class InvalidPath(DispatchError):
    """Raised for malformed or unsafe object paths."""


class UriInvalid(DispatchError):
    """Raised when a backend root cannot be parsed as a URI."""


class UnsupportedScheme(DispatchError):
    """Raised when no resolution strategy recognizes a backend root.

    A resolution chain treats this error as "try the next strategy".
    """


class ProfileNotFound(UnsupportedScheme):
    """Raised when the scheme position of a root names no configured profile."""


class ProfileMissingType(DispatchError):
    """Raised when a matched profile has no ``type`` entry."""


class ConfigInvalid(DispatchError):
    """Raised when a backend kind rejects its configuration."""


# endregion


# region: backend errors
class NotFound(DispatchError):
    """Raised when a file or directory does not exist."""


class AlreadyExists(DispatchError):
    """Raised when a target already exists."""


class PermissionDenied(DispatchError):
    """Raised when access is denied by the storage backend."""


class IsADirectory(DispatchError):
    """Raised when a file operation targets a directory."""


class NotADirectory(DispatchError):
    """Raised when a directory operation targets a file."""


class CapabilityNotSupported(DispatchError):
    """Raised when an operation requires an unsupported capability.

    :param capability: The name of the unsupported capability.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        backend: Optional[str] = None,
        capability: str = "",
    ) -> None:
        self.capability = capability
        super().__init__(message, path=path, backend=backend)

    def __str__(self) -> str:
        base = super().__str__()
        if self.capability:
            if base:
                return f"{base} | capability={self.capability!r}"
            return f"capability={self.capability!r}"
        return base


class BackendUnavailable(DispatchError):
    """Raised when the backend cannot be reached. Retryable unless stated otherwise."""

    default_retryable = True


# endregion


class OperationRejected(DispatchError):
    """Raised when a request is well-formed but asks for something the operation refuses to do."""
