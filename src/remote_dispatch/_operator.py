"""Operator abstract base class: the backend contract."""

from __future__ import annotations

import abc
import functools
import inspect
import logging
from typing import TYPE_CHECKING, BinaryIO, ClassVar, Optional

from remote_dispatch._errors import CapabilityNotSupported, ConfigInvalid
from remote_dispatch._models import ListOptions, ReadOptions, StatOptions

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import timedelta
    from types import TracebackType

    from remote_dispatch._capabilities import CapabilitySet
    from remote_dispatch._location import RootUri
    from remote_dispatch._models import Entry, Metadata, PresignedRequest
    from remote_dispatch._types import ConfigMap

log = logging.getLogger(__name__)


class Reader(abc.ABC):
    """A single-pass byte source opened by :meth:`Operator.read`."""

    @abc.abstractmethod
    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; ``b""`` once exhausted."""

    def chunks(self, size: int) -> Iterator[bytes]:
        """Lazy, finite sequence of chunks of at most ``size`` bytes."""
        return iter(functools.partial(self.read, size), b"")

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __enter__(self) -> Reader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class FileReader(Reader):
    """Reader over a binary file-like object.

    :param stream: Object with ``read(size)`` and ``close()``.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def read(self, size: int = -1) -> bytes:
        return bytes(self._stream.read(size))

    def close(self) -> None:
        self._stream.close()


class Writer(abc.ABC):
    """A pending object opened by :meth:`Operator.writer`.

    Nothing is guaranteed to be visible until :meth:`close` returns.
    """

    @abc.abstractmethod
    def write(self, data: bytes) -> None:
        """Append ``data`` to the pending object."""

    @abc.abstractmethod
    def close(self) -> None:
        """Finalize the object."""

    @abc.abstractmethod
    def abort(self) -> None:
        """Release resources without finalizing. Bytes already sent may remain."""


class Operator(abc.ABC):
    """Abstract base class for all storage backends.

    Backend-native exceptions must never leak: they are mapped to
    ``remote_dispatch`` errors, with transient failures marked ``retryable``.
    Paths are backend-relative; a trailing ``/`` denotes a directory.
    """

    #: Config key that receives the root's authority in :meth:`from_uri`.
    authority_key: ClassVar[Optional[str]] = None

    @classmethod
    def config_keys(cls) -> Optional[frozenset[str]]:
        """Keyword options the constructor accepts, or ``None`` if it takes any."""
        params = list(inspect.signature(cls.__init__).parameters.values())[1:]
        if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
            return None
        return frozenset(
            p.name
            for p in params
            if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
        )

    @classmethod
    def from_config(cls, config: ConfigMap) -> Operator:
        """Build an operator from a flat string configuration map.

        Keys the backend does not know are ignored, so one profile can carry
        options for several backend kinds.

        :raises ConfigInvalid: If a required key is missing or a value is rejected.
        """
        known = cls.config_keys()
        options = {k: v for k, v in config.items() if known is None or k in known}
        ignored = sorted(set(config) - set(options))
        if ignored:
            log.debug("%s ignores configuration keys %s", cls.__name__, ignored)
        try:
            return cls(**options)
        except (TypeError, ValueError) as exc:
            raise ConfigInvalid(
                f"Invalid configuration for {cls.__name__}: {exc}. Provided keys: {sorted(config)}"
            ) from None

    @classmethod
    def from_uri(cls, root: RootUri) -> Operator:
        """Build an operator from a backend root.

        Query parameters become configuration; the authority is stored under
        :attr:`authority_key` when the backend declares one.
        """
        config = dict(root.query)
        if root.authority and cls.authority_key is not None:
            config[cls.authority_key] = root.authority
        return cls.from_config(config)

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Identifier of this backend kind (e.g. ``'fs'``, ``'s3'``)."""

    @property
    @abc.abstractmethod
    def capabilities(self) -> CapabilitySet:
        """Declared capabilities of this operator."""

    @abc.abstractmethod
    def stat_with(self, path: str, options: StatOptions) -> Metadata:
        """Get metadata for a path.

        :raises NotFound: If nothing exists at ``path``.
        """

    def stat(self, path: str) -> Metadata:
        """Get metadata for a path with backend defaults."""
        return self.stat_with(path, StatOptions())

    @abc.abstractmethod
    def list_with(self, path: str, options: ListOptions) -> Iterator[Entry]:
        """Lazily list entries under a directory path."""

    def list(self, path: str) -> Iterator[Entry]:
        """Lazily list the immediate children of a directory path."""
        return self.list_with(path, ListOptions())

    @abc.abstractmethod
    def read(self, path: str) -> Reader:
        """Open a file for streaming reads.

        :raises NotFound: If the file does not exist.
        """

    @abc.abstractmethod
    def writer(self, path: str, *, content_type: Optional[str] = None) -> Writer:
        """Open a writer that creates or replaces the file at ``path``."""

    def presign_read_with(self, path: str, expire: timedelta, options: ReadOptions) -> PresignedRequest:
        """Presign a read request.

        :raises CapabilityNotSupported: If the backend cannot presign.
        """
        raise CapabilityNotSupported(
            f"Backend '{self.name}' cannot presign reads", capability="presign_read", backend=self.name, path=path
        )

    def presign_read(self, path: str, expire: timedelta) -> PresignedRequest:
        return self.presign_read_with(path, expire, ReadOptions())

    def presign_stat_with(self, path: str, expire: timedelta, options: StatOptions) -> PresignedRequest:
        """Presign a stat request.

        :raises CapabilityNotSupported: If the backend cannot presign.
        """
        raise CapabilityNotSupported(
            f"Backend '{self.name}' cannot presign stats", capability="presign_stat", backend=self.name, path=path
        )

    def presign_stat(self, path: str, expire: timedelta) -> PresignedRequest:
        return self.presign_stat_with(path, expire, StatOptions())

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __enter__(self) -> Operator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
