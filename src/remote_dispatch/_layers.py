"""Operator transforms applied after resolution."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Optional

from remote_dispatch._errors import DispatchError
from remote_dispatch._operator import Operator

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import timedelta

    from remote_dispatch._capabilities import CapabilitySet
    from remote_dispatch._models import Entry, ListOptions, Metadata, PresignedRequest, ReadOptions, StatOptions
    from remote_dispatch._operator import Reader, Writer

log = logging.getLogger(__name__)


class LoggingOperator(Operator):
    """Wraps an operator and logs every call made through it.

    Calls are logged at ``DEBUG``; failures at ``WARNING`` with the mapped error.

    :param inner: The operator to delegate to.
    :param logger: Logger to write to (default: this module's logger).
    """

    def __init__(self, inner: Operator, *, logger: Optional[logging.Logger] = None) -> None:
        self._inner = inner
        self._log = logger or log

    def __repr__(self) -> str:
        return f"LoggingOperator({self._inner!r})"

    @property
    def inner(self) -> Operator:
        return self._inner

    @property
    def name(self) -> str:
        return self._inner.name

    @property
    def capabilities(self) -> CapabilitySet:
        return self._inner.capabilities

    @contextmanager
    def _logged(self, operation: str, path: str) -> Iterator[None]:
        self._log.debug("service=%s operation=%s path=%s -> started", self.name, operation, path)
        try:
            yield
        except DispatchError as exc:
            self._log.warning("service=%s operation=%s path=%s -> failed: %r", self.name, operation, path, exc)
            raise
        self._log.debug("service=%s operation=%s path=%s -> finished", self.name, operation, path)

    def stat_with(self, path: str, options: StatOptions) -> Metadata:
        with self._logged("stat", path):
            return self._inner.stat_with(path, options)

    def stat(self, path: str) -> Metadata:
        with self._logged("stat", path):
            return self._inner.stat(path)

    def list_with(self, path: str, options: ListOptions) -> Iterator[Entry]:
        with self._logged("list", path):
            yield from self._inner.list_with(path, options)

    def list(self, path: str) -> Iterator[Entry]:
        with self._logged("list", path):
            yield from self._inner.list(path)

    def read(self, path: str) -> Reader:
        with self._logged("read", path):
            return self._inner.read(path)

    def writer(self, path: str, *, content_type: Optional[str] = None) -> Writer:
        with self._logged("write", path):
            return self._inner.writer(path, content_type=content_type)

    def presign_read_with(self, path: str, expire: timedelta, options: ReadOptions) -> PresignedRequest:
        with self._logged("presign_read", path):
            return self._inner.presign_read_with(path, expire, options)

    def presign_read(self, path: str, expire: timedelta) -> PresignedRequest:
        with self._logged("presign_read", path):
            return self._inner.presign_read(path, expire)

    def presign_stat_with(self, path: str, expire: timedelta, options: StatOptions) -> PresignedRequest:
        with self._logged("presign_stat", path):
            return self._inner.presign_stat_with(path, expire, options)

    def presign_stat(self, path: str, expire: timedelta) -> PresignedRequest:
        with self._logged("presign_stat", path):
            return self._inner.presign_stat(path, expire)

    def close(self) -> None:
        self._inner.close()


def logging_layer(operator: Operator) -> Operator:
    """Transform that wraps ``operator`` in a :class:`LoggingOperator`."""
    return LoggingOperator(operator)
