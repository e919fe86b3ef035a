"""Services: request handlers the host runtime binds and invokes.

Each handler takes a parsed JSON body and returns a JSON-compatible result.
Every failure leaves a handler as :class:`~remote_dispatch._classify.HandlerError`
carrying a permanent or retryable outcome; retrying is left to the host.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, Optional

from remote_dispatch._classify import outcomes
from remote_dispatch._copy import copy
from remote_dispatch._layers import logging_layer
from remote_dispatch._location import parse_location
from remote_dispatch._operations import list_entries, presign_read, presign_stat
from remote_dispatch._requests import (
    CopyRequest,
    ListRequest,
    PresignRequest,
    list_response,
    presign_response,
)
from remote_dispatch._resolver import Builtin, Chain, Decorated, ExplicitRegistry, Profiles, Resolver

if TYPE_CHECKING:
    from collections.abc import Mapping

    from remote_dispatch._config import ServiceConfig
    from remote_dispatch._models import Entry, PresignedRequest, ReadOptions, StatOptions
    from remote_dispatch._registry import OperatorRegistry
    from remote_dispatch._resolver import Strategy
    from remote_dispatch._types import Handler

log = logging.getLogger(__name__)


class StorageService:
    """List and presign against one fixed backend or any backend by URI.

    In dynamic mode (``root`` unset) every request carries a full URI under
    ``uri``. In scoped mode requests carry a bare ``path`` under ``root``,
    which is resolved once here so a broken deployment fails at startup.
    Operators are resolved anew for every request either way.

    :param resolver: Resolver for backend roots.
    :param root: Fixed backend root of a scoped deployment.
    """

    name = "Storage"

    def __init__(self, resolver: Resolver, *, root: Optional[str] = None) -> None:
        self._resolver = resolver
        self._root = root
        if root is not None:
            with resolver.resolve(root) as operator:
                log.info("Scoped to %s (backend %s)", root, operator.name)

    def __repr__(self) -> str:
        return f"StorageService(resolver={self._resolver!r}, root={self._root!r})"

    @property
    def root(self) -> Optional[str]:
        return self._root

    @property
    def location_key(self) -> str:
        """Request field that carries the location: ``uri`` or ``path``."""
        return "uri" if self._root is None else "path"

    def list(self, request: ListRequest) -> list[Entry]:
        root, path = parse_location(request.location, root=self._root)
        with self._resolver.resolve(root) as operator:
            return list_entries(operator, path, request.options)

    def presign_read(self, request: PresignRequest) -> PresignedRequest:
        root, path = parse_location(request.location, root=self._root)
        options: Optional[ReadOptions] = request.options  # type: ignore[assignment]
        with self._resolver.resolve(root) as operator:
            return presign_read(operator, path, request.expiration, options)

    def presign_stat(self, request: PresignRequest) -> PresignedRequest:
        root, path = parse_location(request.location, root=self._root)
        options: Optional[StatOptions] = request.options
        with self._resolver.resolve(root) as operator:
            return presign_stat(operator, path, request.expiration, options)

    def handlers(self) -> dict[str, Handler]:
        """Handler name to callable, as exposed to the host runtime."""
        return {
            "list": self._handle_list,
            "presignRead": self._handle_presign_read,
            "presignStat": self._handle_presign_stat,
        }

    def _handle_list(self, body: Mapping[str, Any]) -> dict[str, Any]:
        with outcomes("list"):
            request = ListRequest.from_dict(body, location_key=self.location_key)
            return list_response(self.list(request))

    def _handle_presign_read(self, body: Mapping[str, Any]) -> dict[str, Any]:
        with outcomes("presignRead"):
            request = PresignRequest.from_dict(body, location_key=self.location_key, read=True)
            return presign_response(self.presign_read(request))

    def _handle_presign_stat(self, body: Mapping[str, Any]) -> dict[str, Any]:
        with outcomes("presignStat"):
            request = PresignRequest.from_dict(body, location_key=self.location_key, read=False)
            return presign_response(self.presign_stat(request))


class CopyService:
    """Copy files between any two backends addressed by full URIs.

    :param resolver: Resolver for backend roots.
    """

    name = "StorageExtra"

    def __init__(self, resolver: Resolver) -> None:
        self._resolver = resolver

    def __repr__(self) -> str:
        return f"CopyService(resolver={self._resolver!r})"

    def copy(self, request: CopyRequest) -> str:
        """Run a copy. Returns the real destination path."""
        return copy(self._resolver, request.source, request.destination, request.options)

    def handlers(self) -> dict[str, Handler]:
        return {"copy": self._handle_copy}

    def _handle_copy(self, body: Mapping[str, Any]) -> None:
        with outcomes("copy"):
            self.copy(CopyRequest.from_dict(body))


@dataclasses.dataclass(frozen=True)
class Services:
    """The services of one deployment."""

    storage: StorageService
    copy: CopyService

    def handlers(self) -> dict[str, Handler]:
        """All handlers, keyed ``"<service>/<handler>"``."""
        handlers: dict[str, Handler] = {}
        for service in (self.storage, self.copy):
            for name, handler in service.handlers().items():
                handlers[f"{service.name}/{name}"] = handler
        return handlers


def default_strategy(config: ServiceConfig, registry: Optional[OperatorRegistry] = None) -> Strategy:
    """Profiles first (when configured), then schemes; every operator logged."""
    by_scheme: Strategy = Builtin() if registry is None else ExplicitRegistry(registry)
    base: Strategy = by_scheme
    if config.profiles:
        base = Chain([Profiles(config.profiles, registry=registry), by_scheme])
    return Decorated(base, logging_layer)


def build_services(config: ServiceConfig, *, registry: Optional[OperatorRegistry] = None) -> Services:
    """Validate ``config`` and wire the storage and copy services.

    :param config: Process configuration, loaded once.
    :param registry: Registry to resolve schemes and profile types against
        (default: built-in backends).
    :raises UriInvalid: If the store root is not a URI.
    :raises ValueError: If a profile has no ``type``.
    """
    config.validate()
    resolver = Resolver(default_strategy(config, registry))
    mode = "scoped" if config.scoped else "dynamic"
    log.info("Building services in %s mode with profiles %s", mode, sorted(config.profiles))
    return Services(storage=StorageService(resolver, root=config.store_uri), copy=CopyService(resolver))
