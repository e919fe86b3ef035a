"""OperatorRegistry: scheme/kind to operator class lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

from remote_dispatch._errors import ConfigInvalid, UnsupportedScheme
from remote_dispatch._location import RootUri, parse_root

if TYPE_CHECKING:
    from collections.abc import Mapping

    from remote_dispatch._operator import Operator
    from remote_dispatch._types import ConfigMap


class OperatorRegistry:
    """Maps URI schemes (and profile ``type`` values) to operator classes.

    Populated at startup and only read afterwards.

    :param factories: Initial scheme to operator class mapping.
    :param read_only: Reject later :meth:`register` calls.
    """

    def __init__(
        self, factories: Optional[Mapping[str, type[Operator]]] = None, *, read_only: bool = False
    ) -> None:
        self._factories: dict[str, type[Operator]] = {}
        for scheme, cls in (factories or {}).items():
            self._factories[scheme.lower()] = cls
        self._read_only = read_only

    def __repr__(self) -> str:
        return f"OperatorRegistry(schemes={self.schemes()!r})"

    def __contains__(self, scheme: object) -> bool:
        return isinstance(scheme, str) and scheme.lower() in self._factories

    def register(self, scheme: str, cls: type[Operator]) -> None:
        """Register an operator class for a scheme.

        :param scheme: The scheme or kind identifier (e.g. ``"fs"``).
        :param cls: The operator class to instantiate.
        :raises RuntimeError: If the registry is read-only.
        """
        if self._read_only:
            raise RuntimeError(f"Cannot register '{scheme}': registry is read-only")
        self._factories[scheme.lower()] = cls

    def snapshot(self) -> OperatorRegistry:
        """Read-only copy of the current registrations."""
        return OperatorRegistry(self._factories, read_only=True)

    def schemes(self) -> list[str]:
        return sorted(self._factories)

    def load(self, root: Union[str, RootUri]) -> Operator:
        """Construct the operator for a backend root.

        :raises UriInvalid: If ``root`` is not a URI.
        :raises UnsupportedScheme: If the scheme is not registered.
        :raises ConfigInvalid: If the backend rejects the root's configuration.
        """
        parsed = parse_root(root) if isinstance(root, str) else root
        cls = self._factories.get(parsed.scheme)
        if cls is None:
            raise UnsupportedScheme(
                f"Unsupported scheme '{parsed.scheme}'. Registered schemes: {self.schemes()}"
            )
        return cls.from_uri(parsed)

    def build(self, kind: str, config: ConfigMap) -> Operator:
        """Construct an operator of a named kind from a flat configuration map.

        :raises ConfigInvalid: If the kind is unknown or rejects ``config``.
        """
        cls = self._factories.get(kind.lower())
        if cls is None:
            raise ConfigInvalid(f"Unknown backend type '{kind}'. Registered types: {self.schemes()}")
        return cls.from_config(config)


# Process-wide registry behind the Builtin strategy.
_DEFAULT_REGISTRY = OperatorRegistry()


def _register_builtin_backends() -> None:
    """Register the built-in backends."""
    from remote_dispatch.backends._http import HttpBackend
    from remote_dispatch.backends._local import LocalBackend
    from remote_dispatch.backends._memory import MemoryBackend
    from remote_dispatch.backends._s3 import S3Backend
    from remote_dispatch.backends._sftp import SFTPBackend

    builtins: dict[str, type[Operator]] = {
        "memory": MemoryBackend,
        "mem": MemoryBackend,
        "fs": LocalBackend,
        "file": LocalBackend,
        "s3": S3Backend,
        "sftp": SFTPBackend,
        "http": HttpBackend,
        "https": HttpBackend,
    }
    for scheme, cls in builtins.items():
        if scheme not in _DEFAULT_REGISTRY:
            _DEFAULT_REGISTRY.register(scheme, cls)


def default_registry() -> OperatorRegistry:
    """The process-wide registry, with built-in backends registered."""
    _register_builtin_backends()
    return _DEFAULT_REGISTRY


def register_backend(scheme: str, cls: type[Operator]) -> None:
    """Register an operator class in the process-wide registry.

    Call at startup: strategies snapshot the registry when they are built
    and never see later registrations.

    :param scheme: The scheme or kind identifier.
    :param cls: The operator class to instantiate.
    """
    _DEFAULT_REGISTRY.register(scheme, cls)
