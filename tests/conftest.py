"""Shared test fixtures and marker registration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

import pytest

from remote_dispatch._registry import OperatorRegistry
from remote_dispatch._resolver import ExplicitRegistry, Resolver
from remote_dispatch.backends._memory import MemoryBackend

if TYPE_CHECKING:
    from remote_dispatch._operator import Operator
    from remote_dispatch._types import ConfigMap


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


def shared(instance: MemoryBackend) -> type[MemoryBackend]:
    """Operator class whose every resolution yields ``instance``."""

    class _Shared(MemoryBackend):
        @classmethod
        def from_config(cls, config: ConfigMap) -> Operator:
            return instance

    return _Shared


Put = Callable[..., None]


def _put(operator: Operator, path: str, data: bytes, content_type: Optional[str] = None) -> None:
    writer = operator.writer(path, content_type=content_type)
    writer.write(data)
    writer.close()


@pytest.fixture
def put() -> Put:
    """Write ``data`` to ``path`` on an operator in one call."""
    return _put


@pytest.fixture
def memory() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def archive() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def registry(memory: MemoryBackend, archive: MemoryBackend) -> OperatorRegistry:
    """``memory://`` and ``archive://`` roots resolve to two persistent stores."""
    return OperatorRegistry({"memory": shared(memory), "archive": shared(archive)})


@pytest.fixture
def resolver(registry: OperatorRegistry) -> Resolver:
    return Resolver(ExplicitRegistry(registry))
