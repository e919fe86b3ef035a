"""Tests for the storage and copy services."""

from __future__ import annotations

import logging

import pytest

from remote_dispatch._classify import HandlerError
from remote_dispatch._config import ServiceConfig
from remote_dispatch._errors import UnsupportedScheme, UriInvalid
from remote_dispatch._layers import LoggingOperator
from remote_dispatch._registry import OperatorRegistry
from remote_dispatch._requests import CopyRequest, ListRequest
from remote_dispatch._resolver import Builtin, Chain, Decorated, ExplicitRegistry, Profiles, Resolver
from remote_dispatch._service import (
    CopyService,
    Services,
    StorageService,
    build_services,
    default_strategy,
)
from remote_dispatch.backends._memory import MemoryBackend
from tests.conftest import Put


@pytest.fixture
def services(registry: OperatorRegistry) -> Services:
    return build_services(ServiceConfig(), registry=registry)


class TestHandlers:
    def test_names(self, services: Services) -> None:
        assert sorted(services.handlers()) == [
            "Storage/list",
            "Storage/presignRead",
            "Storage/presignStat",
            "StorageExtra/copy",
        ]

    def test_service_names(self) -> None:
        assert StorageService.name == "Storage"
        assert CopyService.name == "StorageExtra"


class TestList:
    def test_empty_root(self, services: Services) -> None:
        assert services.handlers()["Storage/list"]({"uri": "memory:///"}) == {"entries": []}

    def test_entries(self, services: Services, memory: MemoryBackend, put: Put) -> None:
        put(memory, "docs/a.txt", b"hello", "text/plain")
        put(memory, "b.txt", b"!")
        body = services.handlers()["Storage/list"]({"uri": "memory:///"})
        assert [e["path"] for e in body["entries"]] == ["b.txt", "docs/"]

    def test_recursive(self, services: Services, memory: MemoryBackend, put: Put) -> None:
        put(memory, "docs/a.txt", b"hello", "text/plain")
        body = services.handlers()["Storage/list"]({"uri": "memory:///", "options": {"recursive": True}})
        assert body["entries"][0]["path"] == "docs/a.txt"
        assert body["entries"][0]["metadata"]["contentLength"] == 5
        assert body["entries"][0]["metadata"]["contentType"] == "text/plain"

    def test_typed_call(self, services: Services, memory: MemoryBackend, put: Put) -> None:
        put(memory, "a.txt", b"a")
        assert [e.path for e in services.storage.list(ListRequest(location="memory:///"))] == ["a.txt"]

    def test_missing_uri_is_permanent(self, services: Services) -> None:
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["Storage/list"]({})
        assert exc_info.value.code == 400
        assert exc_info.value.retryable is False

    def test_unknown_scheme(self, services: Services) -> None:
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["Storage/list"]({"uri": "gopher://host/"})
        assert exc_info.value.code == 501

    def test_unsupported_option(self, services: Services) -> None:
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["Storage/list"]({"uri": "memory:///", "options": {"versions": True}})
        assert exc_info.value.code == 501


class TestPresign:
    def test_presign_read(self) -> None:
        handlers = build_services(ServiceConfig()).handlers()
        body = handlers["Storage/presignRead"]({"uri": "https://files.example.com/a.txt", "expiration": "3600s"})
        assert body["method"] == "GET"
        assert body["uri"] == "https://files.example.com/a.txt"
        assert body["headers"] == {}

    def test_presign_stat_with_options(self) -> None:
        handlers = build_services(ServiceConfig()).handlers()
        body = handlers["Storage/presignStat"](
            {"uri": "https://files.example.com/a.txt", "expiration": 60, "options": {"ifNoneMatch": "*"}}
        )
        assert body["method"] == "HEAD"
        assert body["headers"] == {"if-none-match": "*"}

    def test_presign_unsupported(self, services: Services) -> None:
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["Storage/presignRead"]({"uri": "memory:///a.txt", "expiration": 60})
        assert exc_info.value.code == 501

    def test_bad_expiration(self, services: Services) -> None:
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["Storage/presignRead"]({"uri": "memory:///a.txt", "expiration": "soon"})
        assert exc_info.value.code == 400


class TestCopy:
    def test_copy(self, services: Services, memory: MemoryBackend, archive: MemoryBackend, put: Put) -> None:
        put(memory, "in/report.csv", b"0123456789", "text/csv")
        put(archive, "out/.keep", b"")
        result = services.handlers()["StorageExtra/copy"](
            {"source": "memory:///in/report.csv", "destination": "archive:///out/"}
        )
        assert result is None
        assert archive.stat("out/report.csv").content_type == "text/csv"

    def test_copy_to_new_file_in_existing_directory(
        self, services: Services, memory: MemoryBackend, archive: MemoryBackend, put: Put
    ) -> None:
        put(memory, "in/data.bin", b"0123456789", "application/x-custom")
        put(archive, "reports/.keep", b"")
        services.handlers()["StorageExtra/copy"](
            {"source": "memory:///in/data.bin", "destination": "archive:///reports/new.bin"}
        )
        meta = archive.stat("reports/new.bin")
        assert meta.content_length == 10
        assert meta.content_type == "application/x-custom"
        with archive.read("reports/new.bin") as reader:
            assert reader.read() == b"0123456789"
        assert [e.path for e in archive.list("reports/")] == ["reports/.keep", "reports/new.bin"]

    def test_copy_missing_source(self, services: Services) -> None:
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["StorageExtra/copy"]({"source": "memory:///x", "destination": "archive:///x"})
        assert exc_info.value.code == 404

    def test_copy_directory_rejected(self, services: Services, memory: MemoryBackend, put: Put) -> None:
        put(memory, "d/a.txt", b"a")
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["StorageExtra/copy"]({"source": "memory:///d/", "destination": "archive:///"})
        assert exc_info.value.code == 500
        assert "Copying directories is not supported" in str(exc_info.value)

    def test_typed_call_returns_destination(
        self, services: Services, memory: MemoryBackend, put: Put
    ) -> None:
        put(memory, "a.txt", b"a")
        assert services.copy.copy(CopyRequest(source="memory:///a.txt", destination="archive:///")) == "a.txt"


class TestScopedMode:
    def test_path_requests(self, registry: OperatorRegistry, memory: MemoryBackend, put: Put) -> None:
        put(memory, "docs/a.txt", b"a")
        services = build_services(ServiceConfig(store_uri="memory://"), registry=registry)
        assert services.storage.location_key == "path"
        body = services.handlers()["Storage/list"]({"path": "/docs/"})
        assert [e["path"] for e in body["entries"]] == ["docs/a.txt"]

    def test_uri_field_ignored(self, registry: OperatorRegistry) -> None:
        services = build_services(ServiceConfig(store_uri="memory://"), registry=registry)
        with pytest.raises(HandlerError) as exc_info:
            services.handlers()["Storage/list"]({"uri": "memory:///"})
        assert exc_info.value.code == 400

    def test_bad_root_fails_at_startup(self, registry: OperatorRegistry) -> None:
        with pytest.raises(UnsupportedScheme):
            build_services(ServiceConfig(store_uri="gopher://host"), registry=registry)

    def test_invalid_root_fails_validation(self, registry: OperatorRegistry) -> None:
        with pytest.raises(UriInvalid):
            build_services(ServiceConfig(store_uri="nonsense"), registry=registry)

    def test_resolved_per_request(self, registry: OperatorRegistry) -> None:
        calls: list[str] = []
        resolver = Resolver(ExplicitRegistry(registry))
        original = resolver.resolve

        def counting(root: str):  # type: ignore[no-untyped-def]
            calls.append(root)
            return original(root)

        resolver.resolve = counting  # type: ignore[method-assign]
        storage = StorageService(resolver, root="memory://")
        storage.list(ListRequest(location="/"))
        storage.list(ListRequest(location="/"))
        assert calls == ["memory://", "memory://", "memory://"]

    def test_startup_logged(self, registry: OperatorRegistry, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="remote_dispatch._service"):
            build_services(ServiceConfig(store_uri="memory://"), registry=registry)
        assert "Scoped to memory://" in caplog.text


class TestProfiles:
    def test_profile_root(self, registry: OperatorRegistry, memory: MemoryBackend, put: Put) -> None:
        put(memory, "a.txt", b"a")
        config = ServiceConfig(profiles={"backup": {"type": "memory"}})
        services = build_services(config, registry=registry)
        body = services.handlers()["Storage/list"]({"uri": "backup:///"})
        assert [e["path"] for e in body["entries"]] == ["a.txt"]

    def test_schemes_still_resolve(self, registry: OperatorRegistry) -> None:
        services = build_services(ServiceConfig(profiles={"backup": {"type": "memory"}}), registry=registry)
        assert services.handlers()["Storage/list"]({"uri": "archive:///"}) == {"entries": []}

    def test_profile_without_type_rejected(self, registry: OperatorRegistry) -> None:
        with pytest.raises(ValueError, match="has no 'type'"):
            build_services(ServiceConfig(profiles={"backup": {"bucket": "b"}}), registry=registry)


class TestDefaultStrategy:
    def test_builtin_without_profiles(self) -> None:
        strategy = default_strategy(ServiceConfig())
        assert isinstance(strategy, Decorated)
        assert strategy.inner == Builtin()

    def test_profiles_chained_before_schemes(self, registry: OperatorRegistry) -> None:
        strategy = default_strategy(ServiceConfig(profiles={"x": {"type": "memory"}}), registry)
        assert isinstance(strategy, Decorated)
        assert isinstance(strategy.inner, Chain)
        first, second = strategy.inner.strategies
        assert isinstance(first, Profiles)
        assert second == ExplicitRegistry(registry)

    def test_operators_are_logged(self, registry: OperatorRegistry) -> None:
        resolver = Resolver(default_strategy(ServiceConfig(), registry))
        assert isinstance(resolver.resolve("memory://"), LoggingOperator)
