"""Tests for OperatorRegistry and the process-wide default registry."""

from __future__ import annotations

import pytest

from remote_dispatch._errors import ConfigInvalid, UnsupportedScheme, UriInvalid
from remote_dispatch._location import parse_root
from remote_dispatch._registry import OperatorRegistry, default_registry, register_backend
from remote_dispatch._resolver import Builtin, resolve
from remote_dispatch.backends._http import HttpBackend
from remote_dispatch.backends._local import LocalBackend
from remote_dispatch.backends._memory import MemoryBackend
from remote_dispatch.backends._s3 import S3Backend


class TestOperatorRegistry:
    def test_register_and_load(self) -> None:
        registry = OperatorRegistry()
        registry.register("mem", MemoryBackend)
        assert isinstance(registry.load("mem://"), MemoryBackend)

    def test_schemes_are_case_insensitive(self) -> None:
        registry = OperatorRegistry({"MEM": MemoryBackend})
        assert "mem" in registry
        assert "Mem" in registry
        assert isinstance(registry.load("MEM://"), MemoryBackend)

    def test_load_parsed_root(self) -> None:
        registry = OperatorRegistry({"mem": MemoryBackend})
        assert isinstance(registry.load(parse_root("mem://")), MemoryBackend)

    def test_unknown_scheme(self) -> None:
        registry = OperatorRegistry({"mem": MemoryBackend})
        with pytest.raises(UnsupportedScheme, match="Registered schemes: \\['mem'\\]"):
            registry.load("gcs://bucket")

    def test_invalid_root(self) -> None:
        with pytest.raises(UriInvalid):
            OperatorRegistry().load("no-scheme")

    def test_build(self) -> None:
        registry = OperatorRegistry({"fs": LocalBackend})
        op = registry.build("fs", {"root": "/tmp"})
        assert isinstance(op, LocalBackend)

    def test_build_unknown_kind(self) -> None:
        with pytest.raises(ConfigInvalid, match="Unknown backend type 'gcs'"):
            OperatorRegistry().build("gcs", {})

    def test_build_ignores_unknown_option(self) -> None:
        registry = OperatorRegistry({"mem": MemoryBackend})
        assert isinstance(registry.build("mem", {"colour": "blue", "root": "/data"}), MemoryBackend)

    def test_build_reports_rejected_value(self) -> None:
        registry = OperatorRegistry({"fs": LocalBackend})
        with pytest.raises(ConfigInvalid, match="Provided keys: \\['colour', 'root'\\]"):
            registry.build("fs", {"colour": "blue", "root": ""})

    def test_build_reports_missing_required_key(self) -> None:
        registry = OperatorRegistry({"s3": S3Backend})
        with pytest.raises(ConfigInvalid, match="bucket"):
            registry.build("s3", {"region": "eu-west-1"})

    def test_contains_non_string(self) -> None:
        assert 42 not in OperatorRegistry({"mem": MemoryBackend})

    def test_repr(self) -> None:
        assert repr(OperatorRegistry({"b": MemoryBackend, "a": MemoryBackend})) == (
            "OperatorRegistry(schemes=['a', 'b'])"
        )


class TestDefaultRegistry:
    @pytest.mark.parametrize("scheme", ["memory", "mem", "fs", "file", "s3", "sftp", "http", "https"])
    def test_builtin_schemes(self, scheme: str) -> None:
        assert scheme in default_registry()

    def test_builtins_resolve(self) -> None:
        assert isinstance(default_registry().load("memory://"), MemoryBackend)
        assert isinstance(default_registry().load("https://example.com"), HttpBackend)
        assert isinstance(default_registry().load("s3://bucket"), S3Backend)

    def test_register_backend(self) -> None:
        class Custom(MemoryBackend):
            pass

        register_backend("custom-test", Custom)
        assert isinstance(default_registry().load("custom-test://"), Custom)
        assert type(default_registry().load("memory://")) is MemoryBackend

    def test_strategy_ignores_later_registrations(self) -> None:
        class Late(MemoryBackend):
            pass

        before = Builtin()
        register_backend("late-test", Late)
        with pytest.raises(UnsupportedScheme):
            resolve(before, "late-test://")
        assert isinstance(resolve(Builtin(), "late-test://"), Late)


class TestSnapshot:
    def test_copies_registrations(self) -> None:
        registry = OperatorRegistry({"mem": MemoryBackend})
        snapshot = registry.snapshot()
        registry.register("fs", LocalBackend)
        assert snapshot.schemes() == ["mem"]

    def test_read_only(self) -> None:
        with pytest.raises(RuntimeError, match="read-only"):
            OperatorRegistry().snapshot().register("mem", MemoryBackend)
