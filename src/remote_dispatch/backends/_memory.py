"""In-memory backend: process-local, dict-backed reference implementation."""

from __future__ import annotations

import base64
import hashlib
import io
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from remote_dispatch._capabilities import Capability, CapabilitySet
from remote_dispatch._errors import IsADirectory, NotFound
from remote_dispatch._models import Entry, EntryMode, Metadata
from remote_dispatch._operator import FileReader, Operator, Writer
from remote_dispatch._path import ObjectPath

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_dispatch._models import ListOptions, StatOptions
    from remote_dispatch._operator import Reader

_MEMORY_CAPABILITIES = CapabilitySet(
    {
        Capability.STAT,
        Capability.READ,
        Capability.WRITE,
        Capability.WRITE_WITH_CONTENT_TYPE,
        Capability.LIST,
        Capability.LIST_WITH_START_AFTER,
        Capability.LIST_WITH_RECURSIVE,
    }
)

_DIR_METADATA = Metadata(mode=EntryMode.DIR)


class _MemoryWriter(Writer):
    def __init__(self, backend: MemoryBackend, key: str, content_type: Optional[str]) -> None:
        self._backend = backend
        self._key = key
        self._content_type = content_type
        self._buffer: Optional[io.BytesIO] = io.BytesIO()

    def write(self, data: bytes) -> None:
        if self._buffer is None:
            raise ValueError("write to a closed writer")
        self._buffer.write(data)

    def close(self) -> None:
        if self._buffer is None:
            return
        data = self._buffer.getvalue()
        self._buffer = None
        self._backend._put(self._key, data, self._content_type)

    def abort(self) -> None:
        self._buffer = None


class MemoryBackend(Operator):
    """Backend holding objects in a dict; contents live as long as the instance.

    Directories are implicit: a path is a directory while any object lives
    below it.

    :param root: Namespace the instance's paths are relative to. Each
        instance owns its objects, so the root only shows in ``repr``.
    """

    def __init__(self, *, root: str = "") -> None:
        self._root = ObjectPath(root).key
        self._objects: dict[str, tuple[bytes, Metadata]] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"MemoryBackend(root={self._root!r}, objects={len(self._objects)})"

    @property
    def name(self) -> str:
        return "memory"

    @property
    def capabilities(self) -> CapabilitySet:
        return _MEMORY_CAPABILITIES

    def _put(self, key: str, data: bytes, content_type: Optional[str]) -> None:
        digest = hashlib.md5(data)  # noqa: S324 -- content checksum, not security
        metadata = Metadata(
            mode=EntryMode.FILE,
            content_length=len(data),
            content_md5=base64.b64encode(digest.digest()).decode("ascii"),
            content_type=content_type,
            etag=f'"{digest.hexdigest()}"',
            last_modified=datetime.now(tz=timezone.utc),
        )
        with self._lock:
            self._objects[key] = (data, metadata)

    def _has_children(self, key: str) -> bool:
        prefix = f"{key}/" if key else ""
        return any(k.startswith(prefix) for k in self._objects)

    def stat_with(self, path: str, options: StatOptions) -> Metadata:
        p = ObjectPath(path)
        if p.is_root:
            return _DIR_METADATA
        with self._lock:
            if not p.is_dir and p.key in self._objects:
                return self._objects[p.key][1]
            if self._has_children(p.key):
                return _DIR_METADATA
        raise NotFound(f"Not found: {path}", path=path, backend=self.name)

    def list_with(self, path: str, options: ListOptions) -> Iterator[Entry]:
        p = ObjectPath(path)
        prefix = f"{p.key}/" if p.key else ""
        with self._lock:
            snapshot = sorted((k, meta) for k, (_data, meta) in self._objects.items() if k.startswith(prefix))
        seen_dirs: set[str] = set()
        for key, meta in snapshot:
            rest = key[len(prefix) :]
            if not options.recursive and "/" in rest:
                child = prefix + rest.split("/", 1)[0] + "/"
                if child in seen_dirs:
                    continue
                seen_dirs.add(child)
                entry = Entry(path=child, metadata=_DIR_METADATA)
            else:
                entry = Entry(path=key, metadata=meta)
            if options.start_after is not None and entry.path <= options.start_after:
                continue
            yield entry

    def read(self, path: str) -> Reader:
        p = ObjectPath(path)
        with self._lock:
            item = self._objects.get(p.key)
            is_dir = item is None and (p.is_root or self._has_children(p.key))
        if is_dir:
            raise IsADirectory(f"Is a directory: {path}", path=path, backend=self.name)
        if item is None:
            raise NotFound(f"File not found: {path}", path=path, backend=self.name)
        return FileReader(io.BytesIO(item[0]))

    def writer(self, path: str, *, content_type: Optional[str] = None) -> Writer:
        p = ObjectPath(path)
        if p.is_dir:
            raise IsADirectory(f"Cannot write to a directory path: {path}", path=path, backend=self.name)
        return _MemoryWriter(self, p.key, content_type)
