"""Local filesystem backend: stdlib-only reference implementation."""

from __future__ import annotations

import contextlib
import errno
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Optional

from remote_dispatch._capabilities import Capability, CapabilitySet
from remote_dispatch._errors import (
    AlreadyExists,
    DispatchError,
    InvalidPath,
    IsADirectory,
    NotADirectory,
    NotFound,
    PermissionDenied,
)
from remote_dispatch._models import Entry, EntryMode, Metadata
from remote_dispatch._operator import FileReader, Operator, Writer
from remote_dispatch._path import ObjectPath

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_dispatch._models import ListOptions, StatOptions
    from remote_dispatch._operator import Reader

_LOCAL_CAPABILITIES = CapabilitySet(
    {
        Capability.STAT,
        Capability.READ,
        Capability.WRITE,
        Capability.LIST,
        Capability.LIST_WITH_START_AFTER,
        Capability.LIST_WITH_RECURSIVE,
    }
)


class _AtomicFileWriter(Writer):
    """Writes to a temp file beside the target and renames it into place on close."""

    def __init__(self, target: Path) -> None:
        self._target = target
        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=f".~tmp.{target.name}.")
        self._tmp_path = tmp_path
        self._file: Optional[BinaryIO] = os.fdopen(fd, "wb")

    def write(self, data: bytes) -> None:
        if self._file is None:
            raise ValueError("write to a closed writer")
        self._file.write(data)

    def close(self) -> None:
        if self._file is None:
            return
        f, self._file = self._file, None
        try:
            f.close()
            os.replace(self._tmp_path, str(self._target))
        except BaseException:
            self._discard()
            raise

    def abort(self) -> None:
        if self._file is not None:
            f, self._file = self._file, None
            with contextlib.suppress(OSError):
                f.close()
        self._discard()

    def _discard(self) -> None:
        if os.path.exists(self._tmp_path):
            with contextlib.suppress(OSError):
                os.unlink(self._tmp_path)


class LocalBackend(Operator):
    """Local filesystem backend using only the Python standard library.

    :param root: Directory every path is resolved under (default: ``/``).
    """

    def __init__(self, root: str = "/") -> None:
        if not root:
            raise ValueError("root must be a non-empty path")
        self._root = Path(root).resolve()

    def __repr__(self) -> str:
        return f"LocalBackend(root={str(self._root)!r})"

    @property
    def name(self) -> str:
        return "fs"

    @property
    def capabilities(self) -> CapabilitySet:
        return _LOCAL_CAPABILITIES

    # region: path safety
    def _resolve(self, path: str) -> Path:
        """Resolve a backend path to an absolute path within root.

        ``.resolve()`` follows symlinks to their real target and
        ``relative_to(self._root)`` then rejects anything outside the root,
        including symlinks pointing out of it.

        :raises InvalidPath: If the resolved path escapes the root.
        """
        key = ObjectPath(path).key
        resolved = (self._root / key).resolve() if key else self._root
        try:
            resolved.relative_to(self._root)
        except ValueError:
            raise InvalidPath(f"Path escapes root directory: {path}", path=path, backend=self.name) from None
        return resolved

    def to_key(self, native_path: Path) -> str:
        """Backend path of a native path under the root."""
        return native_path.relative_to(self._root).as_posix()

    # endregion

    # region: error mapping
    @contextmanager
    def _errors(self, path: str = "") -> Iterator[None]:
        """Map OS exceptions to remote_dispatch errors."""
        try:
            yield
        except DispatchError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {path}", path=path, backend=self.name) from None
        except PermissionError:
            raise PermissionDenied(f"Permission denied: {path}", path=path, backend=self.name) from None
        except IsADirectoryError:
            raise IsADirectory(f"Is a directory: {path}", path=path, backend=self.name) from None
        except NotADirectoryError:
            raise NotADirectory(f"Not a directory: {path}", path=path, backend=self.name) from None
        except FileExistsError:
            raise AlreadyExists(f"Already exists: {path}", path=path, backend=self.name) from None
        except OSError as exc:
            retryable = exc.errno in (errno.EAGAIN, errno.EBUSY, errno.EINTR, errno.EIO)
            raise DispatchError(str(exc), path=path, backend=self.name, retryable=retryable) from None

    # endregion

    # region: helpers
    @staticmethod
    def _metadata(st: os.stat_result, *, is_dir: bool) -> Metadata:
        modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        if is_dir:
            return Metadata(mode=EntryMode.DIR, last_modified=modified)
        return Metadata(mode=EntryMode.FILE, content_length=st.st_size, last_modified=modified)

    def _entry(self, item: Path) -> Entry:
        st = item.stat()
        is_dir = item.is_dir()
        key = self.to_key(item)
        return Entry(path=f"{key}/" if is_dir else key, metadata=self._metadata(st, is_dir=is_dir))

    # endregion

    def stat_with(self, path: str, options: StatOptions) -> Metadata:
        full = self._resolve(path)
        with self._errors(path):
            st = full.stat()
            is_dir = full.is_dir()
            if ObjectPath(path).is_dir and not is_dir:
                raise NotADirectory(f"Not a directory: {path}", path=path, backend=self.name)
            return self._metadata(st, is_dir=is_dir)

    def list_with(self, path: str, options: ListOptions) -> Iterator[Entry]:
        full = self._resolve(path)
        with self._errors(path):
            if not full.exists():
                return
            if not full.is_dir():
                raise NotADirectory(f"Not a directory: {path}", path=path, backend=self.name)
            if options.recursive:
                items = (item for item in full.rglob("*") if not item.is_dir())
            else:
                items = full.iterdir()
            entries = sorted((self._entry(item) for item in items), key=lambda e: e.path)
        for entry in entries:
            if options.start_after is not None and entry.path <= options.start_after:
                continue
            yield entry

    def read(self, path: str) -> Reader:
        full = self._resolve(path)
        with self._errors(path):
            if full.is_dir():
                raise IsADirectory(f"Is a directory: {path}", path=path, backend=self.name)
            return FileReader(full.open("rb"))

    def writer(self, path: str, *, content_type: Optional[str] = None) -> Writer:
        if ObjectPath(path).is_dir:
            raise IsADirectory(f"Cannot write to a directory path: {path}", path=path, backend=self.name)
        full = self._resolve(path)
        with self._errors(path):
            if full.is_dir():
                raise IsADirectory(f"Is a directory: {path}", path=path, backend=self.name)
            full.parent.mkdir(parents=True, exist_ok=True)
            return _AtomicFileWriter(full)
