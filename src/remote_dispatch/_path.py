"""ObjectPath: immutable, normalized object path within one backend."""

from __future__ import annotations

from typing import Final

from remote_dispatch._errors import InvalidPath


class ObjectPath:
    """An immutable, normalized path inside a backend.

    The empty string and ``/`` both address the backend root. A trailing
    ``/`` marks a directory path and is preserved.

    :param raw: The raw path string to normalize and validate.
    :raises InvalidPath: If the path is malformed or unsafe.
    """

    __slots__ = ("_path", "_is_dir")
    _path: Final[str]  # type: ignore[misc]
    _is_dir: Final[bool]  # type: ignore[misc]

    def __init__(self, raw: str) -> None:
        normalized, is_dir = self._normalize(raw)
        object.__setattr__(self, "_path", normalized)
        object.__setattr__(self, "_is_dir", is_dir)

    @staticmethod
    def _normalize(raw: str) -> tuple[str, bool]:
        if "\0" in raw:
            raise InvalidPath("Path contains null byte", path=raw)
        p = raw.replace("\\", "/")
        parts: list[str] = []
        for segment in p.split("/"):
            if segment == "" or segment == ".":
                continue
            if segment == "..":
                raise InvalidPath("Path contains '..' segment", path=raw)
            parts.append(segment)
        if not parts:
            return "", True
        return "/".join(parts), p.endswith("/")

    @property
    def is_root(self) -> bool:
        return self._path == ""

    @property
    def is_dir(self) -> bool:
        """``True`` for the root and for paths written with a trailing ``/``."""
        return self._is_dir

    @property
    def key(self) -> str:
        """Path without the directory marker (``""`` for the root)."""
        return self._path

    @property
    def name(self) -> str:
        """Final component of the path, or ``""`` for the root."""
        return self._path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> ObjectPath:
        """Parent directory. The parent of the root is the root."""
        if "/" not in self._path:
            return ObjectPath("")
        return ObjectPath(self._path.rsplit("/", 1)[0] + "/")

    @property
    def parts(self) -> tuple[str, ...]:
        """Tuple of path components."""
        return tuple(self._path.split("/")) if self._path else ()

    def as_dir(self) -> ObjectPath:
        """The same path with the directory marker."""
        return ObjectPath(self._path + "/")

    def __truediv__(self, other: str) -> ObjectPath:
        return ObjectPath(f"{self._path}/{other}")

    def __str__(self) -> str:
        if self._is_dir and self._path:
            return self._path + "/"
        return self._path

    def __repr__(self) -> str:
        return f"ObjectPath({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObjectPath):
            return self._path == other._path and self._is_dir == other._is_dir
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._path, self._is_dir))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"ObjectPath is immutable: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"ObjectPath is immutable: cannot delete '{name}'")
