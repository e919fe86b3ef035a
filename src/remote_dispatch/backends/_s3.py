"""S3-compatible object storage backend using s3fs."""

from __future__ import annotations

import contextlib
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from remote_dispatch._capabilities import Capability, CapabilitySet
from remote_dispatch._config import as_bool
from remote_dispatch._errors import (
    BackendUnavailable,
    DispatchError,
    IsADirectory,
    NotFound,
    PermissionDenied,
)
from remote_dispatch._models import Entry, EntryMode, Metadata, PresignedRequest
from remote_dispatch._operator import FileReader, Operator, Writer
from remote_dispatch._path import ObjectPath

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import timedelta

    from remote_dispatch._models import ListOptions, ReadOptions, StatOptions
    from remote_dispatch._operator import Reader

_S3_CAPABILITIES = CapabilitySet(
    {
        Capability.STAT,
        Capability.READ,
        Capability.WRITE,
        Capability.WRITE_WITH_CONTENT_TYPE,
        Capability.LIST,
        Capability.LIST_WITH_START_AFTER,
        Capability.LIST_WITH_RECURSIVE,
        Capability.LIST_WITH_VERSIONS,
        Capability.LIST_WITH_DELETED,
        Capability.PRESIGN_READ,
        Capability.PRESIGN_STAT,
    }
)

_DIR_METADATA = Metadata(mode=EntryMode.DIR)

_UNAVAILABLE_HINTS = (
    "endpoint",
    "connect",
    "timeout",
    "timed out",
    "dns",
    "name or service",
    "slowdown",
    "service unavailable",
    "internalerror",
    "503",
)


class _S3Writer(Writer):
    """Buffered multipart upload; the object appears on close."""

    def __init__(self, file: Any, errors: Any) -> None:
        self._file = file
        self._errors = errors

    def write(self, data: bytes) -> None:
        with self._errors():
            self._file.write(data)

    def close(self) -> None:
        with self._errors():
            self._file.close()

    def abort(self) -> None:
        with contextlib.suppress(Exception):
            self._file.discard()
        # discard() leaves the file open; closing it later would commit.
        self._file.closed = True


class S3Backend(Operator):
    """S3-compatible object storage backend using s3fs.

    Configuration values are strings, as they arrive from URIs and profiles.

    :param bucket: S3 bucket name (required, non-empty).
    :param root: Key prefix every path is resolved under.
    :param endpoint: Custom endpoint URL (e.g. for MinIO).
    :param region: AWS region name.
    :param access_key_id: AWS access key ID.
    :param secret_access_key: AWS secret access key.
    :param session_token: AWS session token.
    :param anonymous: ``"true"`` for unsigned requests.
    """

    authority_key = "bucket"

    def __init__(
        self,
        bucket: str,
        *,
        root: str = "",
        endpoint: Optional[str] = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session_token: Optional[str] = None,
        anonymous: str = "false",
    ) -> None:
        if not bucket or not bucket.strip():
            raise ValueError("bucket must be a non-empty string")
        self._bucket = bucket
        self._prefix = ObjectPath(root).key
        self._endpoint = endpoint
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._session_token = session_token
        self._anonymous = as_bool(anonymous)
        self._fs_instance: Any = None

    def __repr__(self) -> str:
        return f"S3Backend(bucket={self._bucket!r}, root={self._prefix!r}, endpoint={self._endpoint!r})"

    @property
    def name(self) -> str:
        return "s3"

    @property
    def capabilities(self) -> CapabilitySet:
        return _S3_CAPABILITIES

    # region: lazy filesystem
    @property
    def _fs(self) -> Any:
        if self._fs_instance is None:
            import s3fs  # type: ignore[import-untyped]

            opts: dict[str, Any] = {"anon": self._anonymous, "use_listings_cache": False}
            if self._endpoint is not None:
                opts["endpoint_url"] = self._endpoint
            if self._access_key_id is not None:
                opts["key"] = self._access_key_id
            if self._secret_access_key is not None:
                opts["secret"] = self._secret_access_key
            if self._session_token is not None:
                opts["token"] = self._session_token
            if self._region is not None:
                opts["client_kwargs"] = {"region_name": self._region}
            self._fs_instance = s3fs.S3FileSystem(**opts)
        return self._fs_instance

    # endregion

    # region: path helpers
    def _key(self, path: str) -> str:
        key = ObjectPath(path).key
        if self._prefix:
            return f"{self._prefix}/{key}" if key else self._prefix
        return key

    def _s3_path(self, path: str) -> str:
        key = self._key(path)
        if key:
            return f"{self._bucket}/{key}"
        return self._bucket

    def _rel_path(self, s3_path: str) -> str:
        prefix = f"{self._bucket}/{self._prefix}/" if self._prefix else f"{self._bucket}/"
        if s3_path.startswith(prefix):
            return s3_path[len(prefix) :]
        return s3_path

    # endregion

    # region: error mapping
    @contextmanager
    def _errors(self, path: str = "") -> Iterator[None]:
        """Map s3fs/botocore exceptions to remote_dispatch errors."""
        try:
            yield
        except DispatchError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {path}", path=path, backend=self.name) from None
        except PermissionError:
            raise PermissionDenied(f"Permission denied: {path}", path=path, backend=self.name) from None
        except Exception as exc:
            raise self._classify_error(exc, path) from None

    def _classify_error(self, exc: Exception, path: str) -> DispatchError:
        """Classify an unknown exception into a remote_dispatch error type."""
        msg = str(exc).lower()
        if "404" in msg or "nosuchkey" in msg or "nosuchbucket" in msg or "not found" in msg:
            return NotFound(f"Not found: {path}", path=path, backend=self.name)
        if "403" in msg or "accessdenied" in msg or "access denied" in msg:
            return PermissionDenied(f"Permission denied: {path}", path=path, backend=self.name)
        if any(hint in msg for hint in _UNAVAILABLE_HINTS):
            return BackendUnavailable(str(exc), path=path, backend=self.name)
        return DispatchError(str(exc), path=path, backend=self.name)

    # endregion

    # region: helpers
    @staticmethod
    def _info_to_metadata(info: dict[str, Any]) -> Metadata:
        """Convert an s3fs info dict to Metadata."""
        if info.get("type") == "directory":
            return _DIR_METADATA
        modified = info.get("LastModified", info.get("last_modified"))
        if isinstance(modified, str):
            modified = datetime.fromisoformat(modified)
        if modified is not None and modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        return Metadata(
            mode=EntryMode.FILE,
            content_length=int(info.get("size", info.get("Size", 0)) or 0),
            content_type=info.get("ContentType"),
            etag=info.get("ETag"),
            last_modified=modified,
            version=info.get("VersionId"),
        )

    def _entry(self, info: dict[str, Any]) -> Entry:
        rel = self._rel_path(info["name"].rstrip("/"))
        if info.get("type") == "directory":
            return Entry(path=f"{rel}/", metadata=_DIR_METADATA)
        return Entry(path=rel, metadata=self._info_to_metadata(info))

    # endregion

    def stat_with(self, path: str, options: StatOptions) -> Metadata:
        if not self._key(path):
            return _DIR_METADATA
        with self._errors(path):
            info = self._fs.info(self._s3_path(path))
            if ObjectPath(path).is_dir and info.get("type") != "directory":
                raise NotFound(f"Not found: {path}", path=path, backend=self.name)
            return self._info_to_metadata(info)

    def _version_entries(self, path: str, options: ListOptions) -> list[Entry]:
        """Object versions and delete markers below ``path``.

        Without ``versions`` only current versions are kept; delete markers
        appear only with ``deleted``.
        """
        key = self._key(path)
        params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": f"{key}/" if key else ""}
        if not options.recursive:
            params["Delimiter"] = "/"
        if options.limit:
            params["MaxKeys"] = options.limit
        entries: list[Entry] = []
        while True:
            page = self._fs.call_s3("list_object_versions", **params)
            for common in page.get("CommonPrefixes", []):
                rel = self._rel_path(f"{self._bucket}/{common['Prefix']}")
                entries.append(Entry(path=rel, metadata=_DIR_METADATA))
            for version in page.get("Versions", []):
                if version["Key"].endswith("/") or not (options.versions or version.get("IsLatest")):
                    continue
                entries.append(self._version_entry(version, deleted=False))
            if options.deleted:
                entries.extend(self._version_entry(marker, deleted=True) for marker in page.get("DeleteMarkers", []))
            if not page.get("IsTruncated"):
                break
            params["KeyMarker"] = page.get("NextKeyMarker", "")
            params["VersionIdMarker"] = page.get("NextVersionIdMarker", "")
        return entries

    def _version_entry(self, info: dict[str, Any], *, deleted: bool) -> Entry:
        metadata = Metadata(
            mode=EntryMode.FILE,
            is_current=bool(info.get("IsLatest")),
            is_deleted=deleted,
            content_length=int(info.get("Size", 0) or 0),
            etag=info.get("ETag"),
            last_modified=info.get("LastModified"),
            version=info.get("VersionId"),
        )
        return Entry(path=self._rel_path(f"{self._bucket}/{info['Key']}"), metadata=metadata)

    def list_with(self, path: str, options: ListOptions) -> Iterator[Entry]:
        s3_path = self._s3_path(path)
        with self._errors(path):
            if options.versions or options.deleted:
                unsorted = self._version_entries(path, options)
            else:
                try:
                    if options.recursive:
                        infos = list(self._fs.find(s3_path, detail=True).values())
                    else:
                        infos = self._fs.ls(s3_path, detail=True)
                except FileNotFoundError:
                    return
                unsorted = [self._entry(info) for info in infos]
            # Stable sort keeps versions of one key newest first.
            entries = sorted(unsorted, key=lambda e: e.path)
        for entry in entries:
            if options.start_after is not None and entry.path <= options.start_after:
                continue
            yield entry

    def read(self, path: str) -> Reader:
        if ObjectPath(path).is_dir:
            raise IsADirectory(f"Is a directory: {path}", path=path, backend=self.name)
        with self._errors(path):
            return FileReader(self._fs.open(self._s3_path(path), "rb"))

    def writer(self, path: str, *, content_type: Optional[str] = None) -> Writer:
        if ObjectPath(path).is_dir:
            raise IsADirectory(f"Cannot write to a directory path: {path}", path=path, backend=self.name)
        kwargs: dict[str, Any] = {}
        if content_type is not None:
            kwargs["ContentType"] = content_type
        with self._errors(path):
            file = self._fs.open(self._s3_path(path), "wb", **kwargs)
        return _S3Writer(file, lambda: self._errors(path))

    # region: presign
    def _presign(self, path: str, expire: timedelta, client_method: str, options: StatOptions) -> PresignedRequest:
        params: dict[str, Any] = {}
        if options.version is not None:
            params["VersionId"] = options.version
        if options.override_content_type is not None:
            params["ResponseContentType"] = options.override_content_type
        if options.override_cache_control is not None:
            params["ResponseCacheControl"] = options.override_cache_control
        if options.override_content_disposition is not None:
            params["ResponseContentDisposition"] = options.override_content_disposition
        with self._errors(path):
            uri = self._fs.url(
                self._s3_path(path),
                expires=int(expire.total_seconds()),
                client_method=client_method,
                **params,
            )
        method = "GET" if client_method == "get_object" else "HEAD"
        return PresignedRequest(method=method, uri=uri, headers=options.headers())

    def presign_read_with(self, path: str, expire: timedelta, options: ReadOptions) -> PresignedRequest:
        return self._presign(path, expire, "get_object", options)

    def presign_stat_with(self, path: str, expire: timedelta, options: StatOptions) -> PresignedRequest:
        return self._presign(path, expire, "head_object", options)

    # endregion

    def close(self) -> None:
        self._fs_instance = None
