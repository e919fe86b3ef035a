"""Read-only HTTP(S) origin backend using httpx."""

from __future__ import annotations

from contextlib import contextmanager
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote, urlencode

from remote_dispatch._capabilities import Capability, CapabilitySet
from remote_dispatch._errors import (
    BackendUnavailable,
    CapabilityNotSupported,
    DispatchError,
    NotFound,
    PermissionDenied,
)
from remote_dispatch._models import EntryMode, Metadata, PresignedRequest, StatOptions
from remote_dispatch._operator import Operator, Reader
from remote_dispatch._path import ObjectPath

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping
    from datetime import datetime, timedelta

    from remote_dispatch._location import RootUri
    from remote_dispatch._models import Entry, ListOptions, ReadOptions
    from remote_dispatch._operator import Writer

_READ_CAPABILITIES = {Capability.STAT, Capability.READ}
_PRESIGN_CAPABILITIES = {Capability.PRESIGN_READ, Capability.PRESIGN_STAT}

_DIR_METADATA = Metadata(mode=EntryMode.DIR)


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


class _ResponseReader(Reader):
    """Pulls the body of a streamed response on demand."""

    def __init__(self, response: Any, errors: Any) -> None:
        self._response = response
        self._errors = errors
        self._chunks = response.iter_bytes()
        self._buffer = bytearray()
        self._exhausted = False

    def _fill(self, size: int) -> None:
        with self._errors():
            while not self._exhausted and (size < 0 or len(self._buffer) < size):
                try:
                    self._buffer.extend(next(self._chunks))
                except StopIteration:
                    self._exhausted = True

    def read(self, size: int = -1) -> bytes:
        self._fill(size)
        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def close(self) -> None:
        self._response.close()


class HttpBackend(Operator):
    """Read-only backend over a plain HTTP(S) origin.

    Stat issues ``HEAD``, read streams ``GET``. Presigning returns the plain
    URL and is only offered when no credentials are configured, since the
    caller would otherwise need them. Paths ending in ``/`` are treated as
    directories without contacting the origin.

    :param endpoint: Origin, e.g. ``https://example.com``.
    :param root: Path prefix every path is resolved under.
    :param username: Basic auth username.
    :param password: Basic auth password.
    :param token: Bearer token.
    :param timeout: Request timeout in seconds.
    :param transport: httpx transport override.
    :param query: Query parameters sent with every request, such as the
        signature of a presigned URL. Unknown query keys of a URI land here.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        root: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        timeout: str = "30",
        transport: Any = None,
        query: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not endpoint or "://" not in endpoint:
            raise ValueError(f"endpoint must be an absolute URL, got {endpoint!r}")
        self._endpoint = endpoint.rstrip("/")
        self._prefix = ObjectPath(root).key
        self._username = username
        self._password = password
        self._token = token
        self._timeout = float(timeout)
        self._transport = transport
        self._query = dict(query or {})
        self._client_instance: Any = None
        caps = set(_READ_CAPABILITIES)
        if not self._has_credentials:
            caps |= _PRESIGN_CAPABILITIES
        self._capabilities = CapabilitySet(caps)

    @classmethod
    def from_uri(cls, root: RootUri) -> Operator:
        options = (cls.config_keys() or frozenset()) - {"endpoint", "transport", "query"}
        config: dict[str, Any] = {k: v for k, v in root.query.items() if k in options}
        query = {k: v for k, v in root.query.items() if k not in options}
        if query:
            config["query"] = query
        config["endpoint"] = f"{root.scheme}://{root.authority}"
        return cls.from_config(config)

    def __repr__(self) -> str:
        return f"HttpBackend(endpoint={self._endpoint!r}, root={self._prefix!r})"

    @property
    def name(self) -> str:
        return "http"

    @property
    def capabilities(self) -> CapabilitySet:
        return self._capabilities

    @property
    def _has_credentials(self) -> bool:
        return bool(self._token or self._username)

    # region: lazy client
    @property
    def _client(self) -> Any:
        if self._client_instance is None:
            import httpx

            headers = {}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            auth = httpx.BasicAuth(self._username, self._password or "") if self._username else None
            self._client_instance = httpx.Client(
                timeout=self._timeout,
                headers=headers,
                auth=auth,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client_instance

    # endregion

    def _url(self, path: str) -> str:
        key = ObjectPath(path).key
        full = f"{self._prefix}/{key}" if self._prefix and key else self._prefix or key
        url = f"{self._endpoint}/{quote(full)}"
        return f"{url}?{urlencode(self._query)}" if self._query else url

    # region: error mapping
    @contextmanager
    def _errors(self, path: str = "") -> Iterator[None]:
        """Map httpx transport failures to remote_dispatch errors."""
        import httpx

        try:
            yield
        except DispatchError:
            raise
        except httpx.RequestError as exc:
            raise BackendUnavailable(
                f"HTTP request failed: {exc}", path=path, backend=self.name
            ) from None

    def _check(self, response: Any, path: str) -> None:
        """Raise the mapped error for an unsuccessful response."""
        status = response.status_code
        if status < 400:
            return
        message = f"HTTP {status} for {response.request.method} {response.request.url}"
        if status == 404 or status == 410:
            raise NotFound(message, path=path, backend=self.name)
        if status in (401, 403):
            raise PermissionDenied(message, path=path, backend=self.name)
        retryable = status >= 500 or status == 429
        if retryable:
            raise BackendUnavailable(message, path=path, backend=self.name)
        raise DispatchError(message, path=path, backend=self.name)

    # endregion

    @staticmethod
    def _headers_to_metadata(headers: Any) -> Metadata:
        length = headers.get("content-length")
        return Metadata(
            mode=EntryMode.FILE,
            cache_control=headers.get("cache-control"),
            content_disposition=headers.get("content-disposition"),
            content_length=int(length) if length and length.isdigit() else 0,
            content_md5=headers.get("content-md5"),
            content_type=headers.get("content-type"),
            content_encoding=headers.get("content-encoding"),
            etag=headers.get("etag"),
            last_modified=_parse_http_date(headers.get("last-modified")),
        )

    def stat_with(self, path: str, options: StatOptions) -> Metadata:
        p = ObjectPath(path)
        if p.is_dir and not p.is_root:
            return _DIR_METADATA
        with self._errors(path):
            response = self._client.head(self._url(path), headers=options.headers())
        self._check(response, path)
        return self._headers_to_metadata(response.headers)

    def list_with(self, path: str, options: ListOptions) -> Iterator[Entry]:
        raise CapabilityNotSupported(
            "HTTP origins cannot be listed", capability=Capability.LIST.value, backend=self.name, path=path
        )

    def read(self, path: str) -> Reader:
        with self._errors(path):
            request = self._client.build_request("GET", self._url(path))
            response = self._client.send(request, stream=True)
        try:
            self._check(response, path)
        except DispatchError:
            response.close()
            raise
        return _ResponseReader(response, lambda: self._errors(path))

    def writer(self, path: str, *, content_type: Optional[str] = None) -> Writer:
        raise CapabilityNotSupported(
            "HTTP origins are read-only", capability=Capability.WRITE.value, backend=self.name, path=path
        )

    # region: presign
    def _presign(self, method: str, path: str, capability: Capability, options: StatOptions) -> PresignedRequest:
        self._capabilities.require(capability, backend=self.name, path=path)
        return PresignedRequest(method=method, uri=self._url(path), headers=options.headers())

    def presign_read_with(self, path: str, expire: timedelta, options: ReadOptions) -> PresignedRequest:
        return self._presign("GET", path, Capability.PRESIGN_READ, options)

    def presign_stat_with(self, path: str, expire: timedelta, options: StatOptions) -> PresignedRequest:
        return self._presign("HEAD", path, Capability.PRESIGN_STAT, options)

    # endregion

    def close(self) -> None:
        if self._client_instance is not None:
            self._client_instance.close()
            self._client_instance = None
