"""Location parsing: split request locations into backend root and object path."""

from __future__ import annotations

import dataclasses
from typing import Optional
from urllib.parse import parse_qsl, unquote, urlsplit

from remote_dispatch._errors import InvalidLocation, UriInvalid


@dataclasses.dataclass(frozen=True)
class RootUri:
    """A parsed backend root: scheme, authority and query parameters.

    :param scheme: Lower-cased URI scheme (or profile name).
    :param authority: ``user:password@host:port`` part, may be empty.
    :param query: Query parameters as a flat string map.
    """

    scheme: str
    authority: str = ""
    query: dict[str, str] = dataclasses.field(default_factory=dict)

    @property
    def hostname(self) -> Optional[str]:
        return urlsplit(f"//{self.authority}").hostname if self.authority else None

    @property
    def port(self) -> Optional[int]:
        """Port from the authority.

        :raises UriInvalid: If the port is not a number.
        """
        if not self.authority:
            return None
        try:
            return urlsplit(f"//{self.authority}").port
        except ValueError as exc:
            raise UriInvalid(f"Invalid port in '{self}': {exc}") from None

    @property
    def username(self) -> Optional[str]:
        user = urlsplit(f"//{self.authority}").username if self.authority else None
        return unquote(user) if user else None

    @property
    def password(self) -> Optional[str]:
        password = urlsplit(f"//{self.authority}").password if self.authority else None
        return unquote(password) if password else None

    def __str__(self) -> str:
        root = f"{self.scheme}://{self.authority}"
        if self.query:
            root += "?" + "&".join(f"{k}={v}" for k, v in self.query.items())
        return root


def parse_root(root: str) -> RootUri:
    """Parse a backend root string.

    :raises UriInvalid: If the root has no scheme or is not a URI at all.
    """
    try:
        parts = urlsplit(root)
        parts.port  # noqa: B018 -- validates the port
    except ValueError as exc:
        raise UriInvalid(f"Invalid backend root '{root}': {exc}") from None
    if not parts.scheme:
        raise UriInvalid(f"Backend root '{root}' has no scheme")
    return RootUri(
        scheme=parts.scheme.lower(),
        authority=parts.netloc,
        query=dict(parse_qsl(parts.query, keep_blank_values=True)),
    )


def parse_location(location: str, *, root: Optional[str] = None) -> tuple[str, str]:
    """Split a location into ``(backend root, object path)``.

    With ``root`` unset the location must be a full URI whose scheme and
    authority select the backend; query parameters stay with the root. With
    ``root`` set, the location is a bare path under that fixed root.

    :param location: The location carried by the request.
    :param root: Fixed backend root of a scoped deployment.
    :raises InvalidLocation: If a full-URI location cannot be parsed.
    """
    if root is not None:
        return root, location
    if not location:
        raise InvalidLocation("Location must not be empty")
    try:
        parts = urlsplit(location)
    except ValueError as exc:
        raise InvalidLocation(f"Invalid location '{location}': {exc}") from None
    if not parts.scheme:
        raise InvalidLocation(f"Location '{location}' is not a URI: missing scheme")
    backend_root = f"{parts.scheme}://{parts.netloc}"
    if parts.query:
        backend_root += f"?{parts.query}"
    return backend_root, unquote(parts.path)
