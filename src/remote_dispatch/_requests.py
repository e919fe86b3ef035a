"""Wire models: request bodies in, response bodies out.

Bodies are plain JSON-compatible dicts with camelCase keys, validated with
pydantic. Anything missing or mistyped becomes
:class:`~remote_dispatch._errors.InvalidRequest`.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Optional, TypeVar, Union

from pydantic import Field, ValidationError, ValidationInfo, field_serializer, field_validator

from remote_dispatch._errors import InvalidRequest
from remote_dispatch._models import CopyOptions, EntryMode, ListOptions, ReadOptions, StatOptions, WireModel

if TYPE_CHECKING:
    from remote_dispatch._models import Entry, Metadata, PresignedRequest

_M = TypeVar("_M", bound=WireModel)

# region: durations

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "nsec": 1e-9,
    "us": 1e-6,
    "usec": 1e-6,
    "ms": 1e-3,
    "msec": 1e-3,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
}

_DURATION_TERM = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-z]+)")


def _duration(value: object) -> timedelta:
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, dict):
        secs, nanos = value.get("secs", 0), value.get("nanos", 0)
        if not isinstance(secs, int) or not isinstance(nanos, int) or isinstance(secs, bool):
            raise ValueError(f"Invalid duration: {value!r}")
        seconds = secs + nanos / 1e9
    elif isinstance(value, str):
        seconds = _duration_string(value)
    else:
        raise ValueError(f"Invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return timedelta(seconds=seconds)


def _duration_string(value: str) -> float:
    text = value.strip().lower()
    if not text:
        raise ValueError("Duration must not be empty")
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_TERM.match(text, pos)
        if match is None or match.group(2) not in _DURATION_UNITS:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return total


def parse_duration(value: object) -> timedelta:
    """Parse an expiration.

    Accepts a number of seconds, a ``{"secs": ..., "nanos": ...}`` object,
    or a duration string such as ``"3600s"`` or ``"1h 30m"``.

    :raises InvalidRequest: If ``value`` is none of these, or is negative.
    """
    try:
        return _duration(value)
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from None


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as RFC 3339 in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# endregion


# region: requests
def _describe(exc: ValidationError, location_key: str) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(location_key if part == "location" else str(part) for part in error["loc"]) or "body"
        if error["type"] == "missing":
            problems.append(f"Missing required field '{field}'")
        else:
            problems.append(f"'{field}': {error['msg']}")
    return "; ".join(problems)


def _parse(model: type[_M], data: object, *, location_key: str = "location", **context: Any) -> _M:
    """Validate a request body, renaming ``location_key`` to ``location``.

    :raises InvalidRequest: If the body is not an object or fails validation.
    """
    if not isinstance(data, Mapping):
        raise InvalidRequest(f"Request body must be a JSON object, got {type(data).__name__}")
    body = dict(data)
    if location_key != "location":
        body.pop("location", None)
        if location_key in body:
            body["location"] = body.pop(location_key)
    try:
        return model.model_validate(body, context=context)
    except ValidationError as exc:
        raise InvalidRequest(_describe(exc, location_key)) from None


class ListRequest(WireModel):
    """List the entries at a location.

    :param location: Full URI (dynamic mode) or bare path (scoped mode).
    :param options: Listing options; ``None`` selects the default listing.
    """

    location: str
    options: Optional[ListOptions] = None

    @classmethod
    def from_dict(cls, data: object, *, location_key: str = "uri") -> ListRequest:
        return _parse(cls, data, location_key=location_key)


class PresignRequest(WireModel):
    """Presign a read or a stat of a location.

    :param location: Full URI (dynamic mode) or bare path (scoped mode).
    :param expiration: How long the presigned request stays valid.
    :param options: Conditional options; ``None`` selects the default presign.
    """

    location: str
    expiration: timedelta
    options: Optional[Union[ReadOptions, StatOptions]] = Field(default=None, union_mode="left_to_right")

    @field_validator("expiration", mode="before")
    @classmethod
    def _parse_expiration(cls, value: object) -> timedelta:
        return _duration(value)

    @field_validator("options", mode="before")
    @classmethod
    def _options_kind(cls, value: object, info: ValidationInfo) -> object:
        # Read presigns take ReadOptions; stat presigns ignore read-only keys.
        if isinstance(value, dict):
            read = (info.context or {}).get("read", True)
            return (ReadOptions if read else StatOptions).model_validate(value)
        return value

    @classmethod
    def from_dict(cls, data: object, *, location_key: str = "uri", read: bool = True) -> PresignRequest:
        """Parse a presign body.

        :param read: Parse ``options`` as read options, else as stat options.
        """
        return _parse(cls, data, location_key=location_key, read=read)


class CopyRequest(WireModel):
    """Copy a file between two full-URI locations."""

    source: str
    destination: str
    options: Optional[CopyOptions] = None

    @classmethod
    def from_dict(cls, data: object) -> CopyRequest:
        return _parse(cls, data)


# endregion


# region: responses
class _MetadataBody(WireModel):
    mode: EntryMode
    is_current: Optional[bool] = None
    is_deleted: bool = False
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_length: int = 0
    content_md5: Optional[str] = None
    content_type: Optional[str] = None
    content_encoding: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    version: Optional[str] = None
    user_metadata: Optional[dict[str, str]] = None

    @field_serializer("last_modified")
    def _rfc3339(self, value: Optional[datetime]) -> Optional[str]:
        return None if value is None else format_timestamp(value)


def metadata_to_dict(metadata: Metadata) -> dict[str, Any]:
    return _MetadataBody(**dataclasses.asdict(metadata)).model_dump(mode="json", by_alias=True)


def list_response(entries: list[Entry]) -> dict[str, Any]:
    """``{"entries": [{"path", "metadata"}, ...]}`` in listing order."""
    return {"entries": [{"path": e.path, "metadata": metadata_to_dict(e.metadata)} for e in entries]}


def presign_response(request: PresignedRequest) -> dict[str, Any]:
    return {"method": request.method, "uri": request.uri, "headers": dict(request.headers)}


# endregion
