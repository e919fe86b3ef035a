"""Immutable metadata, entry and option models."""

from __future__ import annotations

import dataclasses
import enum
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictBool
from pydantic.alias_generators import to_camel


class EntryMode(enum.Enum):
    """Kind of object an entry or stat result describes."""

    FILE = "file"
    DIR = "dir"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True)
class Metadata:
    """Immutable snapshot of object metadata.

    :param mode: File, directory or unknown.
    :param is_current: Whether this is the current version (``None`` if unknown).
    :param is_deleted: Whether this version is a delete marker.
    :param cache_control: ``Cache-Control`` value.
    :param content_disposition: ``Content-Disposition`` value.
    :param content_length: Size in bytes.
    :param content_md5: ``Content-MD5`` value.
    :param content_type: MIME type.
    :param content_encoding: ``Content-Encoding`` value.
    :param etag: Entity tag.
    :param last_modified: Last modification time.
    :param version: Backend version identifier.
    :param user_metadata: User-defined metadata, if the backend exposes it.
    """

    mode: EntryMode = EntryMode.UNKNOWN
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

    @property
    def is_dir(self) -> bool:
        return self.mode is EntryMode.DIR

    @property
    def is_file(self) -> bool:
        return self.mode is EntryMode.FILE


@dataclasses.dataclass(frozen=True)
class Entry:
    """One listed object.

    :param path: Backend-relative path; directories end with ``/``.
    :param metadata: Metadata snapshot taken while listing.
    """

    path: str
    metadata: Metadata


@dataclasses.dataclass(frozen=True)
class PresignedRequest:
    """A request that can be sent without credentials.

    :param method: HTTP method.
    :param uri: Fully signed target URI.
    :param headers: Headers the caller must send along.
    """

    method: str
    uri: str
    headers: dict[str, str] = dataclasses.field(default_factory=dict)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Timestamps are normalized to UTC; naive ones are taken as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]
NonNegativeInt = Annotated[int, Field(ge=0, strict=True)]


class WireModel(BaseModel):
    """Immutable model read from and written to camelCase JSON bodies.

    Fields are also accepted under their Python names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ListOptions(WireModel):
    """Options for an options-aware listing.

    :param limit: Page size hint passed to the backend, not a cap on the result.
    :param start_after: Only return entries whose path sorts after this one.
    :param recursive: Descend into subdirectories.
    :param versions: Include all object versions.
    :param deleted: Include delete markers.
    """

    limit: Optional[NonNegativeInt] = None
    start_after: Optional[str] = None
    recursive: StrictBool = False
    versions: StrictBool = False
    deleted: StrictBool = False


class BytesRange(WireModel):
    """Byte range of an object.

    :param offset: First byte.
    :param size: Number of bytes, or ``None`` to read to the end.
    """

    offset: NonNegativeInt = 0
    size: Optional[NonNegativeInt] = None

    def to_header(self) -> str:
        """Render as an HTTP ``Range`` header value."""
        if self.size is None:
            return f"bytes={self.offset}-"
        return f"bytes={self.offset}-{self.offset + self.size - 1}"


class StatOptions(WireModel):
    """Conditional options for stat and presigned stat."""

    version: Optional[str] = None
    if_match: Optional[str] = None
    if_none_match: Optional[str] = None
    if_modified_since: Optional[UtcDatetime] = None
    if_unmodified_since: Optional[UtcDatetime] = None
    override_content_type: Optional[str] = None
    override_cache_control: Optional[str] = None
    override_content_disposition: Optional[str] = None

    def headers(self) -> dict[str, str]:
        """Conditional request headers implied by these options."""
        headers: dict[str, str] = {}
        if self.if_match is not None:
            headers["if-match"] = self.if_match
        if self.if_none_match is not None:
            headers["if-none-match"] = self.if_none_match
        if self.if_modified_since is not None:
            headers["if-modified-since"] = format_datetime(self.if_modified_since, usegmt=True)
        if self.if_unmodified_since is not None:
            headers["if-unmodified-since"] = format_datetime(self.if_unmodified_since, usegmt=True)
        return headers


class ReadOptions(StatOptions):
    """Conditional options for read and presigned read.

    :param range: Byte range to read.
    :param concurrent: Concurrency hint for chunked reads.
    """

    range: Optional[BytesRange] = None
    concurrent: Optional[NonNegativeInt] = None

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        if self.range is not None:
            headers["range"] = self.range.to_header()
        return headers


class CopyOptions(WireModel):
    """Options for a copy.

    :param chunk_size: Bytes requested from the source per transfer step.
    """

    chunk_size: Optional[Annotated[int, Field(gt=0, strict=True)]] = None
