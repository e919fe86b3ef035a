"""Copy: stream one file between two independently resolved backends.

Steps: resolve both backends, stat the source, stat the destination to pick
the real destination path, open a reader and a writer, move chunks in order,
close the writer. Any failure aborts the copy. Nothing already written is
rolled back, so a failure mid-transfer can leave a partial destination on
backends that write in place; a retried copy overwrites it.
"""

from __future__ import annotations

import logging
from email.message import Message
from email.utils import collapse_rfc2231_value
from typing import TYPE_CHECKING, Callable, Optional

from remote_dispatch._capabilities import Capability
from remote_dispatch._errors import NotFound, OperationRejected
from remote_dispatch._location import parse_location
from remote_dispatch._path import ObjectPath

if TYPE_CHECKING:
    from remote_dispatch._models import CopyOptions, Metadata
    from remote_dispatch._operator import Operator, Reader, Writer
    from remote_dispatch._resolver import Resolver

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024


def filename_from_content_disposition(value: Optional[str]) -> Optional[str]:
    """Extract the file name of a ``Content-Disposition`` header.

    ``filename*`` (RFC 5987) takes precedence over ``filename``. Any
    directory part is dropped.
    """
    if not value:
        return None
    message = Message()
    message["content-disposition"] = value
    plain: Optional[str] = None
    encoded: Optional[str] = None
    for key, param in message.get_params(failobj=[], header="content-disposition"):
        if key.lower() != "filename":
            continue
        if isinstance(param, tuple):
            encoded = collapse_rfc2231_value(param)
        elif plain is None:
            plain = param
    filename = encoded or plain
    if not filename:
        return None
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", ".."):
        return None
    return name


def real_destination_path(src_path: str, src_meta: Metadata, dst_op: Operator, dst_path: str) -> str:
    """Decide where a copy writes.

    A directory destination receives the source's file name; an existing
    file is overwritten; a missing path is created as given.

    :raises OperationRejected: If the destination is a directory and the
        source has no file name.
    """
    try:
        dst_meta = dst_op.stat(dst_path)
    except NotFound:
        return dst_path
    if not dst_meta.is_dir:
        return dst_path
    filename = ObjectPath(src_path).name or filename_from_content_disposition(src_meta.content_disposition)
    if not filename:
        raise OperationRejected(
            f"Cannot copy source '{src_path}' into directory '{dst_path}': Source has no filename."
        )
    return str(ObjectPath(dst_path) / filename)


def _transfer(reader: Reader, writer: Writer, chunk_size: int) -> int:
    """Write every chunk of ``reader`` to ``writer`` in order, then finalize."""
    total = 0
    try:
        for chunk in reader.chunks(chunk_size):
            writer.write(chunk)
            total += len(chunk)
        writer.close()
    except BaseException:
        writer.abort()
        raise
    return total


def copy_between(
    src_op: Operator,
    src_path: str,
    dst_op: Operator,
    dst_path: str,
    options: Optional[CopyOptions] = None,
) -> str:
    """Copy a file from one operator to another.

    :returns: The real destination path.
    :raises OperationRejected: If the source is a directory, or the
        destination is a directory and the source has no file name.
    """
    src_meta = src_op.stat(src_path)
    if src_meta.is_dir:
        raise OperationRejected("Copying directories is not supported", path=src_path, backend=src_op.name)

    real_dst_path = real_destination_path(src_path, src_meta, dst_op, dst_path)

    content_type = None
    if src_meta.content_type:
        if dst_op.capabilities.supports(Capability.WRITE_WITH_CONTENT_TYPE):
            content_type = src_meta.content_type
        else:
            log.warning("Backend %s does not store content types; dropping %r", dst_op.name, src_meta.content_type)

    chunk_size = (options.chunk_size if options else None) or DEFAULT_CHUNK_SIZE
    with src_op.read(src_path) as reader:
        writer = dst_op.writer(real_dst_path, content_type=content_type)
        total = _transfer(reader, writer, chunk_size)

    log.info("Copied %d bytes from %s:%s to %s:%s", total, src_op.name, src_path, dst_op.name, real_dst_path)
    return real_dst_path


def copy(
    resolver: Resolver,
    source: str,
    destination: str,
    options: Optional[CopyOptions] = None,
    *,
    parse: Callable[[str], tuple[str, str]] = parse_location,
) -> str:
    """Copy the file at ``source`` to ``destination``.

    Both locations are parsed and resolved independently, so source and
    destination may live on different backend kinds.

    :returns: The real destination path.
    """
    src_root, src_path = parse(source)
    dst_root, dst_path = parse(destination)
    with resolver.resolve(src_root) as src_op, resolver.resolve(dst_root) as dst_op:
        return copy_between(src_op, src_path, dst_op, dst_path, options)
