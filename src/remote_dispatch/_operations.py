"""Storage operations: list and presign over one resolved operator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from remote_dispatch._capabilities import Capability

if TYPE_CHECKING:
    from datetime import timedelta

    from remote_dispatch._models import Entry, ListOptions, PresignedRequest, ReadOptions, StatOptions
    from remote_dispatch._operator import Operator


def _require_list_options(operator: Operator, path: str, options: ListOptions) -> None:
    caps = operator.capabilities
    caps.require(Capability.LIST, backend=operator.name, path=path)
    if options.start_after is not None:
        caps.require(Capability.LIST_WITH_START_AFTER, backend=operator.name, path=path)
    if options.recursive:
        caps.require(Capability.LIST_WITH_RECURSIVE, backend=operator.name, path=path)
    if options.versions:
        caps.require(Capability.LIST_WITH_VERSIONS, backend=operator.name, path=path)
    if options.deleted:
        caps.require(Capability.LIST_WITH_DELETED, backend=operator.name, path=path)


def list_entries(operator: Operator, path: str, options: Optional[ListOptions] = None) -> list[Entry]:
    """List ``path`` and drain the result, keeping the backend's order.

    Without options the default listing is used; with options the
    options-aware listing, after checking the operator supports each one.

    :raises CapabilityNotSupported: If an option is not supported.
    """
    if options is None:
        operator.capabilities.require(Capability.LIST, backend=operator.name, path=path)
        return list(operator.list(path))
    _require_list_options(operator, path, options)
    return list(operator.list_with(path, options))


def presign_read(
    operator: Operator, path: str, expire: timedelta, options: Optional[ReadOptions] = None
) -> PresignedRequest:
    """Presign a read of ``path`` valid for ``expire``.

    :raises CapabilityNotSupported: If the operator cannot presign reads.
    """
    operator.capabilities.require(Capability.PRESIGN_READ, backend=operator.name, path=path)
    if options is None:
        return operator.presign_read(path, expire)
    return operator.presign_read_with(path, expire, options)


def presign_stat(
    operator: Operator, path: str, expire: timedelta, options: Optional[StatOptions] = None
) -> PresignedRequest:
    """Presign a stat of ``path`` valid for ``expire``.

    :raises CapabilityNotSupported: If the operator cannot presign stats.
    """
    operator.capabilities.require(Capability.PRESIGN_STAT, backend=operator.name, path=path)
    if options is None:
        return operator.presign_stat(path, expire)
    return operator.presign_stat_with(path, expire, options)
