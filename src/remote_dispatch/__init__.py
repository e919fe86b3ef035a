"""List, presign and copy across storage backends resolved from request URIs."""

from remote_dispatch._capabilities import Capability, CapabilitySet
from remote_dispatch._classify import HandlerError, Permanent, Retryable, classify, outcomes, status_code
from remote_dispatch._config import ServiceConfig
from remote_dispatch._copy import copy, copy_between, real_destination_path
from remote_dispatch._errors import (
    AlreadyExists,
    BackendUnavailable,
    CapabilityNotSupported,
    ConfigInvalid,
    DispatchError,
    InvalidLocation,
    InvalidPath,
    InvalidRequest,
    IsADirectory,
    NotADirectory,
    NotFound,
    OperationRejected,
    PermissionDenied,
    ProfileMissingType,
    ProfileNotFound,
    UnsupportedScheme,
    UriInvalid,
)
from remote_dispatch._layers import LoggingOperator, logging_layer
from remote_dispatch._location import RootUri, parse_location, parse_root
from remote_dispatch._models import (
    BytesRange,
    CopyOptions,
    Entry,
    EntryMode,
    ListOptions,
    Metadata,
    PresignedRequest,
    ReadOptions,
    StatOptions,
)
from remote_dispatch._operations import list_entries, presign_read, presign_stat
from remote_dispatch._operator import Operator, Reader, Writer
from remote_dispatch._path import ObjectPath
from remote_dispatch._registry import OperatorRegistry, default_registry, register_backend
from remote_dispatch._requests import CopyRequest, ListRequest, PresignRequest, parse_duration
from remote_dispatch._resolver import Builtin, Chain, Decorated, ExplicitRegistry, Profiles, Resolver, resolve
from remote_dispatch._service import CopyService, Services, StorageService, build_services, default_strategy

__version__ = "0.1.0"

__all__ = [
    # Services
    "StorageService",
    "CopyService",
    "Services",
    "build_services",
    "default_strategy",
    "ServiceConfig",
    # Operations
    "list_entries",
    "presign_read",
    "presign_stat",
    "copy",
    "copy_between",
    "real_destination_path",
    # Resolution
    "Resolver",
    "resolve",
    "Builtin",
    "ExplicitRegistry",
    "Profiles",
    "Chain",
    "Decorated",
    "OperatorRegistry",
    "default_registry",
    "register_backend",
    "LoggingOperator",
    "logging_layer",
    # Locations
    "RootUri",
    "parse_location",
    "parse_root",
    "ObjectPath",
    # Operators & Models
    "Operator",
    "Reader",
    "Writer",
    "Capability",
    "CapabilitySet",
    "Entry",
    "EntryMode",
    "Metadata",
    "PresignedRequest",
    "ListOptions",
    "StatOptions",
    "ReadOptions",
    "BytesRange",
    "CopyOptions",
    # Requests
    "ListRequest",
    "PresignRequest",
    "CopyRequest",
    "parse_duration",
    # Classification
    "classify",
    "status_code",
    "outcomes",
    "Permanent",
    "Retryable",
    "HandlerError",
    # Errors
    "DispatchError",
    "InvalidLocation",
    "InvalidRequest",
    "InvalidPath",
    "UriInvalid",
    "UnsupportedScheme",
    "ProfileNotFound",
    "ProfileMissingType",
    "ConfigInvalid",
    "NotFound",
    "AlreadyExists",
    "PermissionDenied",
    "IsADirectory",
    "NotADirectory",
    "CapabilityNotSupported",
    "BackendUnavailable",
    "OperationRejected",
    # Version
    "__version__",
]
