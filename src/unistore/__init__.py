"""Unified asynchronous storage access with composable layers."""

from unistore._accessor import Accessor, AccessorInfo
from unistore._capabilities import Capability, CapabilitySet
from unistore._config import BackendConfig, LayerConfig, OperatorProfile, RegistryConfig
from unistore._errors import (
    AlreadyClosed,
    AlreadyExists,
    Cancelled,
    ConditionNotMatch,
    ErrorKind,
    InsufficientStorage,
    InvalidArgument,
    IsADirectory,
    NetworkError,
    NotADirectory,
    NotFound,
    PermissionDenied,
    RangeNotSatisfiable,
    RateLimited,
    ServiceUnavailable,
    Unexpected,
    UnistoreError,
    Unsupported,
    error_from_http_status,
    error_from_kind,
    error_from_os_error,
)
from unistore._io import BufferedWriter, BytesReader, Lister, Page, PageLister, Reader, Writer, WriterState
from unistore._layer import Layer, LayeredAccessor, LayeredLister, LayeredReader, LayeredWriter, compose, unwrap
from unistore._models import BytesRange, ContentRange, Entry, EntryMode, Metadata, PresignedRequest
from unistore._operator import Operator
from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite
from unistore._registry import Registry, register_backend, register_layer

__version__ = "0.1.0"

__all__ = [
    # Core
    "Operator",
    "Registry",
    "Accessor",
    "AccessorInfo",
    "register_backend",
    "register_layer",
    # Layers
    "Layer",
    "LayeredAccessor",
    "LayeredReader",
    "LayeredWriter",
    "LayeredLister",
    "compose",
    "unwrap",
    # Streams
    "Reader",
    "Writer",
    "WriterState",
    "Lister",
    "BytesReader",
    "BufferedWriter",
    "Page",
    "PageLister",
    # Models
    "BytesRange",
    "ContentRange",
    "Entry",
    "EntryMode",
    "Metadata",
    "PresignedRequest",
    # Operation arguments
    "OpStat",
    "OpRead",
    "OpWrite",
    "OpList",
    "OpDelete",
    "OpCreateDir",
    "OpCopy",
    "OpRename",
    "OpPresign",
    # Capabilities
    "Capability",
    "CapabilitySet",
    # Config
    "BackendConfig",
    "LayerConfig",
    "OperatorProfile",
    "RegistryConfig",
    # Errors
    "ErrorKind",
    "UnistoreError",
    "NotFound",
    "AlreadyExists",
    "PermissionDenied",
    "Unsupported",
    "InvalidArgument",
    "ConditionNotMatch",
    "RateLimited",
    "ServiceUnavailable",
    "NetworkError",
    "RangeNotSatisfiable",
    "NotADirectory",
    "IsADirectory",
    "InsufficientStorage",
    "AlreadyClosed",
    "Cancelled",
    "Unexpected",
    "error_from_kind",
    "error_from_http_status",
    "error_from_os_error",
    # Version
    "__version__",
]
