"""Normalized error taxonomy for unistore."""

from __future__ import annotations

import asyncio
import copy
import enum
import errno
from typing import TYPE_CHECKING, Optional, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable

E = TypeVar("E", bound="UnistoreError")


class ErrorKind(enum.Enum):
    """Closed set of failure kinds every backend maps its native errors onto."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    UNSUPPORTED = "unsupported"
    INVALID_ARGUMENT = "invalid_argument"
    CONDITION_NOT_MATCH = "condition_not_match"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NETWORK_ERROR = "network_error"
    RANGE_NOT_SATISFIABLE = "range_not_satisfiable"
    NOT_A_DIRECTORY = "not_a_directory"
    IS_A_DIRECTORY = "is_a_directory"
    INSUFFICIENT_STORAGE = "insufficient_storage"
    ALREADY_CLOSED = "already_closed"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"

    @property
    def retryable(self) -> bool:
        """Default retry classification of this kind."""
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.SERVICE_UNAVAILABLE, ErrorKind.NETWORK_ERROR})


class UnistoreError(Exception):
    """Base class for all unistore errors.

    Instances are treated as immutable: the ``with_*`` helpers return
    annotated copies that keep the kind, the retry classification and the
    wrapped cause.

    :param message: Human-readable error description.
    :param path: The path involved in the error, if any.
    :param backend: Scheme of the backend that produced the error, if any.
    :param operation: Name of the accessor operation, if known.
    :param retryable: Override the kind's default retry classification.
    :param context: Extra key/value pairs describing the failure.
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        retryable: Optional[bool] = None,
        context: Optional[Iterable[tuple[str, object]]] = None,
    ) -> None:
        self.message = message
        self.path = path
        self.backend = backend
        self.operation = operation
        self.retryable = self.kind.retryable if retryable is None else retryable
        self.context: tuple[tuple[str, object], ...] = tuple(context or ())
        self.persistent = False
        super().__init__(message)

    @property
    def source(self) -> Optional[BaseException]:
        """The wrapped lower-level error, if any."""
        return self.__cause__

    def is_temporary(self) -> bool:
        """Return ``True`` if retrying the failed call may succeed."""
        return self.retryable and not self.persistent

    # region: annotated copies
    def _evolve(self: E, **changes: object) -> E:
        clone = copy.copy(self)
        for key, value in changes.items():
            setattr(clone, key, value)
        clone.__cause__ = self.__cause__
        clone.__suppress_context__ = self.__suppress_context__
        return clone

    def with_context(self: E, key: str, value: object) -> E:
        """Return a copy carrying an extra ``key=value`` pair."""
        return self._evolve(context=(*self.context, (key, value)))

    def with_operation(self: E, operation: str) -> E:
        """Return a copy tagged with ``operation``.

        An already-recorded operation is kept in the context as ``called``.
        """
        if self.operation is None:
            return self._evolve(operation=operation)
        if self.operation == operation:
            return self
        return self._evolve(operation=operation, context=(*self.context, ("called", self.operation)))

    def with_backend(self: E, backend: str) -> E:
        """Return a copy tagged with the backend scheme, unless already set."""
        if self.backend is not None:
            return self
        return self._evolve(backend=backend)

    def with_path(self: E, path: str) -> E:
        """Return a copy tagged with ``path``, unless already set."""
        if self.path is not None:
            return self
        return self._evolve(path=path)

    def as_persistent(self: E) -> E:
        """Return a copy that retry layers must not retry again."""
        return self._evolve(persistent=True)

    # endregion

    def __str__(self) -> str:
        parts = [self.message]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.backend is not None:
            parts.append(f"backend={self.backend!r}")
        if self.operation is not None:
            parts.append(f"operation={self.operation!r}")
        parts.extend(f"{key}={value!r}" for key, value in self.context)
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.message)]
        if self.path is not None:
            args.append(f"path={self.path!r}")
        if self.backend is not None:
            args.append(f"backend={self.backend!r}")
        if self.operation is not None:
            args.append(f"operation={self.operation!r}")
        if self.retryable != self.kind.retryable:
            args.append(f"retryable={self.retryable!r}")
        return f"{cls}({', '.join(args)})"


class NotFound(UnistoreError):
    """Raised when a path does not exist."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExists(UnistoreError):
    """Raised when a target already exists and overwriting is not allowed."""

    kind = ErrorKind.ALREADY_EXISTS


class PermissionDenied(UnistoreError):
    """Raised when access is denied by the storage backend."""

    kind = ErrorKind.PERMISSION_DENIED


class Unsupported(UnistoreError):
    """Raised when an operation requires a capability the accessor does not advertise.

    :param capability: The name of the unsupported capability.
    """

    kind = ErrorKind.UNSUPPORTED

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        capability: str = "",
        retryable: Optional[bool] = None,
        context: Optional[Iterable[tuple[str, object]]] = None,
    ) -> None:
        self.capability = capability
        super().__init__(
            message, path=path, backend=backend, operation=operation, retryable=retryable, context=context
        )

    def __str__(self) -> str:
        base = super().__str__()
        if self.capability:
            return f"{base} | capability={self.capability!r}" if base else f"capability={self.capability!r}"
        return base


class InvalidArgument(UnistoreError):
    """Raised for malformed paths or operation arguments."""

    kind = ErrorKind.INVALID_ARGUMENT


class ConditionNotMatch(UnistoreError):
    """Raised when a conditional request (if-match, if-none-match, …) fails."""

    kind = ErrorKind.CONDITION_NOT_MATCH


class RateLimited(UnistoreError):
    """Raised when the backend asks the caller to slow down."""

    kind = ErrorKind.RATE_LIMITED


class ServiceUnavailable(UnistoreError):
    """Raised when the backend is temporarily unable to serve requests."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class NetworkError(UnistoreError):
    """Raised for transient transport failures."""

    kind = ErrorKind.NETWORK_ERROR


class RangeNotSatisfiable(UnistoreError):
    """Raised when a requested byte range lies outside the object."""

    kind = ErrorKind.RANGE_NOT_SATISFIABLE


class NotADirectory(UnistoreError):
    """Raised when a directory operation targets a file path."""

    kind = ErrorKind.NOT_A_DIRECTORY


class IsADirectory(UnistoreError):
    """Raised when a file operation targets a directory path."""

    kind = ErrorKind.IS_A_DIRECTORY


class InsufficientStorage(UnistoreError):
    """Raised when the backend has no room left for the write."""

    kind = ErrorKind.INSUFFICIENT_STORAGE


class AlreadyClosed(UnistoreError):
    """Raised when a reader, writer or lister is used after being finalized."""

    kind = ErrorKind.ALREADY_CLOSED


class Cancelled(UnistoreError, asyncio.CancelledError):
    """Raised when an in-flight operation is cancelled.

    Also an :class:`asyncio.CancelledError`, so task cancellation keeps
    working for code that only knows about asyncio.
    """

    kind = ErrorKind.CANCELLED


class Unexpected(UnistoreError):
    """Catch-all for backend faults that map to no other kind."""

    kind = ErrorKind.UNEXPECTED


_KIND_TO_CLASS: dict[ErrorKind, type[UnistoreError]] = {
    cls.kind: cls
    for cls in (
        NotFound,
        AlreadyExists,
        PermissionDenied,
        Unsupported,
        InvalidArgument,
        ConditionNotMatch,
        RateLimited,
        ServiceUnavailable,
        NetworkError,
        RangeNotSatisfiable,
        NotADirectory,
        IsADirectory,
        InsufficientStorage,
        AlreadyClosed,
        Cancelled,
        Unexpected,
    )
}


# region: backend mapping helpers
def error_from_kind(kind: ErrorKind, message: str = "", **kwargs: object) -> UnistoreError:
    """Build the error class registered for ``kind``."""
    return _KIND_TO_CLASS[kind](message, **kwargs)  # type: ignore[arg-type]


def error_from_http_status(status: int, message: str = "", **kwargs: object) -> UnistoreError:
    """Map an HTTP status code onto the taxonomy.

    ``429`` is always :class:`RateLimited`, whatever the backend calls it.
    ``500``, ``502`` and ``504`` are :class:`Unexpected` but retryable.
    """
    message = message or f"backend responded with HTTP {status}"
    if status == 404:
        return NotFound(message, **kwargs)  # type: ignore[arg-type]
    if status in (401, 403):
        return PermissionDenied(message, **kwargs)  # type: ignore[arg-type]
    if status == 409:
        return AlreadyExists(message, **kwargs)  # type: ignore[arg-type]
    if status in (304, 412):
        return ConditionNotMatch(message, **kwargs)  # type: ignore[arg-type]
    if status == 416:
        return RangeNotSatisfiable(message, **kwargs)  # type: ignore[arg-type]
    if status == 429:
        return RateLimited(message, **kwargs)  # type: ignore[arg-type]
    if status == 503:
        return ServiceUnavailable(message, **kwargs)  # type: ignore[arg-type]
    if status in (500, 502, 504):
        kwargs.setdefault("retryable", True)
        return Unexpected(message, **kwargs)  # type: ignore[arg-type]
    if status == 507:
        return InsufficientStorage(message, **kwargs)  # type: ignore[arg-type]
    if 400 <= status < 500:
        return InvalidArgument(message, **kwargs)  # type: ignore[arg-type]
    return Unexpected(message, **kwargs)  # type: ignore[arg-type]


_ERRNO_TO_KIND: dict[int, ErrorKind] = {
    errno.ENOENT: ErrorKind.NOT_FOUND,
    errno.EACCES: ErrorKind.PERMISSION_DENIED,
    errno.EPERM: ErrorKind.PERMISSION_DENIED,
    errno.EROFS: ErrorKind.PERMISSION_DENIED,
    errno.EEXIST: ErrorKind.ALREADY_EXISTS,
    errno.ENOTDIR: ErrorKind.NOT_A_DIRECTORY,
    errno.EISDIR: ErrorKind.IS_A_DIRECTORY,
    errno.ENOSPC: ErrorKind.INSUFFICIENT_STORAGE,
    errno.EDQUOT: ErrorKind.INSUFFICIENT_STORAGE,
    errno.EINVAL: ErrorKind.INVALID_ARGUMENT,
    errno.ENAMETOOLONG: ErrorKind.INVALID_ARGUMENT,
    errno.ETIMEDOUT: ErrorKind.NETWORK_ERROR,
    errno.ECONNRESET: ErrorKind.NETWORK_ERROR,
    errno.ECONNREFUSED: ErrorKind.NETWORK_ERROR,
    errno.EAGAIN: ErrorKind.SERVICE_UNAVAILABLE,
}


def error_from_os_error(exc: OSError, *, path: Optional[str] = None, backend: Optional[str] = None) -> UnistoreError:
    """Map an :class:`OSError` onto the taxonomy by its ``errno``."""
    kind = _ERRNO_TO_KIND.get(exc.errno or 0, ErrorKind.UNEXPECTED)
    message = exc.strerror or str(exc)
    return error_from_kind(kind, message, path=path, backend=backend)


# endregion
