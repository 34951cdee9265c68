"""Operator — the application-facing handle on a composed accessor stack."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable
from typing import TYPE_CHECKING, Optional

from unistore._errors import InvalidArgument, IsADirectory, NotADirectory, NotFound
from unistore._layer import compose
from unistore._models import BytesRange
from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite
from unistore._path import is_dir_path, normalize_path
from unistore.layers._error_context import ErrorContextLayer

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime, timedelta
    from types import TracebackType

    from unistore._accessor import Accessor, AccessorInfo
    from unistore._io import Lister, Reader, Writer
    from unistore._layer import LayerLike
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._types import WritableContent

log = logging.getLogger(__name__)


class Operator:
    """Entry point for storage operations against one backend.

    The layers are applied once, in order, so the last one ends up
    outermost; an :class:`~unistore.layers.ErrorContextLayer` is always
    added on top, which guarantees every failure is a
    :class:`~unistore.UnistoreError` carrying operation, path and backend.
    A built stack is never modified: :meth:`layer` returns a new operator.

    Paths are normalized before dispatch. Directory paths end with ``/``;
    ``""`` and ``"/"`` denote the backend root.

    :param accessor: The backend (or an already layered accessor).
    :param layers: Layers to apply, innermost first.
    """

    def __init__(self, accessor: Accessor, layers: Iterable[LayerLike] = ()) -> None:
        self._composed = compose(accessor, layers)
        self._accessor = ErrorContextLayer().layer(self._composed)

    def __repr__(self) -> str:
        info = self.info
        return f"Operator(scheme={info.scheme!r}, root={info.root!r})"

    @property
    def info(self) -> AccessorInfo:
        """Scheme, root and capabilities of the composed stack."""
        return self._accessor.info

    @property
    def accessor(self) -> Accessor:
        """The fully composed accessor, outermost layer first."""
        return self._accessor

    def layer(self, layer: LayerLike) -> Operator:
        """Return a new operator with ``layer`` applied on top of this stack."""
        return Operator(self._composed, [layer])

    # region: path validation
    def _invalid(self, message: str, operation: str, path: str) -> InvalidArgument:
        return InvalidArgument(message, path=path, operation=operation, backend=self.info.scheme)

    def _file_path(self, path: str, operation: str) -> str:
        normalized = normalize_path(path)
        if is_dir_path(normalized):
            raise IsADirectory(
                f"'{operation}' needs a file path, got a directory",
                path=normalized,
                operation=operation,
                backend=self.info.scheme,
            )
        return normalized

    def _dir_path(self, path: str, operation: str) -> str:
        normalized = normalize_path(path)
        if not is_dir_path(normalized):
            raise NotADirectory(
                f"'{operation}' needs a directory path ending with '/'",
                path=normalized,
                operation=operation,
                backend=self.info.scheme,
            )
        return normalized

    # endregion

    # region: metadata
    async def stat(
        self,
        path: str,
        *,
        if_match: Optional[str] = None,
        if_none_match: Optional[str] = None,
        if_modified_since: Optional[datetime] = None,
    ) -> Metadata:
        """Return the metadata of a file or directory.

        :raises NotFound: If nothing exists at ``path``.
        :raises ConditionNotMatch: If a conditional argument does not hold.
        """
        args = OpStat(if_match=if_match, if_none_match=if_none_match, if_modified_since=if_modified_since)
        return await self._accessor.stat(normalize_path(path), args)

    async def is_exist(self, path: str) -> bool:
        """Check whether ``path`` exists."""
        try:
            await self.stat(path)
        except NotFound:
            return False
        return True

    # endregion

    # region: reading
    async def reader(
        self,
        path: str,
        *,
        offset: Optional[int] = None,
        size: Optional[int] = None,
        if_match: Optional[str] = None,
        if_none_match: Optional[str] = None,
        if_modified_since: Optional[datetime] = None,
    ) -> Reader:
        """Open a reader over ``size`` bytes starting at ``offset``.

        Leaving both unset reads the whole file. The caller closes the
        reader, preferably with ``async with``.

        :raises NotFound: If the file does not exist.
        :raises RangeNotSatisfiable: If ``offset`` lies past the end.
        """
        args = OpRead(
            range=BytesRange(offset, size),
            if_match=if_match,
            if_none_match=if_none_match,
            if_modified_since=if_modified_since,
        )
        return await self._accessor.read(self._file_path(path, "read"), args)

    async def read(
        self,
        path: str,
        *,
        offset: Optional[int] = None,
        size: Optional[int] = None,
        if_match: Optional[str] = None,
        if_none_match: Optional[str] = None,
        if_modified_since: Optional[datetime] = None,
    ) -> bytes:
        """Read a file, or part of it, into memory."""
        reader = await self.reader(
            path,
            offset=offset,
            size=size,
            if_match=if_match,
            if_none_match=if_none_match,
            if_modified_since=if_modified_since,
        )
        return await reader.read_all()

    async def range_read(self, path: str, start: int, end: Optional[int] = None) -> bytes:
        """Read the half-open byte range ``[start, end)``; ``end=None`` reads to the end."""
        byte_range = BytesRange.from_bounds(start, end)
        return await self.read(path, offset=byte_range.offset, size=byte_range.size)

    # endregion

    # region: writing
    async def writer(
        self,
        path: str,
        *,
        content_length: Optional[int] = None,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        if_match: Optional[str] = None,
        if_none_match: Optional[str] = None,
    ) -> Writer:
        """Open a writer; nothing is visible at ``path`` until it is closed.

        Use ``async with`` so that a failure aborts the writer.
        """
        args = OpWrite(
            content_length=content_length,
            content_type=content_type,
            cache_control=cache_control,
            if_match=if_match,
            if_none_match=if_none_match,
        )
        return await self._accessor.write(self._file_path(path, "write"), args)

    async def write(
        self,
        path: str,
        content: WritableContent,
        *,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        if_match: Optional[str] = None,
        if_none_match: Optional[str] = None,
    ) -> int:
        """Write ``content`` to ``path`` and return the number of bytes written.

        ``content`` is a bytes-like object or an (async) iterable of chunks.
        On failure the writer is aborted and nothing is committed.

        :raises ConditionNotMatch: If a conditional argument does not hold.
        """
        content_length = len(content) if isinstance(content, (bytes, bytearray, memoryview)) else None
        writer = await self.writer(
            path,
            content_length=content_length,
            content_type=content_type,
            cache_control=cache_control,
            if_match=if_match,
            if_none_match=if_none_match,
        )
        async with writer:
            if isinstance(content, (bytes, bytearray, memoryview)):
                await writer.write(content)
            elif isinstance(content, AsyncIterable):
                async for chunk in content:
                    await writer.write(chunk)
            else:
                for chunk in content:
                    await writer.write(chunk)
        return writer.bytes_written

    # endregion

    # region: namespace
    async def delete(self, path: str) -> None:
        """Delete a file or an empty directory. Missing paths are not an error.

        :raises InvalidArgument: If ``path`` is the root.
        """
        normalized = normalize_path(path)
        if normalized == "/":
            raise self._invalid("Cannot delete the root", "delete", normalized)
        await self._accessor.delete(normalized, OpDelete())

    async def remove_all(self, path: str) -> None:
        """Delete ``path`` and, for a directory, everything below it.

        Uses a recursive listing; apply :class:`~unistore.layers.CompleteLayer`
        for backends that only list one level.

        :raises InvalidArgument: If ``path`` is the root.
        """
        normalized = normalize_path(path)
        if normalized == "/":
            raise self._invalid("Cannot remove the root", "remove_all", normalized)
        if not is_dir_path(normalized):
            await self._accessor.delete(normalized, OpDelete())
            return
        try:
            entries = await self.list(normalized, recursive=True)
        except NotFound:
            return
        # Files first, then directories deepest first, the directory itself last.
        files = [e.path for e in entries if not is_dir_path(e.path)]
        dirs = sorted((e.path for e in entries if is_dir_path(e.path) and e.path != normalized), key=len, reverse=True)
        for target in [*files, *dirs, normalized]:
            await self._accessor.delete(target, OpDelete())
        log.debug("Removed %s with %d descendants", normalized, len(files) + len(dirs))

    async def create_dir(self, path: str) -> None:
        """Create a directory (and its parents where the backend has them)."""
        await self._accessor.create_dir(self._dir_path(path, "create_dir"), OpCreateDir())

    async def lister(
        self,
        path: str = "/",
        *,
        recursive: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> Lister:
        """Open a lazy listing of the directory ``path``.

        :param recursive: Include all descendants, not just direct children.
        :param limit: Page size hint.
        :param start_after: Skip entries whose path does not sort after this one.
        """
        args = OpList(
            limit=limit,
            start_after=normalize_path(start_after) if start_after is not None else None,
            recursive=recursive,
        )
        return await self._accessor.list(self._dir_path(path, "list"), args)

    async def list(
        self,
        path: str = "/",
        *,
        recursive: bool = False,
        limit: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> list[Entry]:
        """List the directory ``path`` into memory."""
        lister = await self.lister(path, recursive=recursive, limit=limit, start_after=start_after)
        async with lister:
            return [entry async for entry in lister]

    async def copy(self, src: str, dst: str, *, overwrite: bool = True) -> None:
        """Copy the file ``src`` to ``dst``.

        :raises AlreadyExists: If ``dst`` exists and ``overwrite`` is ``False``.
        """
        await self._accessor.copy(self._file_path(src, "copy"), self._file_path(dst, "copy"), OpCopy(overwrite))

    async def rename(self, src: str, dst: str, *, overwrite: bool = True) -> None:
        """Rename the file ``src`` to ``dst``.

        :raises AlreadyExists: If ``dst`` exists and ``overwrite`` is ``False``.
        """
        await self._accessor.rename(self._file_path(src, "rename"), self._file_path(dst, "rename"), OpRename(overwrite))

    # endregion

    # region: presign
    async def presign_stat(self, path: str, expire: timedelta) -> PresignedRequest:
        """Presign a metadata request for ``path``."""
        return await self._accessor.presign(normalize_path(path), OpPresign(OpStat(), expire))

    async def presign_read(
        self,
        path: str,
        expire: timedelta,
        *,
        offset: Optional[int] = None,
        size: Optional[int] = None,
    ) -> PresignedRequest:
        """Presign a download of ``path``, optionally of a byte range."""
        operation = OpRead(range=BytesRange(offset, size))
        return await self._accessor.presign(self._file_path(path, "presign"), OpPresign(operation, expire))

    async def presign_write(
        self,
        path: str,
        expire: timedelta,
        *,
        content_type: Optional[str] = None,
    ) -> PresignedRequest:
        """Presign an upload to ``path``."""
        operation = OpWrite(content_type=content_type)
        return await self._accessor.presign(self._file_path(path, "presign"), OpPresign(operation, expire))

    # endregion

    async def close(self) -> None:
        """Close the accessor stack, releasing backend resources."""
        await self._accessor.close()

    async def __aenter__(self) -> Operator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
