"""Local filesystem backend — blocking calls run in worker threads."""

from __future__ import annotations

import asyncio
import errno
import functools
import os
import shutil
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Optional

from unistore._accessor import Accessor, AccessorInfo
from unistore._capabilities import Capability, CapabilitySet
from unistore._errors import (
    AlreadyExists,
    InvalidArgument,
    IsADirectory,
    NotADirectory,
    NotFound,
    UnistoreError,
    error_from_os_error,
)
from unistore._io import DEFAULT_CHUNK_SIZE, Page, PageLister, Reader, Writer, _resolve_seek
from unistore._models import Entry, EntryMode, Metadata
from unistore._path import is_dir_path
from unistore.backends._conditions import check_read_conditions, check_write_conditions

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from unistore._io import Lister
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpRead, OpRename, OpStat, OpWrite

SCHEME = "fs"

_TMP_SUFFIX = ".unistore-tmp"

_CAPABILITIES = CapabilitySet(
    [
        Capability.STAT,
        Capability.READ,
        Capability.WRITE,
        Capability.CREATE_DIR,
        Capability.DELETE,
        Capability.LIST,
        Capability.LIST_RECURSIVE,
        Capability.COPY,
        Capability.RENAME,
    ]
)


@contextmanager
def _errors(path: str) -> Iterator[None]:
    """Map :class:`OSError` to unistore errors."""
    try:
        yield
    except UnistoreError:
        raise
    except OSError as exc:
        raise error_from_os_error(exc, path=path, backend=SCHEME) from exc


def _is_temp_name(name: str) -> bool:
    return name.startswith(".") and name.endswith(_TMP_SUFFIX)


def _temp_path(target: Path) -> Path:
    return target.with_name(f".{target.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}")


def _stat_result_to_metadata(st: os.stat_result, is_dir: bool) -> Metadata:
    modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
    if is_dir:
        return Metadata(mode=EntryMode.DIR, last_modified=modified)
    return Metadata(
        mode=EntryMode.FILE,
        content_length=st.st_size,
        last_modified=modified,
        etag=f'"{st.st_mtime_ns:x}-{st.st_size:x}"',
    )


class FsBackend(Accessor):
    """Local filesystem accessor.

    Every blocking call runs via :func:`asyncio.to_thread`, so the event
    loop keeps running while the disk works. Readers are seekable within
    their range. Writers stream into a hidden temporary file next to the
    target and move it into place with :func:`os.replace` on close; abort
    deletes the temporary file. A writer that is dropped without close or
    abort leaves its temporary file behind (named ``.<name>.<id>.unistore-tmp``
    and hidden from listings).

    :param root: Directory on the local filesystem all paths are relative to.
        Created if missing.
    """

    def __init__(self, root: str) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._info = AccessorInfo(scheme=SCHEME, capabilities=_CAPABILITIES, root=self._root.as_posix())

    @property
    def info(self) -> AccessorInfo:
        return self._info

    # region: path safety
    def _resolve(self, path: str) -> Path:
        """Resolve a relative path to an absolute path within root.

        ``.resolve()`` follows symlinks to their real target, and
        ``relative_to(self._root)`` then rejects any path that escapes the
        root, including symlinks pointing outside it.

        :raises InvalidArgument: If the resolved path escapes the root.
        """
        if path == "/":
            return self._root
        resolved = (self._root / path.rstrip("/")).resolve()
        try:
            resolved.relative_to(self._root)
        except ValueError:
            raise InvalidArgument(f"Path escapes root directory: {path}", path=path, backend=SCHEME) from None
        return resolved

    def _to_key(self, full: Path, is_dir: bool) -> str:
        rel = full.relative_to(self._root).as_posix()
        return f"{rel}/" if is_dir else rel

    # endregion

    # region: blocking helpers
    def _stat_sync(self, path: str) -> Metadata:
        full = self._resolve(path)
        with _errors(path):
            st = full.stat()
        is_dir = full.is_dir()
        if is_dir_path(path) and not is_dir:
            raise NotADirectory(f"Not a directory: {path}", path=path, backend=SCHEME)
        return _stat_result_to_metadata(st, is_dir)

    def _scan_sync(self, path: str, recursive: bool) -> list[Entry]:
        full = self._resolve(path)
        with _errors(path):
            if not full.is_dir():
                if full.exists():
                    raise NotADirectory(f"Not a directory: {path}", path=path, backend=SCHEME)
                raise NotFound(f"Directory not found: {path}", path=path, backend=SCHEME)
            entries = []
            if recursive:
                for dirpath, dirnames, filenames in os.walk(full):
                    base = Path(dirpath)
                    for name in dirnames:
                        entries.append(self._entry(base / name, is_dir=True))
                    for name in filenames:
                        if not _is_temp_name(name):
                            entries.append(self._entry(base / name, is_dir=False))
            else:
                with os.scandir(full) as it:
                    for item in it:
                        if _is_temp_name(item.name):
                            continue
                        entries.append(self._entry(Path(item.path), is_dir=item.is_dir()))
        entries.sort(key=lambda e: e.path)
        return entries

    def _entry(self, full: Path, *, is_dir: bool) -> Entry:
        try:
            metadata = _stat_result_to_metadata(full.stat(), is_dir)
        except FileNotFoundError:
            # Removed between the directory scan and the stat.
            metadata = Metadata(mode=EntryMode.DIR if is_dir else EntryMode.FILE)
        return Entry(self._to_key(full, is_dir), metadata)

    def _delete_sync(self, path: str) -> None:
        full = self._resolve(path)
        if full == self._root:
            raise InvalidArgument("Cannot delete the root directory", path=path, backend=SCHEME)
        try:
            if is_dir_path(path):
                full.rmdir()
            else:
                full.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            if exc.errno == errno.ENOTEMPTY:
                raise InvalidArgument(f"Directory not empty: {path}", path=path, backend=SCHEME) from exc
            raise error_from_os_error(exc, path=path, backend=SCHEME) from exc

    def _prepare_target(self, src: str, dst: str, overwrite: bool) -> tuple[Path, Path]:
        src_full = self._resolve(src)
        dst_full = self._resolve(dst)
        with _errors(src):
            if src_full.is_dir():
                raise IsADirectory(f"Not a file: {src}", path=src, backend=SCHEME)
            if not src_full.exists():
                raise NotFound(f"Source not found: {src}", path=src, backend=SCHEME)
        if not overwrite and dst_full.exists():
            raise AlreadyExists(f"Destination already exists: {dst}", path=dst, backend=SCHEME)
        with _errors(dst):
            dst_full.parent.mkdir(parents=True, exist_ok=True)
        return src_full, dst_full

    def _copy_sync(self, src: str, dst: str, overwrite: bool) -> None:
        src_full, dst_full = self._prepare_target(src, dst, overwrite)
        tmp = _temp_path(dst_full)
        with _errors(dst):
            try:
                shutil.copyfile(src_full, tmp)
                os.replace(tmp, dst_full)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise

    def _rename_sync(self, src: str, dst: str, overwrite: bool) -> None:
        src_full, dst_full = self._prepare_target(src, dst, overwrite)
        with _errors(src):
            os.replace(src_full, dst_full)

    # endregion

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        metadata = await asyncio.to_thread(self._stat_sync, path)
        if metadata.is_file:
            check_read_conditions(
                path,
                metadata,
                backend=SCHEME,
                if_match=args.if_match,
                if_none_match=args.if_none_match,
                if_modified_since=args.if_modified_since,
            )
        return metadata

    async def _read(self, path: str, args: OpRead) -> Reader:
        full = self._resolve(path)

        def open_file() -> tuple[BinaryIO, Metadata]:
            with _errors(path):
                f = open(full, "rb")  # noqa: SIM115
                try:
                    metadata = _stat_result_to_metadata(os.fstat(f.fileno()), is_dir=False)
                except BaseException:
                    f.close()
                    raise
            return f, metadata

        f, metadata = await asyncio.to_thread(open_file)
        try:
            check_read_conditions(
                path,
                metadata,
                backend=SCHEME,
                if_match=args.if_match,
                if_none_match=args.if_none_match,
                if_modified_since=args.if_modified_since,
            )
            start, end = args.range.resolve(metadata.content_length or 0)
            if start:
                await asyncio.to_thread(f.seek, start)
        except BaseException:
            await asyncio.to_thread(f.close)
            raise
        return FileReader(f, path, start, end, metadata=metadata.for_range(args.range, start, end))

    async def _write(self, path: str, args: OpWrite) -> Writer:
        full = self._resolve(path)
        tmp = _temp_path(full)

        def open_temp() -> BinaryIO:
            with _errors(path):
                full.parent.mkdir(parents=True, exist_ok=True)
                return open(tmp, "wb")  # noqa: SIM115

        f = await asyncio.to_thread(open_temp)
        return FileWriter(f, path, tmp, functools.partial(self._commit_sync, path, full, tmp, args))

    async def _delete(self, path: str, args: OpDelete) -> None:
        await asyncio.to_thread(self._delete_sync, path)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        full = self._resolve(path)

        def mkdir() -> None:
            with _errors(path):
                if full.exists() and not full.is_dir():
                    raise NotADirectory(f"A file exists at {path}", path=path, backend=SCHEME)
                full.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(mkdir)

    async def _list(self, path: str, args: OpList) -> Lister:
        entries = await asyncio.to_thread(self._scan_sync, path, args.recursive)
        if args.start_after is not None:
            entries = [e for e in entries if e.path > args.start_after]
        page_size = args.limit or len(entries) or 1

        async def fetch_page(token: Optional[str]) -> Page:
            offset = int(token) if token is not None else 0
            page = entries[offset : offset + page_size]
            end = offset + len(page)
            return Page(page, str(end) if end < len(entries) else None)

        return PageLister(fetch_page)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        await asyncio.to_thread(self._copy_sync, src, dst, args.overwrite)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        await asyncio.to_thread(self._rename_sync, src, dst, args.overwrite)

    def _commit_sync(self, path: str, full: Path, tmp: Path, args: OpWrite) -> None:
        current: Optional[Metadata] = None
        if args.if_match is not None or args.if_none_match is not None:
            try:
                current = self._stat_sync(path)
            except NotFound:
                current = None
        check_write_conditions(path, current, backend=SCHEME, if_match=args.if_match, if_none_match=args.if_none_match)
        with _errors(path):
            os.replace(tmp, full)


class FileReader(Reader):
    """Seekable reader over the byte range ``[start, end)`` of an open file."""

    seekable = True

    def __init__(
        self,
        f: BinaryIO,
        path: str,
        start: int,
        end: int,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        metadata: Optional[Metadata] = None,
    ) -> None:
        super().__init__(chunk_size=chunk_size, metadata=metadata)
        self._file = f
        self._path = path
        self._start = start
        self._length = end - start

    async def _read(self, size: int) -> bytes:
        remaining = self._length - self._pos
        if remaining <= 0:
            return b""
        with _errors(self._path):
            return await asyncio.to_thread(self._file.read, min(size, remaining))

    async def _seek(self, offset: int, whence: int) -> int:
        target = _resolve_seek(self._pos, self._length, offset, whence)
        with _errors(self._path):
            await asyncio.to_thread(self._file.seek, self._start + target)
        return target

    async def _close(self) -> None:
        with _errors(self._path):
            await asyncio.to_thread(self._file.close)


class FileWriter(Writer):
    """Streams into a temporary file and moves it into place on close."""

    def __init__(self, f: BinaryIO, path: str, tmp: Path, commit: Callable[[], None]) -> None:
        super().__init__()
        self._file = f
        self._path = path
        self._tmp = tmp
        self._commit = commit

    async def _write(self, data: bytes) -> None:
        with _errors(self._path):
            await asyncio.to_thread(self._file.write, data)

    async def _close(self) -> None:
        def finish() -> None:
            with _errors(self._path):
                if not self._file.closed:
                    self._file.flush()
                    os.fsync(self._file.fileno())
                    self._file.close()
            self._commit()

        await asyncio.to_thread(finish)

    async def _abort(self) -> None:
        def discard() -> None:
            with _errors(self._path):
                self._file.close()
                self._tmp.unlink(missing_ok=True)

        await asyncio.to_thread(discard)
