"""In-memory backend — object-store semantics without any I/O."""

from __future__ import annotations

import dataclasses
import hashlib
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from unistore._accessor import Accessor, AccessorInfo
from unistore._capabilities import Capability, CapabilitySet
from unistore._errors import AlreadyExists, IsADirectory, NotFound
from unistore._io import BufferedWriter, BytesReader, Page, PageLister
from unistore._models import Entry, EntryMode, Metadata
from unistore._path import get_parent, is_dir_path
from unistore.backends._conditions import check_read_conditions, check_write_conditions

if TYPE_CHECKING:
    from unistore._io import Lister, Reader, Writer
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpRead, OpRename, OpStat, OpWrite

SCHEME = "memory"

_CAPABILITIES = [
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


@dataclasses.dataclass(frozen=True)
class _Object:
    data: bytes
    metadata: Metadata


def _object_metadata(data: bytes, content_type: Optional[str]) -> Metadata:
    md5 = hashlib.md5(data, usedforsecurity=False).hexdigest()
    return Metadata(
        mode=EntryMode.FILE,
        content_length=len(data),
        last_modified=datetime.now(timezone.utc),
        etag=f'"{md5}"',
        content_type=content_type,
        content_md5=md5,
    )


_DIR_METADATA = Metadata(mode=EntryMode.DIR)


class MemoryBackend(Accessor):
    """Dict-backed accessor behaving like an object store.

    Files live in a flat key space. Directories come into existence with
    ``create_dir`` or as parents of written objects, and stay until deleted.
    Listing a missing directory yields nothing. Writes are buffered and become visible
    atomically on close, so aborted or abandoned writers leave no trace.

    Every operation runs to completion without suspending, which makes each
    one atomic with respect to other tasks.

    :param page_size: Maximum number of entries per listing page.
    :param max_write_size: Reject objects larger than this many bytes.
    :param name: Instance name reported in :attr:`info`.
    """

    def __init__(self, *, page_size: int = 1000, max_write_size: Optional[int] = None, name: str = "") -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._page_size = page_size
        self._objects: dict[str, _Object] = {}
        self._dirs: set[str] = set()
        self._info = AccessorInfo(
            scheme=SCHEME,
            capabilities=CapabilitySet(_CAPABILITIES, max_write_size=max_write_size, max_list_page_size=page_size),
            name=name,
        )

    @property
    def info(self) -> AccessorInfo:
        return self._info

    # region: helpers
    def _get(self, path: str) -> _Object:
        if is_dir_path(path):
            raise IsADirectory(f"Not a file: {path}", path=path, backend=SCHEME)
        try:
            return self._objects[path]
        except KeyError:
            raise NotFound(f"File not found: {path}", path=path, backend=SCHEME) from None

    def _dir_exists(self, path: str) -> bool:
        if path == "/" or path in self._dirs:
            return True
        return any(key.startswith(path) for key in self._objects)

    def _add_parents(self, path: str) -> None:
        parent = get_parent(path)
        while parent != "/" and parent not in self._dirs:
            self._dirs.add(parent)
            parent = get_parent(parent)

    def _children(self, path: str, recursive: bool) -> list[Entry]:
        prefix = "" if path == "/" else path
        entries: dict[str, Entry] = {}
        for key, obj in self._objects.items():
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            if recursive or "/" not in rest:
                entries[key] = Entry(key, obj.metadata)
            else:
                child = prefix + rest.split("/", 1)[0] + "/"
                entries.setdefault(child, Entry(child, _DIR_METADATA))
        for dir_path in self._dirs:
            if dir_path == path or not dir_path.startswith(prefix):
                continue
            rest = dir_path[len(prefix) : -1]
            if recursive or "/" not in rest:
                entries.setdefault(dir_path, Entry(dir_path, _DIR_METADATA))
        return [entries[key] for key in sorted(entries)]

    # endregion

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        if is_dir_path(path):
            if not self._dir_exists(path):
                raise NotFound(f"Directory not found: {path}", path=path, backend=SCHEME)
            return _DIR_METADATA
        metadata = self._get(path).metadata
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
        obj = self._get(path)
        check_read_conditions(
            path,
            obj.metadata,
            backend=SCHEME,
            if_match=args.if_match,
            if_none_match=args.if_none_match,
            if_modified_since=args.if_modified_since,
        )
        start, end = args.range.resolve(len(obj.data))
        return BytesReader(obj.data[start:end], metadata=obj.metadata.for_range(args.range, start, end))

    async def _write(self, path: str, args: OpWrite) -> Writer:
        async def commit(data: bytes) -> None:
            current = self._objects.get(path)
            check_write_conditions(
                path,
                current.metadata if current is not None else None,
                backend=SCHEME,
                if_match=args.if_match,
                if_none_match=args.if_none_match,
            )
            self._objects[path] = _Object(data, _object_metadata(data, args.content_type))
            self._add_parents(path)

        return BufferedWriter(commit, max_size=self._info.capabilities.max_write_size)

    async def _delete(self, path: str, args: OpDelete) -> None:
        if is_dir_path(path):
            self._dirs.discard(path)
        else:
            self._objects.pop(path, None)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        if path == "/":
            return
        self._dirs.add(path)
        self._add_parents(path)

    async def _list(self, path: str, args: OpList) -> Lister:
        page_size = min(args.limit or self._page_size, self._page_size)

        async def fetch_page(token: Optional[str]) -> Page:
            after = token if token is not None else args.start_after
            entries = self._children(path, args.recursive)
            if after is not None:
                entries = [e for e in entries if e.path > after]
            page = entries[:page_size]
            next_token = page[-1].path if len(entries) > page_size else None
            return Page(page, next_token)

        return PageLister(fetch_page)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        obj = self._get(src)
        self._place(dst, obj, overwrite=args.overwrite)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        obj = self._get(src)
        if src == dst:
            return
        self._place(dst, obj, overwrite=args.overwrite)
        del self._objects[src]

    def _place(self, dst: str, obj: _Object, *, overwrite: bool) -> None:
        if is_dir_path(dst):
            raise IsADirectory(f"Not a file: {dst}", path=dst, backend=SCHEME)
        if not overwrite and dst in self._objects:
            raise AlreadyExists(f"Destination already exists: {dst}", path=dst, backend=SCHEME)
        metadata = dataclasses.replace(obj.metadata, last_modified=datetime.now(timezone.utc))
        self._objects[dst] = _Object(obj.data, metadata)
        self._add_parents(dst)
