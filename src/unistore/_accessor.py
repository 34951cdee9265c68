"""Accessor abstract base class — the contract shared by backends and layers."""

from __future__ import annotations

import abc
import dataclasses
from typing import TYPE_CHECKING, Optional

from unistore._capabilities import Capability, CapabilitySet
from unistore._errors import Unsupported
from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpRead, OpRename, OpStat, OpWrite

if TYPE_CHECKING:
    from unistore._io import Lister, Reader, Writer
    from unistore._models import Metadata, PresignedRequest
    from unistore._ops import OpPresign


@dataclasses.dataclass(frozen=True)
class AccessorInfo:
    """Static description of an accessor.

    :param scheme: Backend type identifier (e.g. ``"memory"``, ``"fs"``).
    :param capabilities: Operations this accessor can execute.
    :param root: Normalized root all paths are relative to.
    :param name: Instance name, such as a bucket.
    """

    scheme: str
    capabilities: CapabilitySet
    root: str = "/"
    name: str = ""


class Accessor(abc.ABC):
    """Abstract base class for everything that performs storage operations.

    Backends and layers both derive from it, so a layer wrapping an accessor
    is itself an accessor. Every public operation checks the advertised
    capability first and fails with :class:`Unsupported` before any I/O;
    subclasses implement the protected ``_operation`` hooks.

    Paths are normalized by the caller (see :mod:`unistore._path`). Hooks
    must map every native failure to a :class:`~unistore.UnistoreError`.
    """

    @property
    @abc.abstractmethod
    def info(self) -> AccessorInfo:
        """Scheme, root and capabilities of this accessor."""

    def _require(self, cap: Capability, operation: str, path: Optional[str]) -> None:
        info = self.info
        info.capabilities.require(cap, backend=info.scheme, operation=operation, path=path)

    # region: public operations
    async def stat(self, path: str, args: Optional[OpStat] = None) -> Metadata:
        """Return metadata for ``path``.

        :raises NotFound: If nothing exists at ``path``.
        """
        self._require(Capability.STAT, "stat", path)
        return await self._stat(path, args or OpStat())

    async def read(self, path: str, args: Optional[OpRead] = None) -> Reader:
        """Open ``path`` for reading the requested range.

        :raises NotFound: If the file does not exist.
        :raises RangeNotSatisfiable: If the range lies outside the file.
        """
        self._require(Capability.READ, "read", path)
        return await self._read(path, args or OpRead())

    async def write(self, path: str, args: Optional[OpWrite] = None) -> Writer:
        """Open a writer that commits to ``path`` when closed."""
        self._require(Capability.WRITE, "write", path)
        return await self._write(path, args or OpWrite())

    async def delete(self, path: str, args: Optional[OpDelete] = None) -> None:
        """Delete ``path``. Deleting a missing path succeeds."""
        self._require(Capability.DELETE, "delete", path)
        await self._delete(path, args or OpDelete())

    async def create_dir(self, path: str, args: Optional[OpCreateDir] = None) -> None:
        """Create the directory ``path`` (which ends with ``/``)."""
        self._require(Capability.CREATE_DIR, "create_dir", path)
        await self._create_dir(path, args or OpCreateDir())

    async def list(self, path: str, args: Optional[OpList] = None) -> Lister:
        """List the entries under the directory ``path``.

        A ``limit`` above the advertised ``max_list_page_size`` is lowered to it.

        :raises NotADirectory: If ``path`` is not a directory.
        """
        args = args or OpList()
        self._require(Capability.LIST, "list", path)
        if args.recursive:
            self._require(Capability.LIST_RECURSIVE, "list", path)
        max_page = self.info.capabilities.max_list_page_size
        if max_page is not None and args.limit is not None and args.limit > max_page:
            args = dataclasses.replace(args, limit=max_page)
        return await self._list(path, args)

    async def copy(self, src: str, dst: str, args: Optional[OpCopy] = None) -> None:
        """Copy the file ``src`` to ``dst``.

        :raises NotFound: If ``src`` does not exist.
        :raises AlreadyExists: If ``dst`` exists and overwriting is disabled.
        """
        self._require(Capability.COPY, "copy", src)
        await self._copy(src, dst, args or OpCopy())

    async def rename(self, src: str, dst: str, args: Optional[OpRename] = None) -> None:
        """Rename the file ``src`` to ``dst``.

        :raises NotFound: If ``src`` does not exist.
        :raises AlreadyExists: If ``dst`` exists and overwriting is disabled.
        """
        self._require(Capability.RENAME, "rename", src)
        await self._rename(src, dst, args or OpRename())

    async def presign(self, path: str, args: OpPresign) -> PresignedRequest:
        """Return a signed request performing ``args.operation`` on ``path``."""
        self._require(Capability.PRESIGN, "presign", path)
        return await self._presign(path, args)

    async def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    # endregion

    # region: hooks
    @abc.abstractmethod
    async def _stat(self, path: str, args: OpStat) -> Metadata: ...

    @abc.abstractmethod
    async def _read(self, path: str, args: OpRead) -> Reader: ...

    @abc.abstractmethod
    async def _delete(self, path: str, args: OpDelete) -> None: ...

    async def _write(self, path: str, args: OpWrite) -> Writer:
        raise self._unsupported(Capability.WRITE, path)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        raise self._unsupported(Capability.CREATE_DIR, path)

    async def _list(self, path: str, args: OpList) -> Lister:
        raise self._unsupported(Capability.LIST, path)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        raise self._unsupported(Capability.COPY, src)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        raise self._unsupported(Capability.RENAME, src)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        raise self._unsupported(Capability.PRESIGN, path)

    def _unsupported(self, cap: Capability, path: str) -> Unsupported:
        return Unsupported(
            f"Accessor '{self.info.scheme}' advertises '{cap.value}' but does not implement it",
            capability=cap.value,
            backend=self.info.scheme,
            path=path,
        )

    # endregion

    def __repr__(self) -> str:
        info = self.info
        return f"{type(self).__name__}(scheme={info.scheme!r}, root={info.root!r})"
