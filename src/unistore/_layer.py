"""Layer composition: wrapping accessors with cross-cutting behaviour."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Callable, Optional, Union

from unistore._accessor import Accessor
from unistore._io import Lister, Reader, Writer

if TYPE_CHECKING:
    from collections.abc import Iterable

    from unistore._accessor import AccessorInfo
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite


class Layer(abc.ABC):
    """A transformation ``Accessor -> Accessor``.

    Layers are configured once and applied when an operator is built; the
    accessor they return replaces the one they wrap.
    """

    @abc.abstractmethod
    def layer(self, inner: Accessor) -> Accessor:
        """Wrap ``inner`` and return the wrapping accessor."""

    def __call__(self, inner: Accessor) -> Accessor:
        return self.layer(inner)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


LayerLike = Union[Layer, Callable[[Accessor], Accessor]]


class LayeredAccessor(Accessor):
    """Accessor that forwards every operation to ``inner``.

    Subclasses override only the hooks they care about. The advertised
    capabilities are the inner ones unless :attr:`info` is overridden to
    restrict or emulate operations.

    :param inner: The wrapped accessor.
    """

    def __init__(self, inner: Accessor) -> None:
        self._inner = inner

    @property
    def inner(self) -> Accessor:
        return self._inner

    @property
    def info(self) -> AccessorInfo:
        return self._inner.info

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        return await self._inner.stat(path, args)

    async def _read(self, path: str, args: OpRead) -> Reader:
        return await self._inner.read(path, args)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        return await self._inner.write(path, args)

    async def _delete(self, path: str, args: OpDelete) -> None:
        await self._inner.delete(path, args)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        await self._inner.create_dir(path, args)

    async def _list(self, path: str, args: OpList) -> Lister:
        return await self._inner.list(path, args)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        await self._inner.copy(src, dst, args)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        await self._inner.rename(src, dst, args)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        return await self._inner.presign(path, args)

    async def close(self) -> None:
        await self._inner.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._inner!r})"


def compose(accessor: Accessor, layers: Iterable[LayerLike]) -> Accessor:
    """Apply ``layers`` to ``accessor`` from left to right.

    The last layer ends up outermost and sees every call first.

    :raises TypeError: If a layer does not return an :class:`Accessor`.
    """
    for layer in layers:
        wrapped = layer(accessor)
        if not isinstance(wrapped, Accessor):
            raise TypeError(f"Layer {layer!r} returned {type(wrapped).__name__}, expected an Accessor")
        accessor = wrapped
    return accessor


def unwrap(accessor: Accessor) -> list[Accessor]:
    """Decompose a stack into its accessors, outermost first, base backend last."""
    stack = [accessor]
    while isinstance(accessor, LayeredAccessor):
        accessor = accessor.inner
        stack.append(accessor)
    return stack


# region: stream wrappers
class LayeredReader(Reader):
    """Reader forwarding to ``inner``; layers override the hooks they need."""

    def __init__(self, inner: Reader) -> None:
        super().__init__(chunk_size=inner.chunk_size, metadata=inner.metadata)
        self._inner = inner
        self.seekable = inner.seekable

    async def _read(self, size: int) -> bytes:
        return await self._inner.read(size)

    async def _seek(self, offset: int, whence: int) -> int:
        return await self._inner.seek(offset, whence)

    async def _close(self) -> None:
        await self._inner.close()


class LayeredWriter(Writer):
    """Writer forwarding to ``inner``; layers override the hooks they need."""

    def __init__(self, inner: Writer) -> None:
        super().__init__()
        self._inner = inner

    async def _write(self, data: bytes) -> None:
        await self._inner.write(data)

    async def _close(self) -> None:
        await self._inner.close()

    async def _abort(self) -> None:
        await self._inner.abort()


class LayeredLister(Lister):
    """Lister forwarding to ``inner``; layers override the hooks they need."""

    def __init__(self, inner: Lister) -> None:
        super().__init__()
        self._inner = inner

    async def _next_page(self) -> Optional[list[Entry]]:
        return await self._inner.next_page()

    async def _close(self) -> None:
        await self._inner.close()


# endregion
