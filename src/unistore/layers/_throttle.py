"""ThrottleLayer — token-bucket limits on operation rate and byte throughput."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Callable, Optional

from unistore._layer import Layer, LayeredAccessor, LayeredLister, LayeredReader, LayeredWriter

if TYPE_CHECKING:
    from unistore._accessor import Accessor
    from unistore._io import Lister, Reader, Writer
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite


class TokenBucket:
    """A token bucket that lets callers go into debt.

    :meth:`reserve` takes the tokens immediately, even when that drives the
    balance negative, and returns how long the caller must wait for the debt
    to be paid back. Reservation never suspends, so concurrent callers queue
    up behind each other's debt in the order they reserved.

    :param rate: Tokens added per second.
    :param capacity: Maximum balance; defaults to one second worth of tokens.
    :param clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        rate: float,
        capacity: Optional[float] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be > 0")
        self.rate = rate
        self.capacity = capacity if capacity is not None else rate
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._clock = clock
        self._tokens = self.capacity
        self._updated = clock()

    @property
    def tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    def reserve(self, amount: float) -> float:
        """Take ``amount`` tokens and return the delay in seconds before using them."""
        self._refill()
        self._tokens -= amount
        if self._tokens >= 0:
            return 0.0
        return -self._tokens / self.rate

    async def acquire(self, amount: float) -> None:
        """Reserve ``amount`` tokens and sleep until they are paid for."""
        delay = self.reserve(amount)
        if delay > 0:
            await asyncio.sleep(delay)


class ThrottleLayer(Layer):
    """Slow calls down to configured rates instead of failing them.

    ``ops_per_second`` limits accessor calls and lister page fetches.
    ``bandwidth`` limits bytes read and written per second; a chunk larger
    than the burst still passes, its excess is paid for by later callers.

    :param bandwidth: Bytes per second, or ``None`` for no byte limit.
    :param burst: Byte bucket capacity; defaults to one second of bandwidth.
    :param ops_per_second: Operations per second, or ``None`` for no limit.
    """

    def __init__(
        self,
        *,
        bandwidth: Optional[float] = None,
        burst: Optional[float] = None,
        ops_per_second: Optional[float] = None,
    ) -> None:
        if bandwidth is None and ops_per_second is None:
            raise ValueError("ThrottleLayer needs bandwidth, ops_per_second or both")
        self.bandwidth = bandwidth
        self.burst = burst
        self.ops_per_second = ops_per_second

    def __repr__(self) -> str:
        return f"ThrottleLayer(bandwidth={self.bandwidth}, ops_per_second={self.ops_per_second})"

    def layer(self, inner: Accessor) -> Accessor:
        byte_bucket = TokenBucket(self.bandwidth, self.burst) if self.bandwidth is not None else None
        op_bucket = TokenBucket(self.ops_per_second) if self.ops_per_second is not None else None
        return ThrottleAccessor(inner, _Throttle(byte_bucket, op_bucket))


class _Throttle:
    def __init__(self, byte_bucket: Optional[TokenBucket], op_bucket: Optional[TokenBucket]) -> None:
        self.byte_bucket = byte_bucket
        self.op_bucket = op_bucket

    async def operation(self) -> None:
        if self.op_bucket is not None:
            await self.op_bucket.acquire(1)

    async def transfer(self, size: int) -> None:
        if self.byte_bucket is not None and size > 0:
            await self.byte_bucket.acquire(size)


class ThrottleAccessor(LayeredAccessor):
    def __init__(self, inner: Accessor, throttle: _Throttle) -> None:
        super().__init__(inner)
        self._throttle = throttle

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        await self._throttle.operation()
        return await self._inner.stat(path, args)

    async def _read(self, path: str, args: OpRead) -> Reader:
        await self._throttle.operation()
        return ThrottleReader(await self._inner.read(path, args), self._throttle)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        await self._throttle.operation()
        return ThrottleWriter(await self._inner.write(path, args), self._throttle)

    async def _delete(self, path: str, args: OpDelete) -> None:
        await self._throttle.operation()
        await self._inner.delete(path, args)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        await self._throttle.operation()
        await self._inner.create_dir(path, args)

    async def _list(self, path: str, args: OpList) -> Lister:
        await self._throttle.operation()
        return ThrottleLister(await self._inner.list(path, args), self._throttle)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        await self._throttle.operation()
        await self._inner.copy(src, dst, args)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        await self._throttle.operation()
        await self._inner.rename(src, dst, args)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        await self._throttle.operation()
        return await self._inner.presign(path, args)


class ThrottleReader(LayeredReader):
    # Bytes are charged after they arrive; the debt slows down the next read.
    def __init__(self, inner: Reader, throttle: _Throttle) -> None:
        super().__init__(inner)
        self._throttle = throttle

    async def _read(self, size: int) -> bytes:
        data = await self._inner.read(size)
        await self._throttle.transfer(len(data))
        return data


class ThrottleWriter(LayeredWriter):
    def __init__(self, inner: Writer, throttle: _Throttle) -> None:
        super().__init__(inner)
        self._throttle = throttle

    async def _write(self, data: bytes) -> None:
        await self._throttle.transfer(len(data))
        await self._inner.write(data)


class ThrottleLister(LayeredLister):
    def __init__(self, inner: Lister, throttle: _Throttle) -> None:
        super().__init__(inner)
        self._throttle = throttle

    async def _next_page(self) -> Optional[list[Entry]]:
        await self._throttle.operation()
        return await self._inner.next_page()
