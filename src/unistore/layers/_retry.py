"""RetryLayer — retries temporary failures with exponential backoff and jitter."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_random,
)

from unistore._errors import UnistoreError
from unistore._layer import Layer, LayeredAccessor, LayeredLister, LayeredReader, LayeredWriter

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from unistore._accessor import Accessor
    from unistore._io import Lister, Reader, Writer
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite

T = TypeVar("T")

log = logging.getLogger(__name__)


def _is_temporary(exc: BaseException) -> bool:
    return isinstance(exc, UnistoreError) and exc.is_temporary()


class RetryLayer(Layer):
    """Retry calls that fail with a temporary error.

    Only errors whose :meth:`~unistore.UnistoreError.is_temporary` is true
    are retried; everything else propagates on first occurrence. When the
    attempt or time budget runs out, the last error is re-raised with an
    ``attempts`` context entry and marked persistent, so a retry layer
    further out does not multiply the attempts.

    Placed outside :class:`ConcurrentLimitLayer`, every attempt takes a new
    permit; placed inside, one permit is held across all attempts.

    Streams are covered too: a reader that fails mid-way reopens the
    remaining range with a new ``read``, writer chunks and ``close`` are
    retried (a writer raising from ``write`` has not accepted the chunk), and
    lister pages are refetched.

    :param max_attempts: Total attempts per call, including the first one.
    :param max_elapsed: Give up once this many seconds have passed.
    :param min_delay: Initial backoff in seconds.
    :param max_delay: Upper bound of a single backoff in seconds, before jitter.
    :param factor: Exponential base of the backoff.
    :param jitter: Add up to ``min_delay`` seconds of random jitter.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 4,
        max_elapsed: Optional[float] = None,
        min_delay: float = 1.0,
        max_delay: float = 60.0,
        factor: float = 2.0,
        jitter: bool = True,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.max_elapsed = max_elapsed
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter

    def __repr__(self) -> str:
        return f"RetryLayer(max_attempts={self.max_attempts}, max_elapsed={self.max_elapsed})"

    def _retrying(self) -> AsyncRetrying:
        stop = stop_after_attempt(self.max_attempts)
        if self.max_elapsed is not None:
            stop = stop | stop_after_delay(self.max_elapsed)
        return AsyncRetrying(
            retry=retry_if_exception(_is_temporary),
            stop=stop,
            wait=wait_exponential(multiplier=self.min_delay, max=self.max_delay, exp_base=self.factor)
            + wait_random(0, self.min_delay if self.jitter else 0),
            before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
            reraise=True,
        )

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` under this layer's retry policy."""
        attempts = 0
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    return await fn()
        except UnistoreError as exc:
            if not exc.is_temporary():
                raise
            exhausted = exc.with_context("attempts", attempts).as_persistent()
            raise exhausted.with_traceback(exc.__traceback__) from exc.__cause__
        raise AssertionError("unreachable")  # pragma: no cover

    def layer(self, inner: Accessor) -> Accessor:
        return RetryAccessor(inner, self)


class RetryAccessor(LayeredAccessor):
    def __init__(self, inner: Accessor, policy: RetryLayer) -> None:
        super().__init__(inner)
        self._policy = policy

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        return await self._policy.call(lambda: self._inner.stat(path, args))

    async def _read(self, path: str, args: OpRead) -> Reader:
        reader = await self._policy.call(lambda: self._inner.read(path, args))
        return RetryReader(reader, self._inner, self._policy, path, args)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        writer = await self._policy.call(lambda: self._inner.write(path, args))
        return RetryWriter(writer, self._policy)

    async def _delete(self, path: str, args: OpDelete) -> None:
        await self._policy.call(lambda: self._inner.delete(path, args))

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        await self._policy.call(lambda: self._inner.create_dir(path, args))

    async def _list(self, path: str, args: OpList) -> Lister:
        lister = await self._policy.call(lambda: self._inner.list(path, args))
        return RetryLister(lister, self._policy)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        await self._policy.call(lambda: self._inner.copy(src, dst, args))

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        await self._policy.call(lambda: self._inner.rename(src, dst, args))

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        return await self._policy.call(lambda: self._inner.presign(path, args))


class RetryReader(LayeredReader):
    """Resumes a failed read from the first byte not yet delivered.

    A resumed read is pinned with ``if_match`` to the etag the first read
    reported, so an object replaced in between fails with
    :class:`~unistore.ConditionNotMatch` instead of mixing two versions.
    """

    def __init__(self, inner: Reader, accessor: Accessor, policy: RetryLayer, path: str, args: OpRead) -> None:
        super().__init__(inner)
        self._accessor = accessor
        self._policy = policy
        self._path = path
        etag = inner.metadata.etag if inner.metadata is not None else None
        if etag is not None and args.if_match is None:
            args = dataclasses.replace(args, if_match=etag)
        self._args = args
        self._delivered = 0
        # A reopened reader starts at the resume offset, so seeking would
        # need translation; keep resumable readers forward-only.
        self.seekable = False

    async def _read(self, size: int) -> bytes:
        async def attempt() -> bytes:
            if self._inner.closed:
                remaining = self._args.range.advance(self._delivered)
                self._inner = await self._accessor.read(self._path, self._args.with_range(remaining))
            try:
                return await self._inner.read(size)
            except UnistoreError as exc:
                if exc.is_temporary():
                    await self._discard_inner()
                raise

        data = await self._policy.call(attempt)
        self._delivered += len(data)
        return data

    async def _discard_inner(self) -> None:
        try:
            await self._inner.close()
        except UnistoreError:
            log.debug("Ignoring close failure of a broken reader", exc_info=True)


class RetryWriter(LayeredWriter):
    def __init__(self, inner: Writer, policy: RetryLayer) -> None:
        super().__init__(inner)
        self._policy = policy

    async def _write(self, data: bytes) -> None:
        await self._policy.call(lambda: self._inner.write(data))

    async def _close(self) -> None:
        await self._policy.call(self._inner.close)


class RetryLister(LayeredLister):
    def __init__(self, inner: Lister, policy: RetryLayer) -> None:
        super().__init__(inner)
        self._policy = policy

    async def _next_page(self) -> Optional[list[Entry]]:
        return await self._policy.call(self._inner.next_page)

