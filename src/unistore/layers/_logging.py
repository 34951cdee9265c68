"""LoggingLayer — start, finish and failure records for every operation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Union

from unistore._errors import ErrorKind
from unistore._layer import Layer
from unistore.layers._observe import ObservingAccessor, Recording, error_kind

if TYPE_CHECKING:
    from unistore._accessor import Accessor

log = logging.getLogger(__name__)

# Failures callers routinely expect; logged at the normal level.
_EXPECTED_KINDS = frozenset({ErrorKind.NOT_FOUND.value, ErrorKind.CONDITION_NOT_MATCH.value})


def _level_number(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    try:
        return logging.getLevelNamesMapping()[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown logging level: {level!r}") from None


class LoggingLayer(Layer):
    """Log each operation through the standard :mod:`logging` module.

    Starts and successful finishes are logged at ``level``; failures at
    ``failure_level``, except ``not_found`` and ``condition_not_match``,
    which stay at ``level``. Stream operations log once the transfer ends,
    with the number of bytes (or entries) moved.

    :param logger: Logger or logger name; defaults to ``unistore.layers._logging``.
    :param level: Level of start and finish records, as a number or a name.
    :param failure_level: Level of failure records, as a number or a name.
    """

    def __init__(
        self,
        logger: Union[logging.Logger, str, None] = None,
        *,
        level: Union[int, str] = logging.DEBUG,
        failure_level: Union[int, str] = logging.WARNING,
    ) -> None:
        if isinstance(logger, str):
            logger = logging.getLogger(logger)
        self.logger = logger or log
        self.level = _level_number(level)
        self.failure_level = _level_number(failure_level)

    def __repr__(self) -> str:
        return f"LoggingLayer(logger={self.logger.name!r}, level={logging.getLevelName(self.level)})"

    def layer(self, inner: Accessor) -> Accessor:
        return LoggingAccessor(inner, self)


class LoggingAccessor(ObservingAccessor):
    def __init__(self, inner: Accessor, config: LoggingLayer) -> None:
        super().__init__(inner)
        self._config = config

    def _begin(self, operation: str, path: str, target: Optional[str] = None) -> Recording:
        recording = LogRecording(self._config, self.info.scheme, operation, path, target)
        recording.log_start()
        return recording


class LogRecording(Recording):
    def __init__(
        self,
        config: LoggingLayer,
        scheme: str,
        operation: str,
        path: str,
        target: Optional[str] = None,
    ) -> None:
        super().__init__(scheme, operation, path, target)
        self._logger = config.logger
        self._level = config.level
        self._failure_level = config.failure_level

    def _subject(self) -> str:
        if self.target is not None:
            return f"{self.scheme} {self.operation} {self.path!r} -> {self.target!r}"
        return f"{self.scheme} {self.operation} {self.path!r}"

    def log_start(self) -> None:
        self._logger.log(self._level, "%s: started", self._subject())

    def _finish(self, error: Optional[BaseException], aborted: bool) -> None:
        if error is not None:
            kind = error_kind(error)
            level = self._level if kind in _EXPECTED_KINDS else self._failure_level
            self._logger.log(
                level,
                "%s: failed after %.3fs (%s): %s",
                self._subject(),
                self.elapsed,
                kind,
                error,
            )
        elif aborted:
            self._logger.log(
                self._level, "%s: aborted after %.3fs, %d bytes discarded", self._subject(), self.elapsed,
                self.transferred,
            )
        elif self.operation in ("read", "write"):
            self._logger.log(
                self._level, "%s: finished in %.3fs, %d bytes", self._subject(), self.elapsed, self.transferred
            )
        elif self.operation == "list":
            self._logger.log(
                self._level, "%s: finished in %.3fs, %d entries", self._subject(), self.elapsed, self.transferred
            )
        else:
            self._logger.log(self._level, "%s: finished in %.3fs", self._subject(), self.elapsed)
