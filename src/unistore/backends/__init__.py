"""Reference backends.

Both implement :class:`~unistore.Accessor` directly and serve as models for
backend authors: map every native failure onto the error taxonomy, advertise
only what is implemented, and commit writes only on close.
"""

from unistore.backends._fs import FsBackend
from unistore.backends._memory import MemoryBackend

__all__ = ["FsBackend", "MemoryBackend"]
