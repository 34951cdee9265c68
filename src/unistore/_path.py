"""Path normalization helpers shared by the operator, layers and backends.

Paths handed to accessors are relative to the backend root, use ``/`` as the
only separator, and keep a trailing ``/`` for directories. The root itself is
``"/"``.
"""

from __future__ import annotations

from unistore._errors import InvalidArgument


def normalize_path(path: str) -> str:
    """Normalize a caller-supplied path.

    ``"/a//b/./c/"`` becomes ``"a/b/c/"``; ``""`` and ``"/"`` become ``"/"``.

    :raises InvalidArgument: If the path contains a null byte or a ``..`` segment.
    """
    if "\0" in path:
        raise InvalidArgument("Path contains null byte", path=path)
    p = path.replace("\\", "/")
    is_dir = p.endswith("/")
    parts: list[str] = []
    for segment in p.split("/"):
        if segment == "" or segment == ".":
            continue
        if segment == "..":
            raise InvalidArgument("Path contains '..' segment", path=path)
        parts.append(segment)
    if not parts:
        return "/"
    normalized = "/".join(parts)
    return f"{normalized}/" if is_dir else normalized


def normalize_root(root: str) -> str:
    """Normalize a backend root to the absolute ``/a/b/`` form."""
    normalized = normalize_path(root)
    if normalized == "/":
        return "/"
    return f"/{normalized.rstrip('/')}/"


def build_abs_path(root: str, path: str) -> str:
    """Join a normalized root and a normalized path, without the leading ``/``.

    >>> build_abs_path("/data/", "a/b")
    'data/a/b'
    """
    prefix = root.lstrip("/")
    if path == "/":
        return prefix
    return f"{prefix}{path}"


def build_rel_path(root: str, abs_path: str) -> str:
    """Strip a normalized root from an absolute path produced by :func:`build_abs_path`.

    :raises InvalidArgument: If ``abs_path`` lies outside ``root``.
    """
    prefix = root.lstrip("/")
    if not abs_path.startswith(prefix):
        raise InvalidArgument(f"Path {abs_path!r} is not under root {root!r}", path=abs_path)
    rel = abs_path[len(prefix) :]
    return rel or "/"


def is_dir_path(path: str) -> bool:
    """Return ``True`` if ``path`` denotes a directory."""
    return path.endswith("/")


def get_basename(path: str) -> str:
    """Final component of ``path``; directories keep their trailing ``/``.

    >>> get_basename("a/b/")
    'b/'
    """
    if path == "/":
        return "/"
    stripped = path.rstrip("/")
    name = stripped.rsplit("/", 1)[-1]
    return f"{name}/" if is_dir_path(path) else name


def get_parent(path: str) -> str:
    """Parent directory of ``path`` (always a directory path or ``"/"``)."""
    if path == "/":
        return "/"
    stripped = path.rstrip("/")
    if "/" not in stripped:
        return "/"
    return stripped.rsplit("/", 1)[0] + "/"
