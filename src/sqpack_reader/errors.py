"""Exception taxonomy shared by the archive and excel layers.

Lower layers raise these directly; upper layers let them propagate
unchanged.  Only ``OSError``, ``struct.error`` and ``zlib.error`` are
translated, at the point where they occur.
"""

from __future__ import annotations

from pathlib import Path


class SqPackError(Exception):
    """Base class for every error raised by this package."""


class RepositoryUnavailable(SqPackError):
    def __init__(self, root: str | Path, reason: str) -> None:
        self.root = Path(root)
        self.reason = reason
        super().__init__(f"SqPack repository at {self.root} is unavailable: {reason}")


class InvalidPath(SqPackError, ValueError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid archive path {path!r}: {reason}")


class FileNotFound(SqPackError, LookupError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Unable to find {path}")


class UnknownLocale(SqPackError, ValueError):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Unknown locale code {code!r}")


class AmbiguousPath(SqPackError, LookupError):
    """The path hash matches more than one index entry."""

    def __init__(self, path: str, key: int | tuple[int, int]) -> None:
        self.path = path
        self.key = key
        super().__init__(f"Hash collision for {path} (key={key!r})")


class MalformedIndex(SqPackError):
    def __init__(self, source: str | Path, reason: str) -> None:
        self.source = str(source)
        self.reason = reason
        super().__init__(f"Malformed index {self.source}: {reason}")


class CorruptBlock(SqPackError):
    def __init__(self, reason: str, *, offset: int | None = None) -> None:
        self.reason = reason
        self.offset = offset
        where = f" at offset {offset:#x}" if offset is not None else ""
        super().__init__(f"Corrupt data block{where}: {reason}")


class MalformedSchema(SqPackError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Malformed .exh schema: {reason}")


class MalformedRecord(SqPackError):
    def __init__(self, reason: str, *, row_id: int | None = None) -> None:
        self.reason = reason
        self.row_id = row_id
        where = f" (row {row_id})" if row_id is not None else ""
        super().__init__(f"Malformed .exd record{where}: {reason}")


class MappingError(SqPackError):
    def __init__(self, target: type, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot map row onto {target.__name__}: {reason}")


class SqPackIOError(SqPackError):
    """Wraps an underlying ``OSError``; the original is kept as ``__cause__``."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"I/O error on {self.path}: {reason}")
