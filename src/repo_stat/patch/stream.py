"""
Line streams over a patch body.

A patch can be held in memory (for example the output of
``git format-patch``) or read from a file on disk. Both are exposed
through :class:`PatchStream` so that parsing and comparison do not care
where the lines come from. Lines are returned without their trailing
newline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Union


class PatchStream(ABC):
    """Replayable, forward-only sequence of patch lines."""

    @abstractmethod
    def has_next(self) -> bool:
        """Return True if another line can be read."""

    @abstractmethod
    def next_line(self) -> str:
        """Return the next line. Raises ``StopIteration`` at the end."""

    @abstractmethod
    def rewind(self) -> None:
        """Restart the stream from its first line."""

    def at_end(self) -> bool:
        return not self.has_next()

    def __iter__(self) -> Iterator[str]:
        while self.has_next():
            yield self.next_line()

    def close(self) -> None:
        pass

    def __enter__(self) -> "PatchStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class LineStream(PatchStream):
    """Patch lines held in memory."""

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines: List[str] = [line.rstrip("\r\n") for line in lines]
        self._pos = 0

    @classmethod
    def from_text(cls, text: str) -> "LineStream":
        return cls(text.splitlines())

    def has_next(self) -> bool:
        return self._pos < len(self._lines)

    def next_line(self) -> str:
        if not self.has_next():
            raise StopIteration
        line = self._lines[self._pos]
        self._pos += 1
        return line

    def rewind(self) -> None:
        self._pos = 0


class FileStream(PatchStream):
    """Patch lines read incrementally from a file.

    The file is decoded as UTF-8; invalid bytes are replaced. One line of
    look-ahead is kept so :meth:`has_next` does not consume input.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._handle: Optional[TextIO] = None
        self._pending: Optional[str] = None
        self.rewind()

    def _open(self) -> TextIO:
        if self._handle is None:
            self._handle = open(self.path, "r", encoding="utf-8", errors="replace", newline="")
        return self._handle

    def _fill(self) -> None:
        if self._pending is None:
            raw = self._open().readline()
            self._pending = raw.rstrip("\r\n") if raw else None
            self._eof = not raw

    def has_next(self) -> bool:
        self._fill()
        return not self._eof

    def next_line(self) -> str:
        if not self.has_next():
            raise StopIteration
        line = self._pending or ""
        self._pending = None
        return line

    def rewind(self) -> None:
        self._open().seek(0)
        self._pending = None
        self._eof = False

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


PatchSource = Union[PatchStream, Iterable[str]]


def as_stream(source: PatchSource) -> PatchStream:
    """Wrap a list of lines in a :class:`LineStream`; pass streams through."""
    if isinstance(source, PatchStream):
        return source
    if isinstance(source, str):
        return LineStream.from_text(source)
    return LineStream(source)
