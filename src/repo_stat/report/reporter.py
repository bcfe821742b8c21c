"""
Report writers.

A reporter receives a header and a sequence of rows through
:meth:`Reporter.emit_header` and :meth:`Reporter.emit_row` and renders
them as CSV, a Markdown table or a small XML document. Output goes to
a file when a path is given, otherwise to standard output.
"""

from __future__ import annotations

import csv
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Union
from xml.sax.saxutils import escape, quoteattr


FORMAT_CSV = "csv"
FORMAT_MARKDOWN = "markdown"
FORMAT_XML = "xml"


class Reporter:
    """Base reporter writing one value per line."""

    extensions: Sequence[str] = ()

    def __init__(self, out_path: Optional[Union[str, Path]] = None) -> None:
        self.out_path = self.ensure_extension(out_path) if out_path else None
        if self.out_path is not None:
            self._stream: Optional[TextIO] = open(self.out_path, "w", encoding="utf-8", newline="")
        else:
            self._stream = sys.stdout

    def ensure_extension(self, path: Union[str, Path]) -> Path:
        """Append the format's extension to ``path`` if it has none of them."""
        path = Path(path)
        if not self.extensions or path.suffix.lower() in self.extensions:
            return path
        return path.with_name(path.name + self.extensions[0])

    def _write(self, text: str) -> None:
        if self._stream is not None:
            self._stream.write(text + "\n")

    def emit_header(self, fields: Sequence[object]) -> None:
        self.emit_row(fields)

    def emit_row(self, fields: Sequence[object]) -> None:
        self._write(" ".join(str(f) for f in fields))

    def close(self) -> None:
        if self._stream is not None and self._stream is not sys.stdout:
            self._stream.close()
        self._stream = None

    def __enter__(self) -> "Reporter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class CsvReporter(Reporter):
    """Comma separated values."""

    extensions = (".csv", ".txt")

    def __init__(self, out_path: Optional[Union[str, Path]] = None) -> None:
        super().__init__(out_path)
        self._writer = csv.writer(self._stream, lineterminator="\n") if self._stream else None

    def emit_row(self, fields: Sequence[object]) -> None:
        if self._writer is not None and self._stream is not None:
            self._writer.writerow([str(f) for f in fields])


class MarkdownReporter(Reporter):
    """GitHub flavoured Markdown table."""

    extensions = (".md",)

    def emit_header(self, fields: Sequence[object]) -> None:
        self.emit_row(fields)
        self._write("|" + " :--- |" * len(fields))

    def emit_row(self, fields: Sequence[object]) -> None:
        cells = [str(f).replace("|", "\\|") for f in fields]
        self._write("| " + " | ".join(cells) + " |")


class XmlReporter(Reporter):
    """Tagged document with one ``<row>`` element per row."""

    extensions = (".xml",)

    def __init__(self, out_path: Optional[Union[str, Path]] = None) -> None:
        super().__init__(out_path)
        self._fields: List[str] = []
        self._write('<?xml version="1.0" encoding="UTF-8"?>')
        self._write("<report>")

    def emit_header(self, fields: Sequence[object]) -> None:
        self._fields = [str(f) for f in fields]

    def emit_row(self, fields: Sequence[object]) -> None:
        self._write("    <row>")
        for index, value in enumerate(fields):
            name = self._fields[index] if index < len(self._fields) else f"field{index}"
            self._write(f"        <field name={quoteattr(name)}>{escape(str(value))}</field>")
        self._write("    </row>")

    def close(self) -> None:
        if self._stream is not None:
            self._write("</report>")
        super().close()


_REPORTERS = {
    FORMAT_CSV: CsvReporter,
    FORMAT_MARKDOWN: MarkdownReporter,
    FORMAT_XML: XmlReporter,
}
REPORT_FORMATS = tuple(_REPORTERS)


def create_reporter(fmt: str = FORMAT_CSV, out_path: Optional[Union[str, Path]] = None) -> Reporter:
    """Return a reporter for ``fmt`` writing to ``out_path`` (stdout if None).

    Raises
    ------
    ValueError
        If ``fmt`` is not a known format.
    """
    try:
        reporter_cls = _REPORTERS[fmt.lower()]
    except KeyError:
        raise ValueError(f"Unknown report format '{fmt}'. Expected one of: {', '.join(REPORT_FORMATS)}")
    return reporter_cls(out_path)
