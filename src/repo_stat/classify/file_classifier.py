"""
Heuristics for classifying files and diff lines.

The classifier infers a coarse file type from the file name so that
diff lines carrying no meaning for that type (blank lines, comment-only
lines) can be ignored when two patches are compared loosely. It is
intentionally simple and deterministic so that it can be unit tested
without touching the file system.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath


FORMAT_C = "c"
FORMAT_SCRIPT = "script"
FORMAT_MARKUP = "markup"
FORMAT_TEXT = "text"
FORMAT_BINARY = "binary"
FORMAT_UNKNOWN = "unknown"

_C_LIKE = {
    ".c", ".h", ".cc", ".cpp", ".cxx", ".hh", ".hpp", ".hxx", ".java",
    ".kt", ".kts", ".js", ".jsx", ".ts", ".tsx", ".go", ".rs", ".cs",
    ".swift", ".m", ".mm", ".scala", ".dart", ".aidl", ".hal", ".proto",
    ".gradle", ".css", ".scss",
}
_SCRIPT = {
    ".py", ".sh", ".bash", ".rb", ".pl", ".pm", ".mk", ".cmake", ".yml",
    ".yaml", ".toml", ".cfg", ".conf", ".ini", ".bp", ".bzl", ".rc",
    ".te", ".properties",
}
_SCRIPT_NAMES = {"Makefile", "makefile", "GNUmakefile", "Dockerfile", "CMakeLists.txt", "BUILD"}
_MARKUP = {".xml", ".html", ".htm", ".xhtml", ".svg"}
_TEXT = {".md", ".rst", ".txt", ".adoc", ".csv", ".json"}
_BINARY = {
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tif",
    ".tiff", ".pdf", ".zip", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".jar",
    ".apk", ".aar", ".so", ".a", ".o", ".obj", ".dll", ".exe", ".bin",
    ".img", ".class", ".dex", ".pyc", ".ttf", ".otf", ".woff", ".woff2",
    ".mp3", ".mp4", ".wav", ".ogg", ".avi", ".mov", ".keystore", ".jks",
    ".der", ".pem", ".db", ".sqlite",
}

_DIFF_PREFIX_RE = re.compile(r"^(\+\+\+|---)\s+")


def _clean_path(path: str) -> PurePosixPath:
    # Accept raw "+++ b/foo.c" header lines as well as plain paths.
    path = _DIFF_PREFIX_RE.sub("", path.strip())
    if path.startswith(("a/", "b/")):
        path = path[2:]
    return PurePosixPath(path.split("\t", 1)[0])


def classify_file(path: str) -> str:
    """Return the file type tag for ``path``.

    Parameters
    ----------
    path : str
        A file path. A unified diff header line such as
        ``+++ b/src/main.c`` is accepted as well.

    Returns
    -------
    str
        One of ``c``, ``script``, ``markup``, ``text``, ``binary`` or
        ``unknown``.
    """
    clean = _clean_path(path)
    ext = clean.suffix.lower()

    if ext in _BINARY:
        return FORMAT_BINARY
    if ext in _C_LIKE:
        return FORMAT_C
    if ext in _SCRIPT or clean.name in _SCRIPT_NAMES:
        return FORMAT_SCRIPT
    if ext in _MARKUP:
        return FORMAT_MARKUP
    if ext in _TEXT:
        return FORMAT_TEXT
    return FORMAT_UNKNOWN


def is_binary_file(path: str) -> bool:
    """Return True if ``path`` names a file that should not be diffed as text."""
    return classify_file(path) == FORMAT_BINARY


def is_noise_line(line: str, file_type: str) -> bool:
    """Return True if ``line`` carries no meaning for ``file_type``.

    Blank lines are noise for every type. Comment-only lines are noise
    for source and markup files.
    """
    stripped = re.sub(r"\s", "", line or "")
    if not stripped:
        return True

    if file_type == FORMAT_C:
        # a block comment continuation is "*" alone or "* text"; "*p = 1;" is code
        text = line.strip()
        return (
            text.startswith(("//", "/*", "*/", "* "))
            or text == "*"
            or stripped in {"{", "}", "};"}
        )
    if file_type == FORMAT_SCRIPT:
        return stripped.startswith("#")
    if file_type == FORMAT_MARKUP:
        return stripped.startswith("<!--") or stripped.endswith("-->")
    return False
