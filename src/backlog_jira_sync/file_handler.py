"""File handler module: encoding-aware reads and atomic writes.

Provides the file I/O used by the Backlog.md task client.  Task files
written by other tools are not guaranteed to be UTF-8, so reads detect
the encoding and writes keep it.
"""

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(path: Path, content: str, encoding: str = "utf-8") -> int:
    """Write content to a file atomically, creating parent directories.

    The content goes to a temp file in the same directory which then
    replaces *path*, so readers never see a half-written task file.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)
