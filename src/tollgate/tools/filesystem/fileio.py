"""File reading and atomic writing shared by the file tools."""

import os
import tempfile
from pathlib import Path

from tollgate.errors import ExecutionError, ToolValidationError


def read_text(path: Path, encoding: str = "utf-8") -> str:
    """Read a text file, converting failures into tool errors.

    Args:
        path: File to read
        encoding: Text encoding

    Returns:
        str: File content

    Raises:
        ToolValidationError: If the file is missing, not a file, or not text
        ExecutionError: On other I/O failures
    """
    if not path.exists():
        raise ToolValidationError(f"File does not exist: {path}")
    if not path.is_file():
        raise ToolValidationError(f"Path is not a file: {path}")

    try:
        # newline="" keeps CRLF so the file's line endings can be restored
        with open(path, encoding=encoding, newline="") as f:
            return f.read()
    except UnicodeDecodeError:
        raise ToolValidationError(
            f"Failed to decode file with encoding '{encoding}'. "
            "File may be binary or use a different encoding."
        )
    except LookupError:
        raise ToolValidationError(f"Unknown encoding: {encoding!r}")
    except PermissionError:
        raise ToolValidationError(f"Permission denied: {path}")
    except OSError as e:
        raise ExecutionError(f"Failed to read file: {e}") from e


def atomic_write(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write a file through a temporary sibling and an atomic rename.

    The target either keeps its old content or has the complete new
    content; a partial write is never visible.

    Args:
        path: File to write (parent directories are created)
        content: Full new content
        encoding: Text encoding

    Raises:
        ExecutionError: If the write fails
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
    except OSError as e:
        raise ExecutionError(f"Failed to write {path}: {e}") from e

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(content)
        if path.exists():
            os.chmod(temp_path, path.stat().st_mode & 0o7777)
        os.replace(temp_path, path)
    except OSError as e:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise ExecutionError(f"Failed to write {path}: {e}") from e


def uses_crlf(content: str) -> bool:
    """Whether every line break in content is a Windows line ending."""
    return "\r\n" in content and content.count("\r\n") == content.count("\n")
