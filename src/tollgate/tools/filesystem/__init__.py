"""Filesystem tools for file operations.

This module provides tools for:
- Reading file contents
- Writing (creating or overwriting) files
- Editing files through the matching cascade
"""

from tollgate.tools.filesystem.edit_file import EditFileParams, EditFileTool
from tollgate.tools.filesystem.read_file import ReadFileParams, ReadFileTool
from tollgate.tools.filesystem.write_file import WriteFileParams, WriteFileTool

__all__ = [
    # Tools
    "ReadFileTool",
    "WriteFileTool",
    "EditFileTool",
    # Parameters
    "ReadFileParams",
    "WriteFileParams",
    "EditFileParams",
]
