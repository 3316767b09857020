"""Filesystem scope for file tools.

File tools may only touch paths inside the working directory or one of the
additional directories granted at runtime. The set of granted directories
is mutable; adding one validates it first.
"""

import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DirectoryValidationResult(str, Enum):
    """Outcome of validating a directory before granting it."""

    SUCCESS = "success"
    PATH_NOT_FOUND = "path_not_found"
    NOT_A_DIRECTORY = "not_a_directory"
    ALREADY_IN_SCOPE = "already_in_scope"


class DirectoryValidation(BaseModel):
    """Result of ``validate_directory_path``."""

    result_type: DirectoryValidationResult
    directory: str
    absolute_path: Path | None = None
    covering_directory: Path | None = None

    @property
    def ok(self) -> bool:
        return self.result_type == DirectoryValidationResult.SUCCESS

    def format_message(self) -> str:
        """Human-readable message for this outcome."""
        if self.result_type == DirectoryValidationResult.SUCCESS:
            return f"Success: added {self.absolute_path} to the permitted directories"
        if self.result_type == DirectoryValidationResult.PATH_NOT_FOUND:
            return f"Path not found: {self.directory}"
        if self.result_type == DirectoryValidationResult.NOT_A_DIRECTORY:
            return f"Not a directory: {self.directory}"
        return (
            f"{self.absolute_path} is already accessible "
            f"through {self.covering_directory}"
        )


def _is_within(path: Path, directory: Path) -> bool:
    return path == directory or directory in path.parents


def validate_directory_path(directory: str | Path, existing: list[Path]) -> DirectoryValidation:
    """Check that a directory exists and is not already covered.

    Args:
        directory: Directory to validate (``~`` is expanded)
        existing: Directories already in scope

    Returns:
        DirectoryValidation: Outcome with the resolved path
    """
    raw = str(directory)
    if not raw.strip():
        return DirectoryValidation(
            result_type=DirectoryValidationResult.PATH_NOT_FOUND,
            directory=raw,
        )

    path = Path(raw).expanduser().resolve()
    if not path.exists():
        return DirectoryValidation(
            result_type=DirectoryValidationResult.PATH_NOT_FOUND,
            directory=raw,
            absolute_path=path,
        )
    if not path.is_dir():
        return DirectoryValidation(
            result_type=DirectoryValidationResult.NOT_A_DIRECTORY,
            directory=raw,
            absolute_path=path,
        )

    for existing_dir in existing:
        if _is_within(path, existing_dir):
            return DirectoryValidation(
                result_type=DirectoryValidationResult.ALREADY_IN_SCOPE,
                directory=raw,
                absolute_path=path,
                covering_directory=existing_dir,
            )

    return DirectoryValidation(
        result_type=DirectoryValidationResult.SUCCESS,
        directory=raw,
        absolute_path=path,
    )


class PathScope:
    """Working directory plus additional granted directories.

    Example:
        >>> scope = PathScope(Path("/work/project"))
        >>> scope.is_path_allowed(Path("/work/project/src/app.py"))
        True
        >>> scope.is_path_allowed(Path("/etc/passwd"))
        False
    """

    def __init__(self, working_dir: Path, additional: list[Path] | None = None):
        """Initialize the scope.

        Args:
            working_dir: Working directory; always in scope
            additional: Directories granted on top of the working directory
        """
        self.working_dir = Path(working_dir).expanduser().resolve()
        self._additional: list[Path] = []
        for directory in additional or []:
            resolved = Path(directory).expanduser().resolve()
            if resolved not in self._additional:
                self._additional.append(resolved)

    @property
    def directories(self) -> list[Path]:
        """All directories in scope, working directory first."""
        return [self.working_dir, *self._additional]

    @property
    def additional_directories(self) -> list[Path]:
        """Directories granted besides the working directory."""
        return list(self._additional)

    def resolve(self, path: str | Path) -> Path:
        """Resolve a tool path against the working directory.

        Args:
            path: Absolute path, or a path relative to the working directory

        Returns:
            Path: Absolute, symlink-resolved path
        """
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.working_dir / candidate
        return candidate.resolve()

    def display_path(self, path: Path) -> str:
        """Path relative to the working directory when inside it, else absolute."""
        if _is_within(path, self.working_dir) and path != self.working_dir:
            return str(path.relative_to(self.working_dir))
        return str(path)

    def is_path_allowed(self, path: str | Path) -> bool:
        """Check whether a path lies inside any directory in scope.

        Args:
            path: Path to check (relative paths resolve against the working directory)

        Returns:
            bool: True if file tools may touch this path
        """
        resolved = self.resolve(path)
        return any(_is_within(resolved, directory) for directory in self.directories)

    def add_directory(self, directory: str | Path) -> DirectoryValidation:
        """Validate and grant an additional directory.

        Args:
            directory: Directory to grant

        Returns:
            DirectoryValidation: Outcome; the scope only changes on success
        """
        validation = validate_directory_path(directory, self.directories)
        if validation.ok and validation.absolute_path is not None:
            self._additional.append(validation.absolute_path)
            logger.info(f"Granted additional directory: {validation.absolute_path}")
        else:
            logger.debug(f"Rejected directory {directory}: {validation.result_type.value}")
        return validation

    def remove_directory(self, directory: str | Path) -> bool:
        """Revoke a previously granted directory.

        The working directory cannot be removed.

        Args:
            directory: Directory to revoke

        Returns:
            bool: True if the directory was in the additional set
        """
        resolved = Path(directory).expanduser().resolve()
        if resolved in self._additional:
            self._additional.remove(resolved)
            logger.info(f"Revoked additional directory: {resolved}")
            return True
        return False

    def __repr__(self) -> str:
        return f"<PathScope: {', '.join(str(d) for d in self.directories)}>"
