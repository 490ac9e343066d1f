"""
File selection validation.

Enforces the count, size and type policy on a dropped selection before any
file is read or transformed. Only filesystem metadata is touched.
"""

import os
from pathlib import Path
from typing import Optional, Sequence, Union

from shared.constants import (
    ALLOWED_EXTENSIONS,
    MAX_FILES,
    MAX_SINGLE_FILE_SIZE,
    MAX_TOTAL_SIZE
)
from .errors import ValidationError

PathLike = Union[str, os.PathLike]

BYTES_PER_MB = 1024.0 * 1024.0


def file_extension(path: PathLike) -> Optional[str]:
    """Lower-cased extension without the dot, or None if the file has none."""
    suffix = Path(path).suffix
    if not suffix or suffix == ".":
        return None
    return suffix[1:].lower()


class FileValidator:
    """Checks a file selection against the fixed drop policy."""

    @staticmethod
    def is_allowed_extension(ext: Optional[str]) -> bool:
        """
        Check an extension against the allow-list.

        Files without an extension are accepted and handled as opaque binary.
        """
        if ext is None:
            return True
        return ext.lower() in ALLOWED_EXTENSIONS

    @staticmethod
    def validate(paths: Sequence[PathLike]) -> None:
        """
        Validate a selection, stopping at the first problem.

        Args:
            paths: Ordered file paths

        Raises:
            ValidationError: Describing the first failed check
        """
        if not paths:
            raise ValidationError("No files provided")

        if len(paths) > MAX_FILES:
            raise ValidationError(f"Too many files. Maximum is {MAX_FILES} files.")

        total_size = 0

        for raw_path in paths:
            path = Path(raw_path)
            display = str(path)

            if not path.exists():
                raise ValidationError(f"File not found: {display}", file=display)

            if path.is_dir():
                raise ValidationError(
                    "Directories are not supported. Please zip the folder first.",
                    file=display
                )

            if not path.is_file():
                raise ValidationError(f"Not a regular file: {display}", file=display)

            try:
                file_size = path.stat().st_size
            except OSError as e:
                raise ValidationError(f"Cannot read file: {e}", file=display) from e

            if file_size > MAX_SINGLE_FILE_SIZE:
                raise ValidationError(
                    f"\"{path.name or 'file'}\" is too large ({file_size / BYTES_PER_MB:.1f} MB). "
                    f"Maximum file size is {MAX_SINGLE_FILE_SIZE // (1024 * 1024)} MB.",
                    file=display
                )

            total_size += file_size

            ext = file_extension(path)
            if not FileValidator.is_allowed_extension(ext):
                raise ValidationError(
                    f"Unsupported file type: .{ext} ({path.name})",
                    file=display
                )

        if total_size > MAX_TOTAL_SIZE:
            raise ValidationError(
                f"Total size ({total_size / BYTES_PER_MB:.1f} MB) exceeds 1 GB limit."
            )


def validate_files(paths: Sequence[PathLike]) -> None:
    """Validate ``paths``; raises ValidationError on the first failed check."""
    FileValidator.validate(paths)
