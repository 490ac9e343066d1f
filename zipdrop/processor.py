"""
Artifact processing.

Turns a validated file selection into exactly one output file:

- multiple files are packed into a ZIP archive
- a single convertible image is re-encoded to WebP
- anything else (including a file that already is WebP) is copied unchanged

Every artifact is written to a temporary file next to its final path and
renamed into place only once the write has finished, so the output directory
never holds a truncated artifact.
"""

import logging
import os
import shutil
import uuid
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence

from PIL import Image, UnidentifiedImageError

from shared.constants import (
    ARCHIVE_NAME_PREFIX,
    ARCHIVE_TYPE_TAG,
    CONVERTIBLE_IMAGE_EXTENSIONS,
    DEFAULT_EXTENSION,
    SHORT_ID_LENGTH,
    TARGET_IMAGE_FORMAT,
    TARGET_IMAGE_QUALITY
)
from shared.models import ProcessedArtifact, ProcessingStrategy
from .errors import OperationError
from .validator import PathLike, file_extension, validate_files

logger = logging.getLogger(__name__)


def short_id() -> str:
    """8-character fragment of a random UUID, used to keep output names apart."""
    return str(uuid.uuid4())[:SHORT_ID_LENGTH]


def is_image(path: PathLike) -> bool:
    """True for extensions the processor re-encodes."""
    return file_extension(path) in CONVERTIBLE_IMAGE_EXTENSIONS


def is_target_format(path: PathLike) -> bool:
    return file_extension(path) == TARGET_IMAGE_FORMAT


@contextmanager
def atomic_output(final_path: Path) -> Iterator[Path]:
    """
    Yield a temporary path in the same directory as ``final_path``.

    On a clean exit the temporary file replaces ``final_path``; on any error it
    is removed and the exception propagates.
    """
    tmp_path = final_path.parent / f".{final_path.name}.{uuid.uuid4().hex}.part"
    # 0o666 so the artifact gets the usual umask-derived mode after the rename
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666)
    os.close(fd)
    try:
        yield tmp_path
        os.replace(tmp_path, final_path)
    except BaseException:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise


def _read_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError as e:
        raise OperationError(f"Failed to read output metadata: {e}") from e


class ArtifactProcessor:
    """Chooses and runs one processing strategy for a drop."""

    @staticmethod
    def choose_strategy(paths: Sequence[PathLike]) -> ProcessingStrategy:
        """
        Decide how a selection will be processed.

        Args:
            paths: Validated file paths

        Returns:
            ARCHIVE for two or more files, IMAGE for a single convertible
            image, PASSTHROUGH otherwise
        """
        if len(paths) > 1:
            return ProcessingStrategy.ARCHIVE

        path = paths[0]
        if is_image(path) and not is_target_format(path):
            return ProcessingStrategy.IMAGE
        return ProcessingStrategy.PASSTHROUGH

    @staticmethod
    def process(paths: Sequence[PathLike], output_dir: PathLike) -> ProcessedArtifact:
        """
        Validate a selection and produce its artifact in ``output_dir``.

        Args:
            paths: Ordered file paths (order becomes archive entry order)
            output_dir: Destination directory, created if missing

        Returns:
            ProcessedArtifact describing the written file

        Raises:
            ValidationError: If the selection breaks the drop policy
            OperationError: If reading, decoding or writing fails
        """
        validate_files(paths)

        out_dir = Path(output_dir)
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OperationError(f"Failed to create output directory: {e}") from e

        strategy = ArtifactProcessor.choose_strategy(paths)
        logger.debug("Processing %d file(s) with strategy %s", len(paths), strategy.value)

        if strategy is ProcessingStrategy.ARCHIVE:
            return ArtifactProcessor.create_archive(paths, out_dir)
        if strategy is ProcessingStrategy.IMAGE:
            return ArtifactProcessor.convert_image(paths[0], out_dir)
        return ArtifactProcessor.copy_file(paths[0], out_dir)

    @staticmethod
    def convert_image(input_path: PathLike, output_dir: Path) -> ProcessedArtifact:
        """Re-encode an image to WebP at a fixed quality."""
        source = Path(input_path)

        try:
            original_size = source.stat().st_size
        except OSError as e:
            raise OperationError(f"Failed to read file metadata: {e}") from e

        stem = source.stem or "image"
        output_path = output_dir / f"{stem}_{short_id()}.{TARGET_IMAGE_FORMAT}"

        try:
            with Image.open(source) as opened:
                opened.load()
                if opened.mode in ("RGB", "RGBA"):
                    img = opened.copy()
                else:
                    has_alpha = "A" in opened.getbands() or "transparency" in opened.info
                    img = opened.convert("RGBA" if has_alpha else "RGB")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise OperationError(f"Failed to open image: {e}") from e

        try:
            with atomic_output(output_path) as tmp_path:
                img.save(tmp_path, format=TARGET_IMAGE_FORMAT.upper(), quality=TARGET_IMAGE_QUALITY)
        except (OSError, ValueError) as e:
            raise OperationError(f"Failed to write {TARGET_IMAGE_FORMAT.upper()}: {e}") from e

        processed_size = _read_size(output_path)
        logger.info(
            "Converted %s to %s (%d -> %d bytes)",
            source.name, output_path.name, original_size, processed_size
        )

        return ProcessedArtifact(
            output_path=output_path,
            original_size=original_size,
            processed_size=processed_size,
            file_type=TARGET_IMAGE_FORMAT
        )

    @staticmethod
    def archive_entry_names(paths: Sequence[PathLike]) -> List[str]:
        """
        Base names used as archive entries, in input order.

        Directory components are dropped; a repeated name gets a " (n)" suffix
        so no entry is shadowed.
        """
        names: List[str] = []
        seen = set()
        for raw_path in paths:
            path = Path(raw_path)
            name = path.name or "file"
            candidate = name
            counter = 2
            while candidate in seen:
                candidate = f"{path.stem} ({counter}){path.suffix}"
                counter += 1
            seen.add(candidate)
            names.append(candidate)
        return names

    @staticmethod
    def create_archive(input_paths: Sequence[PathLike], output_dir: Path) -> ProcessedArtifact:
        """Pack every input into one DEFLATE-compressed ZIP archive."""
        output_path = output_dir / f"{ARCHIVE_NAME_PREFIX}_{short_id()}.zip"
        entry_names = ArtifactProcessor.archive_entry_names(input_paths)
        total_original_size = 0

        try:
            with atomic_output(output_path) as tmp_path:
                with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                    for raw_path, entry_name in zip(input_paths, entry_names):
                        try:
                            file_data = Path(raw_path).read_bytes()
                        except OSError as e:
                            raise OperationError(
                                f"Failed to read file {Path(raw_path).name}: {e}"
                            ) from e

                        total_original_size += len(file_data)
                        archive.writestr(entry_name, file_data)
        except OperationError:
            raise
        except (OSError, zipfile.BadZipFile) as e:
            raise OperationError(f"Failed to write zip archive: {e}") from e

        processed_size = _read_size(output_path)
        logger.info(
            "Created %s with %d entries (%d -> %d bytes)",
            output_path.name, len(entry_names), total_original_size, processed_size
        )

        return ProcessedArtifact(
            output_path=output_path,
            original_size=total_original_size,
            processed_size=processed_size,
            file_type=ARCHIVE_TYPE_TAG
        )

    @staticmethod
    def copy_file(input_path: PathLike, output_dir: Path) -> ProcessedArtifact:
        """Copy a file unchanged under a collision-free name."""
        source = Path(input_path)
        ext = file_extension(source) or DEFAULT_EXTENSION
        stem = source.stem or "file"
        output_path = output_dir / f"{stem}_{short_id()}.{ext}"

        try:
            original_size = source.stat().st_size
        except OSError as e:
            raise OperationError(f"Failed to read file metadata: {e}") from e

        try:
            with atomic_output(output_path) as tmp_path:
                shutil.copyfile(source, tmp_path)
        except OSError as e:
            raise OperationError(f"Failed to copy file: {e}") from e

        processed_size = _read_size(output_path)
        logger.info("Copied %s to %s", source.name, output_path.name)

        return ProcessedArtifact(
            output_path=output_path,
            original_size=original_size,
            processed_size=processed_size,
            file_type=ext
        )


def process_files(paths: Sequence[PathLike], output_dir: PathLike) -> ProcessedArtifact:
    """Validate ``paths`` and write their artifact into ``output_dir``."""
    return ArtifactProcessor.process(paths, output_dir)
