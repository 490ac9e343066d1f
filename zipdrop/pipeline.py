"""
The drop workflow: validate, process, then keep or publish the artifact.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from shared.models import AppSettings, DropResult, StorageConfig
from .config_store import demo_output_dir, temp_output_dir
from .errors import NotConfiguredError, ValidationError
from .processor import ArtifactProcessor
from .uploader import StorageUploader
from .validator import PathLike

logger = logging.getLogger(__name__)


@dataclass
class DropContext:
    """
    Everything one drop depends on, passed in explicitly.

    Attributes:
        settings: Mode flag and demo directory
        storage_config: Bucket credentials (required in remote mode)
        uploader: Upload client
        output_dir: Overrides the mode's default output directory
    """
    settings: AppSettings
    storage_config: Optional[StorageConfig] = None
    uploader: StorageUploader = field(default_factory=StorageUploader)
    output_dir: Optional[Path] = None


async def process_and_upload(paths: Sequence[PathLike], context: DropContext) -> DropResult:
    """
    Turn a drop into an artifact and keep it locally or upload it.

    Processing is blocking and runs in the default executor. In remote mode
    the local artifact is removed after a successful upload; a failed upload
    leaves it in the scratch directory and re-raises.

    Args:
        paths: Dropped file paths
        context: Settings, credentials and uploader for this drop

    Returns:
        DropResult with a file:// URL (demo) or the public URL (remote)
    """
    if not paths:
        raise ValidationError("No files provided")

    is_demo = context.settings.demo_mode
    logger.debug("Drop of %d file(s), demo_mode=%s", len(paths), is_demo)

    if not is_demo and context.storage_config is None:
        raise NotConfiguredError(
            "R2 not configured. Please set up your R2 credentials or enable demo mode."
        )

    if context.output_dir is not None:
        output_dir = Path(context.output_dir)
    elif is_demo:
        output_dir = demo_output_dir(context.settings)
    else:
        output_dir = temp_output_dir()

    loop = asyncio.get_running_loop()
    artifact = await loop.run_in_executor(
        None, ArtifactProcessor.process, list(paths), output_dir
    )
    logger.info("Processing complete: %s", artifact.output_path)

    if is_demo:
        local_path = str(artifact.output_path.resolve())
        return DropResult(
            url=f"file://{local_path}",
            original_size=artifact.original_size,
            processed_size=artifact.processed_size,
            file_type=artifact.file_type,
            is_demo=True,
            local_path=local_path
        )

    upload_result = await context.uploader.upload(artifact.output_path, context.storage_config)

    try:
        artifact.output_path.unlink()
    except OSError as e:
        logger.warning("Could not remove temporary artifact %s: %s", artifact.output_path, e)

    return DropResult(
        url=upload_result.url,
        original_size=artifact.original_size,
        processed_size=artifact.processed_size,
        file_type=artifact.file_type,
        is_demo=False,
        object_key=upload_result.key
    )
