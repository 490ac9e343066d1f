"""
Persistence for storage credentials and app settings.

Non-secret fields and Fernet-encrypted secrets live in ``config.json``;
preferences such as demo mode live in ``settings.json``. Both files sit in
``~/.config/zipdrop`` unless ZIPDROP_CONFIG_DIR points elsewhere.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from shared.constants import (
    CONFIG_DIR_ENV,
    DEFAULT_CONFIG_DIR,
    DEMO_OUTPUT_DIRNAME,
    SETTINGS_FILENAME,
    STORAGE_CONFIG_FILENAME,
    TEMP_OUTPUT_DIRNAME
)
from shared.models import AppSettings, ConfigStatus, StorageConfig
from .errors import OperationError

logger = logging.getLogger(__name__)

# .env keys understood by import_env
ENV_KEY_MAP = {
    "access_key": "R2_ACCESS_KEY_ID",
    "secret_key": "R2_SECRET_ACCESS_KEY",
    "bucket_name": "R2_BUCKET_NAME",
    "account_id": "R2_ACCOUNT_ID",
    "public_url_base": "R2_PUBLIC_URL",
}


def mask(secret: str) -> str:
    """Mask a secret for display."""
    if not secret:
        return ""
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}****"


class ConfigStore:
    """Reads and writes the local config and settings files."""

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(os.getenv(CONFIG_DIR_ENV) or DEFAULT_CONFIG_DIR)
        self.config_dir = Path(config_dir).expanduser()

    @property
    def config_path(self) -> Path:
        return self.config_dir / STORAGE_CONFIG_FILENAME

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    def _ensure_dir(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OperationError(f"Failed to create config directory: {e}") from e

    def _read_json(self, path: Path, what: str) -> Dict:
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except OSError as e:
            raise OperationError(f"Failed to read {what}: {e}") from e
        except ValueError as e:
            raise OperationError(f"Failed to parse {what}: {e}") from e

    def _write_text(self, path: Path, text: str, what: str) -> None:
        self._ensure_dir()
        try:
            path.write_text(text)
        except OSError as e:
            raise OperationError(f"Failed to write {what}: {e}") from e

    # Storage config

    def save_storage_config(self, config: StorageConfig) -> None:
        """Write the config with encrypted secrets, readable only by the user."""
        self._write_text(self.config_path, config.to_json(), "config file")
        try:
            os.chmod(self.config_path, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.config_path)
        logger.info("Saved storage config for bucket %s", config.bucket_name)

    def load_storage_config(self) -> Optional[StorageConfig]:
        """
        Load the stored config.

        Returns:
            StorageConfig, or None if nothing is stored or a field is empty
        """
        if not self.config_path.exists():
            logger.debug("No config file found at %s", self.config_path)
            return None

        config = StorageConfig.from_dict(self._read_json(self.config_path, "config file"))
        if not config.is_complete():
            logger.debug("Stored config is incomplete, treating as not configured")
            return None
        return config

    def delete_storage_config(self) -> None:
        if self.config_path.exists():
            try:
                self.config_path.unlink()
            except OSError as e:
                raise OperationError(f"Failed to delete config: {e}") from e

    def import_env(self, env_path: Path) -> StorageConfig:
        """
        Build a StorageConfig from a .env file (R2_* keys).

        Keys missing from the file fall back to the process environment.
        The result is not saved.
        """
        env_path = Path(env_path).expanduser()
        if not env_path.exists():
            raise OperationError(f"Env file not found: {env_path}")

        env_vars = dotenv_values(env_path)
        values = {
            field_name: (env_vars.get(env_key) or os.getenv(env_key, "")).strip()
            for field_name, env_key in ENV_KEY_MAP.items()
        }
        return StorageConfig(**values)

    # Settings

    def load_settings(self) -> AppSettings:
        if not self.settings_path.exists():
            return AppSettings()
        return AppSettings.from_dict(self._read_json(self.settings_path, "settings"))

    def save_settings(self, settings: AppSettings) -> None:
        self._write_text(self.settings_path, json.dumps(settings.to_dict(), indent=2), "settings")

    def config_status(self) -> ConfigStatus:
        config = self.load_storage_config()
        return ConfigStatus(
            is_configured=config is not None,
            demo_mode=self.load_settings().demo_mode,
            bucket_name=config.bucket_name if config else None
        )


def demo_output_dir(settings: AppSettings) -> Path:
    """
    Directory that keeps demo-mode artifacts, created if missing.

    Uses the configured directory, else ~/Downloads/ZipDrop, else ~/ZipDrop.
    """
    if settings.demo_output_dir:
        target = Path(settings.demo_output_dir).expanduser()
    else:
        home = Path.home()
        downloads = home / "Downloads"
        base = downloads if downloads.is_dir() else home
        target = base / DEMO_OUTPUT_DIRNAME

    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OperationError(f"Failed to create demo directory: {e}") from e
    return target


def temp_output_dir() -> Path:
    """Scratch directory for artifacts that are deleted after upload."""
    return Path(tempfile.gettempdir()) / TEMP_OUTPUT_DIRNAME
