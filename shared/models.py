"""
Data models for artifacts, uploads, and stored configuration.

This module defines the value types passed between the validator, the
processor, the uploader and the drop pipeline.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional, Any
from enum import Enum
from pathlib import Path
import dataclasses
import json

from shared.constants import CLOUDFLARE_R2_ENDPOINT_TEMPLATE


class ProcessingStrategy(Enum):
    """How a file selection is turned into a single artifact."""
    ARCHIVE = "archive"
    IMAGE = "image"
    PASSTHROUGH = "passthrough"


@dataclass
class ProcessedArtifact:
    """
    The single file produced by the processing step.

    Attributes:
        output_path: Where the artifact was written
        original_size: Bytes read from the source files
        processed_size: Bytes of the artifact as written on disk
        file_type: Type tag (target image format, "archive", or the extension)
    """
    output_path: Path
    original_size: int
    processed_size: int
    file_type: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['output_path'] = str(self.output_path)
        return data


@dataclass
class UploadResult:
    """Public URL, object key and byte size of a finished upload."""
    url: str
    key: str
    size: int


@dataclass
class ObjectResponse:
    """Reply of an object store to a put, head or delete request."""
    status_code: int
    message: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class StorageConfig:
    """
    Credentials and addressing for the remote bucket.

    Never mutated by the core; every uploader call receives it explicitly.
    """
    access_key: str
    secret_key: str
    bucket_name: str
    account_id: str
    public_url_base: str

    @property
    def endpoint(self) -> str:
        return CLOUDFLARE_R2_ENDPOINT_TEMPLATE.format(account_id=self.account_id)

    def is_complete(self) -> bool:
        """True when no field is empty."""
        return all([
            self.access_key,
            self.secret_key,
            self.bucket_name,
            self.account_id,
            self.public_url_base
        ])

    def to_dict(self, encrypt: bool = True) -> Dict[str, Any]:
        """Convert config to dictionary, optionally encrypting credentials."""
        from shared.crypto import encrypt_secret

        data = asdict(self)
        data['is_encrypted'] = False

        if encrypt:
            data['access_key'] = encrypt_secret(self.access_key)
            data['secret_key'] = encrypt_secret(self.secret_key)
            data['is_encrypted'] = True

        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageConfig':
        """Create StorageConfig from dictionary, decrypting if necessary."""
        from shared.crypto import decrypt_secret

        field_names = {f.name for f in dataclasses.fields(cls)}
        filtered_data = {k: data.get(k) or "" for k in field_names}

        if data.get('is_encrypted', False):
            dec_access = decrypt_secret(filtered_data['access_key'])
            dec_secret = decrypt_secret(filtered_data['secret_key'])

            # Undecryptable secrets (config copied from another machine) are
            # dropped so the config reads as incomplete
            filtered_data['access_key'] = dec_access or ""
            filtered_data['secret_key'] = dec_secret or ""

        return cls(**filtered_data)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON with encrypted secrets."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'StorageConfig':
        """Deserialize from JSON."""
        return cls.from_dict(json.loads(json_str))


@dataclass
class AppSettings:
    """Local preferences. Demo mode is on until the user opts into uploads."""
    demo_mode: bool = True
    demo_output_dir: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppSettings':
        return cls(
            demo_mode=bool(data.get('demo_mode', True)),
            demo_output_dir=data.get('demo_output_dir') or None
        )


@dataclass
class DropResult:
    """
    Combined result of processing and (optionally) uploading a drop.

    In demo mode ``url`` is a file:// URL pointing at ``local_path``.
    """
    url: str
    original_size: int
    processed_size: int
    file_type: str
    is_demo: bool
    local_path: Optional[str] = None
    object_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConfigStatus:
    """Summary of what is configured, for status displays."""
    is_configured: bool
    demo_mode: bool
    bucket_name: Optional[str] = None
