"""
Pytest configuration for ZipDrop tests
"""

import pytest
import tempfile
from pathlib import Path

from PIL import Image

from shared.models import StorageConfig


@pytest.fixture
def temp_dir():
    """Temporary directory for test inputs"""
    with tempfile.TemporaryDirectory() as tmpdirname:
        yield Path(tmpdirname)


@pytest.fixture
def output_dir(temp_dir):
    """Output directory that does not exist yet"""
    return temp_dir / "out"


@pytest.fixture
def make_file(temp_dir):
    """Create a file under temp_dir with the given content"""
    def _make(name: str, content: bytes = b"hello world") -> Path:
        path = temp_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make


@pytest.fixture
def make_image(temp_dir):
    """Create a small gradient image in the given format"""
    def _make(name: str, fmt: str, mode: str = "RGB", size=(64, 48)) -> Path:
        path = temp_dir / name
        img = Image.new(mode, size)
        if mode in ("RGB", "RGBA"):
            for x in range(size[0]):
                for y in range(size[1]):
                    pixel = (x * 4 % 256, y * 5 % 256, 128)
                    img.putpixel((x, y), pixel + (200,) if mode == "RGBA" else pixel)
        img.save(path, format=fmt)
        return path
    return _make


@pytest.fixture
def storage_config():
    return StorageConfig(
        access_key="AKIAEXAMPLEKEY",
        secret_key="secret-example-value",
        bucket_name="drops",
        account_id="abc123",
        public_url_base="https://cdn.example.com/"
    )


@pytest.fixture
def config_dir(temp_dir, monkeypatch):
    """Isolated config directory for the config store"""
    path = temp_dir / "config"
    monkeypatch.setenv("ZIPDROP_CONFIG_DIR", str(path))
    return path
