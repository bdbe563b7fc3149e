"""Shared pytest fixtures for Lumina tests."""

import base64
import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from lumina.api.main import create_app
from lumina.core.artifact_store import ArtifactStore
from lumina.core.config import LuminaConfig
from lumina.core.gateway import GenerationGateway
from lumina.core.models import GeneratedArtifact
from lumina.core.session import StudioSession
from lumina.core.storage import LocalStorage


def make_png_data_uri(size: tuple[int, int] = (8, 8), color=(255, 0, 0, 255)) -> str:
    """Encode a solid RGBA square as a PNG data URI."""
    buffer = io.BytesIO()
    Image.new("RGBA", size, color=color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> LuminaConfig:
    """Create a test configuration with temporary directories.

    Polling is shortened so motion tests finish instantly.
    """
    return LuminaConfig(
        _env_file=None,
        gemini_api_key="test-key",
        data_dir=temp_dir / "data",
        media_dir=temp_dir / "media",
        motion_poll_interval=0.001,
        motion_poll_max_attempts=5,
        motion_timeout=60.0,
    )


@pytest.fixture
def png_data_uri() -> str:
    return make_png_data_uri()


@pytest.fixture
def upscaled_data_uri() -> str:
    return make_png_data_uri(size=(16, 16), color=(0, 0, 255, 255))


@pytest.fixture
def storage(temp_dir: Path) -> LocalStorage:
    return LocalStorage(temp_dir / "storage")


@pytest.fixture
def artifact_store(storage: LocalStorage) -> ArtifactStore:
    return ArtifactStore(storage)


@pytest.fixture
def sample_artifact(png_data_uri: str) -> GeneratedArtifact:
    return GeneratedArtifact(
        id="abc123xyz",
        url=png_data_uri,
        prompt="a cat, in the style of Cyberpunk, highly detailed, professional composition",
        original_prompt="a cat",
        timestamp=1_700_000_000_000,
        aspect_ratio="16:9",
    )


@pytest.fixture
def fake_gateway(png_data_uri: str, upscaled_data_uri: str) -> MagicMock:
    """A gateway whose four operations succeed immediately.

    Individual tests override ``return_value`` / ``side_effect`` as needed.
    """
    gateway = MagicMock(spec=GenerationGateway)
    gateway.has_credentials = True
    gateway.enhance = AsyncMock(return_value="a majestic cat bathed in neon light")
    gateway.generate = AsyncMock(return_value=png_data_uri)
    gateway.upscale = AsyncMock(return_value=upscaled_data_uri)
    gateway.animate = AsyncMock(return_value="/media/motion_test.mp4")
    return gateway


@pytest.fixture
def credentials() -> MagicMock:
    """Credential check reporting a selected key."""
    check = MagicMock()
    check.has_selected_key = AsyncMock(return_value=True)
    check.open_select_key = AsyncMock(return_value=None)
    return check


@pytest.fixture
def session(fake_gateway: MagicMock, credentials: MagicMock) -> StudioSession:
    """Session with the cat prompt filled in."""
    return StudioSession(
        gateway=fake_gateway,
        credentials=credentials,
        prompt="a cat",
        style="Cyberpunk",
        aspect_ratio="16:9",
    )


@pytest.fixture
def test_client(
    test_config: LuminaConfig, fake_gateway: MagicMock, credentials: MagicMock
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient over an app wired to the fake gateway.

    Entering the client runs the lifespan handler, so the stores and the
    session registry are created under ``test_config.data_dir``.
    """
    app = create_app(test_config, gateway=fake_gateway, credentials=credentials)
    with TestClient(app) as client:
        yield client
