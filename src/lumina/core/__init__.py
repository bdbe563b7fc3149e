"""Core functionality for Lumina Studio.

This package holds everything except the HTTP surface:

- **LuminaConfig**: Configuration management using Pydantic Settings
- **GenerationGateway**: Async facade over the Gemini text, image and video models
- **StudioSession**: Per-tab state machine for enhance, generate, upscale and animate
- **ArtifactStore**: Persisted history of saved images, most recent first
- **AccountStore**: Local stand-in for sign-in, no verification
- **ExportEncoder**: Pillow re-encoding for PNG, JPEG, WEBP and BMP downloads

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with LUMINA_ in .env files

2. **Provider Layer** (gateway.py, polling.py, credentials.py):
   - One coroutine per provider capability
   - Bounded polling for long-running video jobs

3. **Session Layer** (session.py):
   - Independent in-flight state per operation axis
   - Stale results dropped by sequence and artifact version

4. **Persistence Layer** (storage.py, artifact_store.py, accounts.py):
   - One JSON document per namespaced key
   - Synchronous write after every mutation

Usage Example
-------------
    from lumina.core import GenerationGateway, SessionRegistry, config

    registry = SessionRegistry(GenerationGateway(config))
    session = registry.create(prompt="a cat", style="Cyberpunk", aspect_ratio="16:9")
    outcome = await session.generate()
"""

from lumina.core.accounts import AccountStore
from lumina.core.artifact_store import ArtifactStore
from lumina.core.config import LuminaConfig, config
from lumina.core.exporter import ExportEncoder
from lumina.core.gateway import GenerationGateway
from lumina.core.models import Account, GeneratedArtifact, ImageFormat
from lumina.core.session import SessionRegistry, StudioSession
from lumina.core.storage import LocalStorage

__all__ = [
    "Account",
    "AccountStore",
    "ArtifactStore",
    "ExportEncoder",
    "GeneratedArtifact",
    "GenerationGateway",
    "ImageFormat",
    "LocalStorage",
    "LuminaConfig",
    "SessionRegistry",
    "StudioSession",
    "config",
]
