"""Lumina Studio - prompt-to-image creative studio backed by Gemini."""

__version__ = "0.3.0"

from lumina.core.config import LuminaConfig, config
from lumina.core.gateway import GenerationGateway
from lumina.core.session import StudioSession

__all__ = [
    "GenerationGateway",
    "LuminaConfig",
    "StudioSession",
    "config",
]
