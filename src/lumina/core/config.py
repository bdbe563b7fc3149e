"""Configuration management for Lumina Studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the LUMINA_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (LUMINA_* prefix)
2. .env file in the project root
3. Default values defined in LuminaConfig

Example .env file:
    LUMINA_GEMINI_API_KEY=...
    LUMINA_IMAGE_MODEL=gemini-2.5-flash-image
    LUMINA_MOTION_POLL_INTERVAL=5
    LUMINA_DATA_DIR=data

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from lumina.core.config import config

    print(config.image_model)
    print(config.data_dir)

Credential Resolution
---------------------
The Gemini API key is read from ``LUMINA_GEMINI_API_KEY``.  When that is
unset, the SDK's own variables ``GEMINI_API_KEY`` and ``GOOGLE_API_KEY`` are
consulted, in that order (see :meth:`LuminaConfig.resolved_api_key`).

Motion Polling
--------------
Video generation is a long-running provider job.  The job is polled every
``motion_poll_interval`` seconds and abandoned after
``motion_poll_max_attempts`` polls or ``motion_timeout`` seconds, whichever
comes first.
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LuminaConfig(BaseSettings):
    """Main configuration for Lumina Studio.

    Values are loaded from environment variables with the LUMINA_ prefix,
    with fallback to defaults defined here.  All Path fields are created if
    they don't exist.

    Attributes
    ----------
    Provider Settings:
        gemini_api_key : str | None
            API key for the Gemini provider
        text_model : str
            Model used for prompt enhancement
        image_model : str
            Model used for image generation and upscaling
        video_model : str
            Model used for motion generation

    Enhancement Settings:
        enhance_temperature : float
            Sampling temperature for prompt enhancement
        enhance_max_output_tokens : int
            Upper bound on enhanced prompt length

    Motion Settings:
        video_resolution : Literal["720p", "1080p"]
            Resolution requested for generated videos
        motion_poll_interval : float
            Seconds between job status polls
        motion_poll_max_attempts : int
            Maximum number of polls before giving up
        motion_timeout : float
            Wall-clock deadline for a motion job in seconds
        media_max_videos : int
            Motion videos kept in media_dir before the oldest are deleted

    Paths:
        data_dir : Path
            Directory holding the namespaced local storage files
        media_dir : Path
            Directory for materialized videos, served at /media

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        session_ttl : float
            Idle seconds before a studio session is evicted
        max_sessions : int
            Maximum number of open studio sessions
        cors_origins : list[str]
            Origins allowed to call the API from a browser
        log_level : str
            Root logging level used by the CLI entry point
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LUMINA_",
        case_sensitive=False,
    )

    # Provider settings
    gemini_api_key: str | None = Field(
        default=None,
        description="API key for the Gemini provider",
    )
    text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model used to enhance prompts",
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Model used to generate and upscale images",
    )
    video_model: str = Field(
        default="veo-3.1-fast-generate-preview",
        description="Model used to animate images into video",
    )

    # Enhancement settings
    enhance_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    enhance_max_output_tokens: int = Field(default=200, ge=1)

    # Motion settings
    video_resolution: Literal["720p", "1080p"] = Field(
        default="720p",
        description="Resolution requested for generated videos",
    )
    motion_poll_interval: float = Field(
        default=5.0,
        description="Seconds between motion job polls",
        gt=0.0,
    )
    motion_poll_max_attempts: int = Field(
        default=120,
        description="Maximum number of motion job polls",
        ge=1,
    )
    motion_timeout: float = Field(
        default=900.0,
        description="Wall-clock deadline for a motion job (seconds)",
        gt=0.0,
    )
    media_max_videos: int = Field(
        default=200,
        description="Motion videos kept in media_dir; older ones are deleted",
        ge=1,
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for local storage files",
    )
    media_dir: Path = Field(
        default=Path("media"),
        description="Directory for materialized videos",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    session_ttl: float = Field(
        default=3600.0,
        description="Idle seconds before a studio session is evicted",
        gt=0.0,
    )
    max_sessions: int = Field(
        default=100,
        description="Maximum number of open studio sessions",
        ge=1,
    )
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.media_dir.mkdir(parents=True, exist_ok=True)

    def resolved_api_key(self) -> str | None:
        """Return the configured API key, falling back to the SDK variables."""
        return (
            self.gemini_api_key
            or os.getenv("GEMINI_API_KEY")
            or os.getenv("GOOGLE_API_KEY")
        )


# Global configuration instance
# Loaded from environment variables (LUMINA_* prefix) and .env file.
config = LuminaConfig()
