"""Generation gateway over the Gemini provider.

This module provides :class:`GenerationGateway`, the single point of contact
with the remote generative service.  It exposes the four studio operations
as coroutines on top of the ``google-genai`` async client (``client.aio``):

- **enhance** — rewrite a short prompt into a detailed art prompt.  Best
  effort: any failure returns the prompt unchanged.
- **generate** — text-to-image at a requested aspect ratio, optionally
  steered by a named style.
- **upscale** — image-to-image detail enhancement.  Non-destructive: when
  the provider returns no image the original reference is returned.
- **animate** — submit a Veo image-to-video job, poll it to completion with
  a deadline, download the result and materialise it under the media
  directory.

The gateway holds no per-call state.  Every operation can be retried by
calling it again; nothing is deduplicated on the provider side, so a retry
is a brand-new generation.

Usage
-----
::

    from lumina.core.config import config
    from lumina.core.gateway import GenerationGateway

    gateway = GenerationGateway(config)
    url = await gateway.generate("a cat", "Cyberpunk", "16:9")
    video = await gateway.animate(url, "a cat", "16:9")
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from google import genai
from google.genai import types

from .config import LuminaConfig
from .errors import (
    EnhancementError,
    GenerationError,
    MotionError,
    MotionTimeoutError,
    UpscaleError,
)
from .media import parse_data_uri, to_data_uri
from .models import NO_STYLE, new_id
from .polling import PollTimeoutError, poll_until

logger = logging.getLogger(__name__)

ENHANCE_INSTRUCTION = (
    "Transform this simple image prompt into a detailed, professional AI art prompt "
    "for high-quality results. Focus on lighting, texture, artistic style, and "
    'composition. Keep it concise. Original prompt: "{prompt}"'
)

STYLE_SUFFIX = ", in the style of {style}, highly detailed, professional composition"

UPSCALE_INSTRUCTION = (
    "Increase resolution, enhance details, and sharpen this image significantly "
    "while maintaining the original subject and composition."
)

MOTION_PROMPT = "Add cinematic motion and subtle animation to this scene: {prompt}"

# Veo renders landscape or portrait only.  Square and 4:3 requests become
# landscape; 3:4 becomes portrait.
VIDEO_ASPECT_RATIOS: dict[str, str] = {
    "1:1": "16:9",
    "16:9": "16:9",
    "4:3": "16:9",
    "9:16": "9:16",
    "3:4": "9:16",
}


def effective_prompt(prompt: str, style: str) -> str:
    """Append the style suffix to *prompt* unless *style* is ``"None"``."""
    if not style or style == NO_STYLE:
        return prompt
    return prompt + STYLE_SUFFIX.format(style=style)


def video_aspect_ratio(aspect_ratio: str) -> str:
    """Map an image aspect ratio onto one the video model supports."""
    return VIDEO_ASPECT_RATIOS.get(aspect_ratio, "16:9")


def first_inline_image(response: Any) -> str | None:
    """Return the first inline image part of a response as a data URI.

    Args:
        response: A ``GenerateContentResponse``.

    Returns:
        ``data:`` URI, or None when the response carries no image.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None

    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return to_data_uri(inline.mime_type or "image/png", inline.data)

    return None


class GenerationGateway:
    """Async facade over the provider's text, image and video capabilities.

    Attributes:
        _config (LuminaConfig):
            Model names, enhancement settings and motion polling limits.
        _client:
            ``genai.Client`` created lazily on first use, or injected.
    """

    def __init__(self, config: LuminaConfig, client: genai.Client | None = None) -> None:
        self._config = config
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            logger.info("Creating Gemini client")
            self._client = genai.Client(api_key=self._config.resolved_api_key())
        return self._client

    @property
    def has_credentials(self) -> bool:
        return self._client is not None or bool(self._config.resolved_api_key())

    # ------------------------------------------------------------------
    # Enhance
    # ------------------------------------------------------------------

    async def enhance_or_raise(self, prompt: str) -> str:
        """Rewrite *prompt* into a richer art prompt.

        Raises:
            EnhancementError: If the request fails or returns no text.
        """
        try:
            response = await self.client.aio.models.generate_content(
                model=self._config.text_model,
                contents=ENHANCE_INSTRUCTION.format(prompt=prompt),
                config=types.GenerateContentConfig(
                    temperature=self._config.enhance_temperature,
                    max_output_tokens=self._config.enhance_max_output_tokens,
                ),
            )
            enhanced = (response.text or "").strip()
        except Exception as e:
            raise EnhancementError(f"Could not enhance the prompt: {e}") from e

        if not enhanced:
            raise EnhancementError("Enhancement returned no text")

        return enhanced

    async def enhance(self, prompt: str) -> str:
        """Best-effort :meth:`enhance_or_raise`.

        Never raises: on any failure the original prompt is returned unchanged.
        """
        try:
            return await self.enhance_or_raise(prompt)
        except EnhancementError as e:
            logger.warning(f"{e}; keeping original prompt")
            return prompt

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    async def generate(self, prompt: str, style: str, aspect_ratio: str) -> str:
        """Generate one image and return it as a data URI.

        Raises:
            GenerationError: If the request fails or no image is returned.
        """
        final_prompt = effective_prompt(prompt, style)
        logger.info(f"Generating image ({aspect_ratio}, style={style})")

        try:
            response = await self.client.aio.models.generate_content(
                model=self._config.image_model,
                contents=final_prompt,
                config=types.GenerateContentConfig(
                    image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
                ),
            )
        except Exception as e:
            logger.error(f"Image generation request failed: {e}", exc_info=True)
            raise GenerationError("Generation failed. Please try again.") from e

        url = first_inline_image(response)
        if url is None:
            raise GenerationError("No image was generated")

        return url

    # ------------------------------------------------------------------
    # Upscale
    # ------------------------------------------------------------------

    async def upscale(self, image_url: str) -> str:
        """Ask the image model for a sharper, more detailed version.

        Returns:
            The new data URI, or *image_url* itself when the provider
            answers without an image.

        Raises:
            UpscaleError: If the source cannot be decoded or the request fails.
        """
        try:
            source = parse_data_uri(image_url)
        except ValueError as e:
            raise UpscaleError(f"Cannot upscale this image: {e}") from e

        try:
            response = await self.client.aio.models.generate_content(
                model=self._config.image_model,
                contents=[
                    types.Part.from_bytes(data=source.data, mime_type=source.mime_type),
                    UPSCALE_INSTRUCTION,
                ],
            )
        except Exception as e:
            logger.warning(f"Upscale request failed: {e}")
            raise UpscaleError("Upscale failed") from e

        upscaled = first_inline_image(response)
        if upscaled is None:
            logger.info("Upscale returned no image, keeping original")
            return image_url

        return upscaled

    # ------------------------------------------------------------------
    # Animate
    # ------------------------------------------------------------------

    async def animate(self, image_url: str, prompt: str, aspect_ratio: str) -> str:
        """Turn an image into a short video.

        The job is polled every ``motion_poll_interval`` seconds, bounded by
        ``motion_poll_max_attempts`` and ``motion_timeout``.  The finished
        video is written to the media directory.

        Returns:
            URL path of the materialised video (``/media/<name>.mp4``).

        Raises:
            MotionTimeoutError: If the job does not finish in time.
            MotionError: If the request fails or no video is produced.
        """
        try:
            source = parse_data_uri(image_url)
        except ValueError as e:
            raise MotionError(f"Cannot animate this image: {e}") from e

        target_ratio = video_aspect_ratio(aspect_ratio)
        logger.info(f"Submitting motion job ({aspect_ratio} -> {target_ratio})")

        client = self.client
        try:
            operation = await client.aio.models.generate_videos(
                model=self._config.video_model,
                prompt=MOTION_PROMPT.format(prompt=prompt),
                image=types.Image(image_bytes=source.data, mime_type=source.mime_type),
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution=self._config.video_resolution,
                    aspect_ratio=target_ratio,
                ),
            )
            operation = await poll_until(
                operation,
                client.aio.operations.get,
                lambda op: bool(op.done),
                interval=self._config.motion_poll_interval,
                max_attempts=self._config.motion_poll_max_attempts,
                timeout=self._config.motion_timeout,
            )
        except PollTimeoutError as e:
            logger.error(f"Motion job timed out: {e}")
            raise MotionTimeoutError("Animation timed out. Please try again.") from e
        except Exception as e:
            logger.error(f"Motion request failed: {e}", exc_info=True)
            raise MotionError("Animation failed. Please try a different image.") from e

        if getattr(operation, "error", None):
            logger.error(f"Motion job reported an error: {operation.error}")
            raise MotionError("Failed to generate motion")

        videos = getattr(operation.response, "generated_videos", None) or []
        video = videos[0].video if videos else None
        if video is None or not (video.uri or video.video_bytes):
            raise MotionError("Failed to generate motion")

        return await self._materialize(video)

    async def _materialize(self, video: types.Video) -> str:
        """Download *video* and store it as a local media file."""
        if video.video_bytes:
            data = video.video_bytes
        else:
            try:
                data = await self.client.aio.files.download(file=video)
            except Exception as e:
                logger.error(f"Video download failed: {e}", exc_info=True)
                raise MotionError("Failed to download the generated video") from e

        filename = f"motion_{new_id()}.mp4"
        path: Path = self._config.media_dir / filename
        await asyncio.to_thread(path.write_bytes, data)
        logger.info(f"Saved motion video to {path} ({len(data)} bytes)")
        await asyncio.to_thread(self._prune_media, path)

        return f"/media/{filename}"

    def _prune_media(self, keep: Path) -> None:
        """Delete the oldest motion videos beyond ``media_max_videos``."""
        videos = sorted(
            self._config.media_dir.glob("motion_*.mp4"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        for old in videos[self._config.media_max_videos :]:
            if old == keep:
                continue
            old.unlink(missing_ok=True)
            logger.info(f"Pruned old motion video {old.name}")
