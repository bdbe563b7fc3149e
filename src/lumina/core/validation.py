"""Validation utilities for studio inputs."""

import logging

from .errors import ValidationError
from .models import ASPECT_RATIOS, STYLES

logger = logging.getLogger(__name__)


def validate_prompt_content(prompt: str, max_length: int = 10000) -> None:
    """Validate prompt text content.

    Args:
        prompt: Prompt text to validate
        max_length: Maximum allowed prompt length in characters

    Raises:
        ValidationError: If prompt is too long or contains invalid content
    """
    if len(prompt) > max_length:
        raise ValidationError(
            f"Prompt is too long ({len(prompt)} characters). Maximum is {max_length} characters."
        )

    # Placeholder text pasted back from a failed request
    if prompt.strip().lower() in ["error:", "error", "null"]:
        raise ValidationError("Invalid prompt content")


def validate_style(style: str) -> None:
    if style not in STYLES:
        raise ValidationError(f"Unknown style: {style}. Choose one of: {', '.join(STYLES)}")


def validate_aspect_ratio(aspect_ratio: str) -> None:
    if aspect_ratio not in ASPECT_RATIOS:
        raise ValidationError(
            f"Unsupported aspect ratio: {aspect_ratio}. Choose one of: {', '.join(ASPECT_RATIOS)}"
        )


def validate_email(email: str) -> None:
    """Minimal shape check for the sign-in form; nothing is verified."""
    email = email.strip()
    if not email or "@" not in email or email.startswith("@") or email.endswith("@"):
        logger.debug(f"Rejected email input: {email!r}")
        raise ValidationError("Please enter a valid email address")
