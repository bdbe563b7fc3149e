"""Data models for Lumina Studio.

Accounts and generated artifacts are Pydantic models so they can be
validated when loaded from local storage and serialised straight into API
responses.  Field names are snake_case in Python and camelCase on the wire
(``originalPrompt``, ``aspectRatio``), matching the records the browser
studio has always stored.
"""

from __future__ import annotations

import secrets
import string
import time
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AspectRatio = Literal["1:1", "16:9", "9:16", "4:3", "3:4"]

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "16:9", "9:16", "4:3", "3:4")

NO_STYLE = "None"

STYLES: tuple[str, ...] = (
    NO_STYLE,
    "Cinematic",
    "Realistic Photography",
    "Anime Style",
    "Cyberpunk",
    "Oil Painting",
    "Digital Art",
    "3D Render",
    "Steampunk",
    "Sketch",
    "Vaporwave",
    "Pixel Art",
)

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_LENGTH = 9


class ImageFormat(str, Enum):
    """Raster containers offered by the export menu."""

    PNG = "image/png"
    JPEG = "image/jpeg"
    WEBP = "image/webp"
    BMP = "image/bmp"

    @property
    def extension(self) -> str:
        """File extension, taken from the mime subtype."""
        return self.value.split("/")[1]


def new_id() -> str:
    """Return a short random base-36 identifier."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_record(self) -> dict:
        """Serialise with camelCase keys for storage or the API."""
        return self.model_dump(by_alias=True, mode="json")


class Account(_WireModel):
    """The signed-in user.

    This is a personalization token only.  It is created without any
    credential verification and carries no authority.

    Attributes:
        id: Random identifier assigned at sign-in.
        username: Display name.
        email: Contact address as typed.
    """

    id: str = Field(default_factory=new_id)
    username: str = ""
    email: str


class GeneratedArtifact(_WireModel):
    """A generated image and the parameters that produced it.

    Attributes:
        id: Identifier, unique within the artifact store.
        url: ``data:`` URI holding the raster bytes.
        prompt: Effective prompt, including any style suffix.
        original_prompt: The prompt as the user typed it.
        timestamp: Creation time in milliseconds since the epoch.
        aspect_ratio: Requested aspect ratio.
        format: Mime type of the image payload.
    """

    id: str = Field(default_factory=new_id)
    url: str
    prompt: str
    original_prompt: str
    timestamp: int = Field(default_factory=now_ms)
    aspect_ratio: AspectRatio = "1:1"
    format: str = ImageFormat.PNG.value

    def with_url(self, url: str) -> GeneratedArtifact:
        """Return a copy pointing at new image bytes, all else unchanged."""
        return self.model_copy(update={"url": url})
