"""Re-encode the working image into a downloadable raster file.

Export is best effort.  The source is decoded into a Pillow image and saved
in the requested container; when the source cannot be read the encoder
returns ``None`` and no file is produced.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from .errors import ExportError
from .media import is_data_uri, parse_data_uri
from .models import ImageFormat

logger = logging.getLogger(__name__)

# Pillow writer name per export format.
_PIL_FORMATS: dict[ImageFormat, str] = {
    ImageFormat.PNG: "PNG",
    ImageFormat.JPEG: "JPEG",
    ImageFormat.WEBP: "WEBP",
    ImageFormat.BMP: "BMP",
}

# Containers without an alpha channel.
_OPAQUE_FORMATS = {ImageFormat.JPEG, ImageFormat.BMP}


@dataclass(frozen=True)
class ExportedFile:
    """An encoded image ready to be offered for download."""

    filename: str
    mime_type: str
    data: bytes


def export_filename(artifact_id: str, fmt: ImageFormat) -> str:
    """``lumina_<id>.<ext>`` with the extension taken from the mime subtype."""
    return f"lumina_{artifact_id}.{fmt.extension}"


class ExportEncoder:
    """Loads image references and re-encodes them with Pillow.

    Args:
        media_root: Directory that ``/media/...`` references resolve against.
        timeout: Seconds allowed when fetching a remote source.
    """

    def __init__(self, media_root: Path | None = None, timeout: float = 30.0) -> None:
        self._media_root = Path(media_root) if media_root else None
        self._timeout = timeout

    def _read_source(self, reference: str) -> bytes:
        if is_data_uri(reference):
            return parse_data_uri(reference).data

        if reference.startswith(("http://", "https://")):
            # Anonymous fetch: no cookies or credentials are sent.
            response = httpx.get(reference, timeout=self._timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content

        if reference.startswith("/media/") and self._media_root is not None:
            name = reference[len("/media/") :]
            path = (self._media_root / name).resolve()
            if not path.is_relative_to(self._media_root.resolve()):
                raise ValueError("Media reference escapes the media directory")
            return path.read_bytes()

        raise ValueError("Unsupported image reference")

    def encode_or_raise(self, reference: str, fmt: ImageFormat, artifact_id: str) -> ExportedFile:
        """Re-encode *reference* as *fmt*.

        Raises:
            ExportError: If the source cannot be loaded or encoded.
        """
        fmt = ImageFormat(fmt)
        try:
            raw = self._read_source(reference)
            with Image.open(io.BytesIO(raw)) as image:
                image.load()
                if fmt in _OPAQUE_FORMATS and image.mode not in ("RGB", "L"):
                    image = image.convert("RGB")
                buffer = io.BytesIO()
                image.save(buffer, format=_PIL_FORMATS[fmt])
        except (
            ValueError,
            OSError,
            UnidentifiedImageError,
            Image.DecompressionBombError,
            httpx.HTTPError,
        ) as e:
            raise ExportError(f"Could not export image: {e}") from e

        return ExportedFile(
            filename=export_filename(artifact_id, fmt),
            mime_type=fmt.value,
            data=buffer.getvalue(),
        )

    def encode(self, reference: str, fmt: ImageFormat, artifact_id: str) -> ExportedFile | None:
        """Re-encode *reference* as *fmt*, or return None if it is unreadable."""
        try:
            return self.encode_or_raise(reference, fmt, artifact_id)
        except ExportError as e:
            logger.warning(f"Export of {artifact_id} skipped: {e}")
            return None
