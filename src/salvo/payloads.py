"""Request body sources consumed by the stage runner."""

import base64
import io
import json
import logging
import random
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from .config import ConfigurationError
from .models import Payload

logger = logging.getLogger(__name__)

NOISE_PIXELS = 100
JPEG_QUALITY = 95


class PayloadSource(Protocol):
    def produce(self, noise: bool | None = None) -> Payload:
        """Return one request body; ``noise=None`` keeps the source's default."""
        ...


class StaticPayloadSource:
    def __init__(self, payload: Payload):
        self._payload = bytes(payload)

    def produce(self, noise: bool | None = None) -> Payload:
        return self._payload


class ImagePayloadSource:
    """
    Wraps a JPEG as ``{"image": "<base64>"}``.

    With noise, every body is a fresh re-encode of the image with
    NOISE_PIXELS random grey pixels, so the target never sees the same
    picture twice.
    """

    def __init__(self, path: str, noise: bool = False, rng: random.Random | None = None):
        try:
            with open(path, "rb") as f:
                raw = f.read()
            with Image.open(io.BytesIO(raw)) as img:
                img.load()
                self._image = img.convert("RGB")
        except OSError as e:
            # UnidentifiedImageError is an OSError too
            kind = "jpeg image" if isinstance(e, UnidentifiedImageError) else "file"
            raise ConfigurationError(f"Failed opening {path} as {kind}: {e}") from e

        self.path = path
        self.noise = noise
        self._rng = rng or random.Random()
        self._static = self._wrap(raw)
        logger.debug(
            f"Loaded image {path}: {self._image.width}x{self._image.height}, "
            f"{len(raw)} bytes, noise={noise}"
        )

    @staticmethod
    def _wrap(jpeg: bytes) -> Payload:
        body = {"image": base64.b64encode(jpeg).decode("ascii")}
        return json.dumps(body, separators=(",", ":")).encode("utf-8")

    def _noisy_jpeg(self) -> bytes:
        noisy = self._image.copy()
        width, height = noisy.size
        for _ in range(NOISE_PIXELS):
            val = self._rng.randrange(255)
            noisy.putpixel((self._rng.randrange(width), self._rng.randrange(height)), (val, val, val))
        buf = io.BytesIO()
        noisy.save(buf, "JPEG", quality=JPEG_QUALITY)
        return buf.getvalue()

    def produce(self, noise: bool | None = None) -> Payload:
        if noise is None:
            noise = self.noise
        if not noise:
            return self._static
        return self._wrap(self._noisy_jpeg())
