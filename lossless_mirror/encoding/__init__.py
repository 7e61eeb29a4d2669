"""
Encoding backends.

The backend is chosen once at startup from the conversion.encoder
setting:

    ffmpeg - FfmpegEncoder (ffmpeg-python, default)
    pydub  - PydubEncoder
"""

from lossless_mirror.core.config import ENCODER_BACKENDS
from lossless_mirror.core.exceptions import ConfigError
from lossless_mirror.encoding.base import Encoder
from lossless_mirror.encoding.ffmpeg_encoder import FfmpegEncoder
from lossless_mirror.encoding.pydub_encoder import PydubEncoder


def create_encoder(name: str = "ffmpeg", timeout: float | None = None) -> Encoder:
    """
    Create the encoder backend called `name`.

    Args:
        name: "ffmpeg" or "pydub" (case-insensitive).
        timeout: Per-file time limit in seconds (ffmpeg backend only).

    Raises:
        ConfigError: If the backend name is unknown.
    """
    backend = name.strip().lower()
    if backend == "ffmpeg":
        return FfmpegEncoder(timeout=timeout)
    if backend == "pydub":
        return PydubEncoder()
    raise ConfigError(
        f"Unknown encoder backend: {name} (supported backends: {', '.join(ENCODER_BACKENDS)})",
        details={"field": "conversion.encoder", "value": name}
    )


__all__ = ["Encoder", "FfmpegEncoder", "PydubEncoder", "create_encoder"]
