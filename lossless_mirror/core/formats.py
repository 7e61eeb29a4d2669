"""
Output formats and encoding options.

The set of target formats is closed: only lossless codecs are supported.

    Format   Codec   Extension   ffmpeg container   Compression level
    ------   -----   ---------   ----------------   -----------------
    FLAC     flac    .flac       flac               0..12 (default 4)
    ALAC     alac    .m4a        ipod               not supported
"""

from dataclasses import dataclass
from enum import Enum

from lossless_mirror.core.exceptions import ConfigError


class AudioFormat(Enum):
    """Target lossless format of a conversion run."""

    FLAC = "flac"
    ALAC = "alac"

    @property
    def codec_name(self) -> str:
        """ffmpeg codec name (also the value accepted on the command line)."""
        return self.value

    @property
    def extension(self) -> str:
        """Canonical file extension, without the dot."""
        return _EXTENSIONS[self]

    @property
    def container(self) -> str:
        """ffmpeg muxer used for the output file."""
        return _CONTAINERS[self]

    @property
    def supports_compression(self) -> bool:
        return self is AudioFormat.FLAC

    @classmethod
    def parse(cls, value: "str | AudioFormat") -> "AudioFormat":
        """
        Parse a format name (case-insensitive).

        Raises:
            ConfigError: If the name is not one of the supported formats.
                         The message lists the supported formats.
        """
        if isinstance(value, AudioFormat):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(f.codec_name for f in cls)
            raise ConfigError(
                f"Unsupported format: {value} (supported formats: {supported})",
                details={"field": "conversion.format", "value": value}
            ) from None


_EXTENSIONS = {
    AudioFormat.FLAC: "flac",
    AudioFormat.ALAC: "m4a",
}

_CONTAINERS = {
    AudioFormat.FLAC: "flac",
    AudioFormat.ALAC: "ipod",
}

DEFAULT_FLAC_COMPRESSION = 4
MIN_FLAC_COMPRESSION = 0
MAX_FLAC_COMPRESSION = 12


@dataclass(frozen=True)
class EncodingOptions:
    """
    Encoding parameters shared (read-only) by every worker of a run.

    Attributes:
        format: Target format.
        compression_level: FLAC compression level, or None for the default.
                           Ignored by formats without a compression setting.
        sample_rate: Optional output sample rate override in Hz.
    """

    format: AudioFormat = AudioFormat.FLAC
    compression_level: int | None = None
    sample_rate: int | None = None

    @property
    def effective_compression_level(self) -> int | None:
        """Compression level to pass to the codec, None when not applicable."""
        if not self.format.supports_compression:
            return None
        if self.compression_level is None:
            return DEFAULT_FLAC_COMPRESSION
        return self.compression_level
