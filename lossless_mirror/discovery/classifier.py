"""
File classification for discovery.

A file is an audio source if its content parses as a PCM WAV (or AIFF)
header, whatever its extension; it is a cover if its name equals the
configured cover file name exactly. Anything else, including files that
cannot be opened, is skipped.

Usage:
    from lossless_mirror.discovery.classifier import classify, FileKind

    if classify(path, "cover.jpg") is FileKind.AUDIO_SOURCE:
        ...
"""

import struct
from enum import Enum
from pathlib import Path

from mutagen import MutagenError
from mutagen.aiff import AIFF
from mutagen.wave import WAVE

from lossless_mirror.core.exceptions import CoverArtError
from lossless_mirror.core.logger import get_logger


logger = get_logger(__name__)

COVER_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "bmp": "image/bmp",
    "gif": "image/gif",
    "png": "image/png",
    "tif": "image/tiff",
    "tiff": "image/tiff",
}

# Parsers tried in order; the first that accepts the header wins
_SOURCE_PARSERS = (WAVE, AIFF)


class FileKind(Enum):
    AUDIO_SOURCE = "audio"
    COVER_ART = "cover"
    SKIP = "skip"


def classify(path: Path, cover_name: str) -> FileKind:
    """
    Decide what discovery should do with a file.

    Cover detection only looks at the name; the image type is checked
    when the cover is embedded. Audio detection reads the header, so a
    corrupt file named .wav is skipped and a valid WAV without extension
    is converted.

    Args:
        path: Regular file to classify.
        cover_name: Exact file name of cover images (e.g. "cover.jpg").

    Returns:
        FileKind: AUDIO_SOURCE, COVER_ART or SKIP. Never raises for
                  unreadable files; the cause is logged at DEBUG level.
    """
    if path.name == cover_name:
        return FileKind.COVER_ART

    if is_audio_source(path):
        return FileKind.AUDIO_SOURCE
    return FileKind.SKIP


def is_audio_source(path: Path) -> bool:
    """Return True if the file has a readable WAV or AIFF header."""
    errors = []
    for parser in _SOURCE_PARSERS:
        try:
            parser(path)
            return True
        except (MutagenError, OSError, ValueError, EOFError, KeyError, struct.error) as e:
            errors.append(e)

    # The WAV parser's error is the most relevant one for the log
    logger.debug(f"Ignoring file {path}, cause: {errors[0]}")
    return False


def cover_mime_type(path: Path) -> str:
    """
    Get the MIME type of a cover image from its extension.

    Raises:
        CoverArtError: If the extension is not jpg/jpeg, bmp, gif, png or tif/tiff.
    """
    extension = path.suffix.lower().lstrip(".")
    try:
        return COVER_MIME_TYPES[extension]
    except KeyError:
        raise CoverArtError(
            f"Unsupported cover image type: {path.name}",
            details={"path": str(path), "extension": extension}
        ) from None
