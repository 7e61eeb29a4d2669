"""
Metadata writer for converted files.

Encoding strips all source metadata, so the tags written here are the
only metadata in the output file. Existing tags are always replaced.

Format-specific strategies:
    - FLAC: Vorbis Comments (ALBUM, ARTIST, TITLE, TRACKNUMBER) and a
      front-cover Picture block
    - ALAC (.m4a): iTunes atoms (\\xa9alb, \\xa9ART, \\xa9nam, trkn) and a
      covr atom. MP4 cannot store TIFF images.

A cover that cannot be embedded (unsupported type, unreadable file) is
logged as an error for that file and skipped; the text tags are still
written and the conversion counts as successful.

Usage:
    tagger = Tagger(embed_cover=True)
    tagger.tag(path, derive_tags(path), AudioFormat.FLAC, cover_path=album_dir / "cover.jpg")
"""

from dataclasses import dataclass
from pathlib import Path

from mutagen import MutagenError
from mutagen.flac import FLAC, Picture
from mutagen.mp4 import MP4, AtomDataType, MP4Cover
from PIL import Image, UnidentifiedImageError

from lossless_mirror.core.exceptions import CoverArtError, TagWriteError
from lossless_mirror.core.formats import AudioFormat
from lossless_mirror.core.logger import get_logger
from lossless_mirror.discovery.classifier import cover_mime_type
from lossless_mirror.tagging.deriver import DerivedTags


logger = get_logger(__name__)

# ID3/FLAC picture type "Cover (front)"
FRONT_COVER = 3

_MP4_COVER_FORMATS = {
    "image/jpeg": MP4Cover.FORMAT_JPEG,
    "image/png": MP4Cover.FORMAT_PNG,
    "image/gif": AtomDataType.GIF,
    "image/bmp": AtomDataType.BMP,
}

# Bits per pixel by Pillow image mode
_MODE_DEPTHS = {
    "1": 1,
    "L": 8,
    "P": 8,
    "LA": 16,
    "I;16": 16,
    "RGB": 24,
    "YCbCr": 24,
    "RGBA": 32,
    "CMYK": 32,
    "I": 32,
    "F": 32,
}


@dataclass(frozen=True)
class CoverImage:
    """Cover image bytes with the properties needed by the containers."""

    data: bytes
    mime: str
    width: int = 0
    height: int = 0
    depth: int = 0


class Tagger:
    """
    Writes derived tags into FLAC or ALAC files.

    Stateless apart from its settings, so a single instance is shared by
    all worker threads.

    Attributes:
        embed_cover: Embed the album cover when a cover path is given.
    """

    def __init__(self, embed_cover: bool = True) -> None:
        self.embed_cover = embed_cover

    def tag(
        self,
        path: Path,
        tags: DerivedTags,
        audio_format: AudioFormat,
        cover_path: Path | None = None
    ) -> None:
        """
        Replace the metadata of an encoded file.

        Args:
            path: File to tag, in the container of audio_format.
            tags: Artist, album, track number and title to write.
            audio_format: Container format of the file.
            cover_path: Optional album cover. Ignored if missing or if
                        embedding is disabled.

        Raises:
            TagWriteError: If mutagen cannot open or save the file.
        """
        cover = None
        if self.embed_cover and cover_path is not None and Path(cover_path).is_file():
            try:
                cover = load_cover(Path(cover_path), audio_format)
            except CoverArtError as e:
                logger.error(f"Cannot embed cover into {path.name}: {e}")

        try:
            if audio_format is AudioFormat.FLAC:
                self._tag_flac(path, tags, cover)
            else:
                self._tag_mp4(path, tags, cover)
        except (MutagenError, OSError) as e:
            raise TagWriteError(
                f"Failed to write tags to {path.name}: {e}",
                details={"path": str(path), "original_error": str(e)}
            ) from e

        logger.debug(
            f"Tagged {path.name}: {tags.artist} / {tags.album} / "
            f"{tags.track_number} {tags.title}{' (with cover)' if cover else ''}"
        )

    def _tag_flac(self, path: Path, tags: DerivedTags, cover: CoverImage | None) -> None:
        audio = FLAC(path)
        audio.clear()
        audio.clear_pictures()

        audio["ALBUM"] = tags.album
        audio["ARTIST"] = tags.artist
        audio["TITLE"] = tags.title
        audio["TRACKNUMBER"] = str(tags.track_number)

        if cover is not None:
            picture = Picture()
            picture.type = FRONT_COVER
            picture.mime = cover.mime
            picture.desc = "Cover"
            picture.width = cover.width
            picture.height = cover.height
            picture.depth = cover.depth
            picture.data = cover.data
            audio.add_picture(picture)

        audio.save()

    def _tag_mp4(self, path: Path, tags: DerivedTags, cover: CoverImage | None) -> None:
        audio = MP4(path)
        audio.clear()

        audio["\xa9alb"] = [tags.album]
        audio["\xa9ART"] = [tags.artist]
        audio["\xa9nam"] = [tags.title]
        audio["trkn"] = [(tags.track_number, 0)]  # (track, total), total unknown

        if cover is not None:
            audio["covr"] = [MP4Cover(cover.data, _MP4_COVER_FORMATS[cover.mime])]

        audio.save()


def load_cover(cover_path: Path, audio_format: AudioFormat) -> CoverImage:
    """
    Read a cover image for embedding into a file of audio_format.

    Width, height and color depth are read with Pillow; an image Pillow
    cannot decode is still embedded, without those properties.

    Raises:
        CoverArtError: If the extension is not an allowed image type, the
                       container cannot store that type, or the file
                       cannot be read.
    """
    mime = cover_mime_type(cover_path)
    if audio_format is AudioFormat.ALAC and mime not in _MP4_COVER_FORMATS:
        raise CoverArtError(
            f"{mime} covers cannot be stored in {audio_format.extension} files",
            details={"path": str(cover_path), "mime": mime}
        )

    try:
        data = cover_path.read_bytes()
    except OSError as e:
        raise CoverArtError(
            f"Cannot read cover {cover_path}: {e}",
            details={"path": str(cover_path), "original_error": str(e)}
        ) from e

    try:
        with Image.open(cover_path) as img:
            return CoverImage(
                data=data,
                mime=mime,
                width=img.width,
                height=img.height,
                depth=_MODE_DEPTHS.get(img.mode, 24),
            )
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Cannot read image properties of {cover_path}: {e}")
        return CoverImage(data=data, mime=mime)
