"""
Metadata derivation from the destination path.

Tags are inferred purely from the library layout:

    .../<artist>/<album>/<NN> <title>.<ext>

    /music/flac/Pink Floyd/Animals/02 Dogs.flac
        artist       = "Pink Floyd"
        album        = "Animals"
        track_number = 2
        title        = "Dogs"

The directory names are taken by their stem, like the file name, so an
album directory called "Live at Pompeii.1972" yields the album
"Live at Pompeii".
"""

from dataclasses import dataclass
from pathlib import Path

from lossless_mirror.core.exceptions import (
    InvalidTrackNumberError,
    MissingDirectoryError,
    MissingTrackSeparatorError,
)


@dataclass(frozen=True)
class DerivedTags:
    artist: str
    album: str
    track_number: int
    title: str


def derive_tags(target_path: Path) -> DerivedTags:
    """
    Infer artist, album, track number and title from a path.

    Args:
        target_path: Final destination path of a converted file.

    Returns:
        DerivedTags: The inferred metadata. The title may be empty
                     ("03 .flac") but is never padded with whitespace.

    Raises:
        MissingDirectoryError: The path has no named parent or grandparent.
        MissingTrackSeparatorError: The file name has no space.
        InvalidTrackNumberError: The text before the first space is not
                                 made of ASCII digits only.
    """
    target_path = Path(target_path)
    album_dir = target_path.parent
    artist_dir = album_dir.parent

    album = _directory_name(album_dir, target_path)
    artist = _directory_name(artist_dir, target_path)
    track_number, title = _track_info(target_path)

    return DerivedTags(artist=artist, album=album, track_number=track_number, title=title)


def _directory_name(directory: Path, target_path: Path) -> str:
    # A path with no parent at this level resolves to itself ("/" or "."),
    # whose stem is empty
    name = directory.stem
    if not name or name in (".", ".."):
        raise MissingDirectoryError(
            f"Failed to find artist/album directories for {target_path}",
            details={"path": str(target_path)}
        )
    return name


def _track_info(target_path: Path) -> tuple[int, str]:
    stem = target_path.stem
    number, separator, title = stem.partition(" ")
    if not separator:
        raise MissingTrackSeparatorError(
            f"Failed to find a space character in {target_path.name}",
            details={"path": str(target_path)}
        )

    if not number or not (number.isascii() and number.isdigit()):
        raise InvalidTrackNumberError(
            f"Failed to extract track number from {target_path.name}: '{number}' is not a number",
            details={"path": str(target_path), "value": number}
        )

    return int(number), title.strip()
