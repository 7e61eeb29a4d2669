"""
Source to destination path mapping.

The mapper mirrors a path found under the source root into the
destination root and is also the idempotency gate: a target that already
exists is never scheduled again. Note that existence is the only check,
so a truncated target left by a crash is treated as done (see
orchestrator.convert_file for how partial outputs are avoided).
"""

from pathlib import Path
from typing import Callable


PathTransform = Callable[[Path], Path]


def identity(path: Path) -> Path:
    return path


def swap_extension(extension: str) -> PathTransform:
    """
    Build a transform replacing the file suffix with `extension`.

    Only the last suffix is replaced ("a.b.wav" -> "a.b.flac"); a file
    without suffix gets one ("01 Song" -> "01 Song.flac").
    """
    suffix = "." + extension.lstrip(".")

    def transform(path: Path) -> Path:
        return path.with_suffix(suffix)

    return transform


def mirror_path(
    source_path: Path,
    source_root: Path,
    dest_root: Path,
    transform: PathTransform = identity
) -> Path | None:
    """
    Compute the destination path of a source file.

    Returns:
        The transformed path under dest_root, or None if source_path is
        not located under source_root.
    """
    try:
        relative = source_path.relative_to(source_root)
    except ValueError:
        return None
    return transform(dest_root / relative)


def map_target(
    source_path: Path,
    source_root: Path,
    dest_root: Path,
    transform: PathTransform = identity
) -> Path | None:
    """
    Map a source file to the destination path it still has to be written to.

    Args:
        source_path: File found under source_root.
        source_root: Root of the source tree.
        dest_root: Root of the destination tree.
        transform: swap_extension(...) for audio files, identity for covers.

    Returns:
        The target path, or None if the source is not under source_root
        or the target already exists.

    Example:
        >>> map_target(Path("/src/A/B/01 Song.wav"), Path("/src"), Path("/dst"),
        ...            swap_extension("flac"))
        PosixPath('/dst/A/B/01 Song.flac')
    """
    target = mirror_path(source_path, source_root, dest_root, transform)
    if target is None or target.exists():
        return None
    return target
