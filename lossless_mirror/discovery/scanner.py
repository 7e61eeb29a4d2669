"""
Source tree discovery.

Walks the source root once, following symbolic links, classifies every
regular file and turns the ones that still have to be produced into
audio and cover jobs.

Walk Rules:
    - Each real directory is visited once, identified by (st_dev, st_ino),
      so symlink cycles and duplicate links to the same directory are
      harmless.
    - Entries are sorted per directory, so a fixed filesystem snapshot
      always gives the same job lists.
    - If the destination root lives inside the source root it is not
      descended into.
    - Unreadable directories are logged and skipped; the walk continues.

Collisions:
    Two distinct sources can map to the same target, for example
    "01 Song.wav" and "01 Song.aiff", or "01 Song.wav" and an extensionless
    "01 Song". None of the colliding sources is scheduled. Each collision
    is logged with all its sources and returned in
    DiscoveryResult.collisions; since the target is never written, the
    next run rejects the same set again. Sources are grouped by their
    mirrored path before the existence check, so a clash with a target
    converted earlier is reported too.

Usage:
    from lossless_mirror.discovery.scanner import discover

    audio_jobs, cover_jobs = discover(src, dst, "flac", "cover.jpg")
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from lossless_mirror.core.formats import EncodingOptions
from lossless_mirror.core.logger import get_logger
from lossless_mirror.core.models import AudioJob, CoverJob, FileMapping
from lossless_mirror.discovery.classifier import FileKind, classify
from lossless_mirror.discovery.mapper import (
    PathTransform,
    identity,
    map_target,
    mirror_path,
    swap_extension,
)


logger = get_logger(__name__)


@dataclass(frozen=True)
class Collision:
    """Several sources that would all be written to the same target."""

    target_path: Path
    sources: tuple[Path, ...]


@dataclass
class DiscoveryResult:
    """
    Outcome of one discovery walk.

    Attributes:
        audio_jobs: Audio files whose target is missing.
        cover_jobs: Cover images whose target is missing.
        scanned: Number of regular files looked at.
        audio_found: Number of files classified as audio sources.
        unrecognized: Number of files that are neither audio nor cover.
        already_converted: Audio sources whose target already exists.
        walk_errors: Number of directories that could not be read.
        collisions: Targets claimed by more than one source (rejected).

    The result unpacks as (audio_jobs, cover_jobs).
    """

    audio_jobs: list[AudioJob] = field(default_factory=list)
    cover_jobs: list[CoverJob] = field(default_factory=list)
    scanned: int = 0
    audio_found: int = 0
    unrecognized: int = 0
    already_converted: int = 0
    walk_errors: int = 0
    collisions: list[Collision] = field(default_factory=list)

    def __iter__(self):
        return iter((self.audio_jobs, self.cover_jobs))


def discover(
    source_root: Path,
    dest_root: Path,
    target_extension: str,
    cover_name: str,
    options: EncodingOptions | None = None
) -> DiscoveryResult:
    """
    Walk source_root and build the jobs still needed to mirror it into dest_root.

    Args:
        source_root: Existing source directory.
        dest_root: Existing destination directory.
        target_extension: Extension of converted audio files (e.g. "flac").
        cover_name: Exact file name of cover images.
        options: Encoding options attached to every audio job. Defaults to
                 EncodingOptions().

    Returns:
        DiscoveryResult: Jobs plus counters for the summary.
    """
    source_root = Path(source_root)
    dest_root = Path(dest_root)
    options = options or EncodingOptions()
    audio_transform = swap_extension(target_extension)

    result = DiscoveryResult()
    # mirrored path -> [(kind, source, transform)], in walk order
    candidates: dict[Path, list[tuple[FileKind, Path, PathTransform]]] = {}

    for path in _walk_files(source_root, dest_root, result):
        result.scanned += 1
        kind = classify(path, cover_name)

        if kind is FileKind.SKIP:
            result.unrecognized += 1
            continue

        transform = audio_transform if kind is FileKind.AUDIO_SOURCE else identity
        if kind is FileKind.AUDIO_SOURCE:
            result.audio_found += 1

        mirrored = mirror_path(path, source_root, dest_root, transform)
        if mirrored is not None:
            candidates.setdefault(mirrored, []).append((kind, path, transform))

    for mirrored, entries in candidates.items():
        if len(entries) > 1:
            sources = tuple(source for _, source, _ in entries)
            result.collisions.append(Collision(mirrored, sources))
            logger.warning(
                f"Skipping {len(sources)} files that would all be written to {mirrored}: "
                + ", ".join(str(s) for s in sources)
            )
            continue

        kind, source, transform = entries[0]
        target = map_target(source, source_root, dest_root, transform)
        if target is None:
            if kind is FileKind.AUDIO_SOURCE:
                result.already_converted += 1
            continue

        mapping = FileMapping(source_path=source, target_path=target)
        if kind is FileKind.AUDIO_SOURCE:
            result.audio_jobs.append(AudioJob(mapping=mapping, options=options))
        else:
            result.cover_jobs.append(CoverJob(mapping=mapping))

    logger.info(f"Found {result.audio_found} audio files in {source_root}")
    logger.info(f"Found {len(result.audio_jobs)} missing files to encode")
    logger.debug(
        f"Discovery: {result.scanned} files scanned, {result.unrecognized} ignored, "
        f"{result.already_converted} already converted, {len(result.cover_jobs)} covers to copy, "
        f"{len(result.collisions)} collisions, {result.walk_errors} walk errors"
    )
    return result


def _walk_files(source_root: Path, dest_root: Path, result: DiscoveryResult):
    """Yield every regular file under source_root, in sorted order per directory."""

    def on_error(error: OSError) -> None:
        result.walk_errors += 1
        logger.warning(f"Cannot read {error.filename}, skipping: {error.strerror or error}")

    visited: set[tuple[int, int]] = set()
    dest_id = _directory_id(dest_root)

    for dirpath, dirnames, filenames in os.walk(source_root, onerror=on_error, followlinks=True):
        directory_id = _directory_id(Path(dirpath))
        if directory_id is None:
            result.walk_errors += 1
            logger.warning(f"Cannot read {dirpath}, skipping")
            dirnames[:] = []
            continue
        if directory_id in visited or (
            directory_id == dest_id and Path(dirpath) != source_root
        ):
            dirnames[:] = []
            continue
        visited.add(directory_id)

        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.is_file():
                yield path
            else:
                logger.debug(f"Ignoring {path}, not a regular file")


def _directory_id(path: Path) -> tuple[int, int] | None:
    try:
        stat = path.stat()
    except OSError:
        return None
    return stat.st_dev, stat.st_ino
