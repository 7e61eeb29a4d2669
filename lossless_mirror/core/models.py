"""
Data models for conversion jobs and their outcomes.

Jobs are pure values created in bulk by discovery, consumed exactly once
by a worker (audio) or by the orchestrator (covers), then dropped.
"""

from dataclasses import dataclass
from pathlib import Path

from lossless_mirror.core.formats import EncodingOptions


@dataclass(frozen=True)
class FileMapping:
    """
    One source file and the destination path it is mirrored to.

    Attributes:
        source_path: Existing file under the source root.
        target_path: Path under the destination root. For audio files the
                     suffix is the target format's extension, for covers the
                     name is unchanged.
    """

    source_path: Path
    target_path: Path


@dataclass(frozen=True)
class AudioJob:
    """Convert one audio file."""

    mapping: FileMapping
    options: EncodingOptions

    @property
    def source_path(self) -> Path:
        return self.mapping.source_path

    @property
    def target_path(self) -> Path:
        return self.mapping.target_path


@dataclass(frozen=True)
class CoverJob:
    """Copy one cover image byte-for-byte."""

    mapping: FileMapping

    @property
    def source_path(self) -> Path:
        return self.mapping.source_path

    @property
    def target_path(self) -> Path:
        return self.mapping.target_path


@dataclass(frozen=True)
class ConversionOutcome:
    """
    Result of executing one audio job.

    Use the ok() and failure() constructors rather than building the
    instance directly.

    Attributes:
        job: The job this outcome belongs to.
        success: True if the target now exists, encoded and tagged.
        reason: Failure cause for display, None on success.
    """

    job: AudioJob
    success: bool
    reason: str | None = None

    @classmethod
    def ok(cls, job: AudioJob) -> "ConversionOutcome":
        return cls(job=job, success=True)

    @classmethod
    def failure(cls, job: AudioJob, reason: str) -> "ConversionOutcome":
        return cls(job=job, success=False, reason=reason)
