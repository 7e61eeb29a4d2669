"""
Core building blocks shared by every other package.

Modules:
    exceptions - error hierarchy (fatal vs per-job errors)
    formats    - AudioFormat and EncodingOptions
    models     - job and outcome value types
    config     - YAML/env configuration loading and validation
    logger     - console, rotating file and failure report logging
    progress   - progress reporters used during conversion
"""

from lossless_mirror.core.exceptions import (
    ConfigError,
    CoverArtError,
    EncodingError,
    InvalidDirectoryError,
    InvalidTrackNumberError,
    LosslessMirrorError,
    MissingDirectoryError,
    MissingTrackSeparatorError,
    TagDerivationError,
    TaggingError,
    TagWriteError,
)
from lossless_mirror.core.formats import AudioFormat, EncodingOptions
from lossless_mirror.core.models import AudioJob, ConversionOutcome, CoverJob, FileMapping

__all__ = [
    "LosslessMirrorError",
    "ConfigError",
    "InvalidDirectoryError",
    "EncodingError",
    "TaggingError",
    "TagDerivationError",
    "MissingDirectoryError",
    "MissingTrackSeparatorError",
    "InvalidTrackNumberError",
    "TagWriteError",
    "CoverArtError",
    "AudioFormat",
    "EncodingOptions",
    "FileMapping",
    "AudioJob",
    "CoverJob",
    "ConversionOutcome",
]
