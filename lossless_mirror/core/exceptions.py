"""
Exception classes for lossless-mirror.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message and an optional dictionary
of details, and the hierarchy separates fatal errors (which stop the run
before any conversion starts) from per-job errors (which are logged and
counted, but never abort the batch).

Exception Hierarchy:
    LosslessMirrorError (base)
        ConfigError - Configuration issues (FATAL)
            InvalidDirectoryError - Source/destination root is not a directory (FATAL)
        EncodingError - Transcoding of one file failed
        TaggingError - Writing metadata to one file failed
            TagDerivationError - Tags could not be inferred from the path
                MissingDirectoryError
                MissingTrackSeparatorError
                InvalidTrackNumberError
            TagWriteError - mutagen could not write the container
            CoverArtError - Cover image cannot be embedded
"""

from pathlib import Path


class LosslessMirrorError(Exception):
    """
    Base exception for all lossless-mirror errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (paths, diagnostics).

    Example:
        try:
            run_conversion(...)
        except LosslessMirrorError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context about
                     the error. Common keys include 'path', 'source', 'target'
                     and 'original_error'.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(LosslessMirrorError):
    """
    Raised when the configuration is invalid.

    This is a CRITICAL error that stops the run before discovery.

    Common causes:
        - The YAML file has invalid syntax or a section is not a mapping
        - Unknown output format or encoder backend
        - Non-positive thread count, out-of-range compression level

    Example:
        raise ConfigError(
            "'conversion.compression_level' must be between 0 and 12",
            details={'field': 'conversion.compression_level', 'value': 42}
        )
    """
    pass


class InvalidDirectoryError(ConfigError):
    """
    Raised when the source or destination root is not an existing directory.

    Both roots are validated before discovery begins; nothing is
    converted when this is raised.
    """

    def __init__(self, path: Path, role: str) -> None:
        super().__init__(
            f"{path} is not a directory",
            details={"path": str(path), "role": role}
        )
        self.path = path
        self.role = role


class EncodingError(LosslessMirrorError):
    """
    Raised when the encoder fails to produce a target file.

    This is a NON-CRITICAL error: the job is reported as failed and the
    rest of the batch continues.

    Common causes:
        - ffmpeg exited with a non-zero status (diagnostic in details['stderr'])
        - ffmpeg binary not installed
        - Encoding timed out
        - Disk full or permission denied on the destination
    """
    pass


class TaggingError(LosslessMirrorError):
    """
    Base class for errors raised while tagging an encoded file.

    This is a NON-CRITICAL error: the job is reported as failed.
    """
    pass


class TagDerivationError(TaggingError):
    """
    Raised when artist/album/track/title cannot be inferred from a path.

    The expected layout is .../<artist>/<album>/<NN> <title>.<ext>
    """
    pass


class MissingDirectoryError(TagDerivationError):
    """Raised when the target path has fewer than two named ancestor directories."""
    pass


class MissingTrackSeparatorError(TagDerivationError):
    """Raised when the file name contains no space between track number and title."""
    pass


class InvalidTrackNumberError(TagDerivationError):
    """Raised when the file name prefix is not a non-negative integer."""
    pass


class TagWriteError(TaggingError):
    """
    Raised when mutagen fails to open or save the target container.

    Example:
        raise TagWriteError(
            "Failed to write tags",
            details={'path': '/dst/Artist/Album/01 Song.flac', 'original_error': 'No such file'}
        )
    """
    pass


class CoverArtError(TaggingError):
    """
    Raised when a cover image cannot be embedded.

    Only affects the picture: the Tagger logs it and still writes the
    text tags.
    """
    pass
