"""
Encoder interface.

An encoder turns one source audio file into one target file in the
format given by EncodingOptions. Implementations must:

    - create missing parent directories of the target
    - drop all source metadata (tags are written afterwards)
    - apply the compression level only for formats that support it
    - remove any partial output and raise EncodingError on failure

Encoders are shared by all worker threads and must keep no per-call state.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from lossless_mirror.core.exceptions import EncodingError
from lossless_mirror.core.formats import EncodingOptions
from lossless_mirror.core.logger import get_logger


logger = get_logger(__name__)


class Encoder(ABC):
    """Boundary capability: encode(source, target, options)."""

    name = "encoder"

    @abstractmethod
    def encode(self, source: Path, target: Path, options: EncodingOptions) -> None:
        """
        Encode source into target.

        Raises:
            EncodingError: If the target could not be produced. No file is
                           left at the target path in that case.
        """

    @staticmethod
    def _prepare_target(target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EncodingError(
                f"Cannot create output directory {target.parent}: {e.strerror or e}",
                details={"target": str(target), "original_error": str(e)}
            ) from e

    @staticmethod
    def _remove_partial(target: Path) -> None:
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove partial file {target}: {e}")
