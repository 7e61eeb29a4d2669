"""
ffmpeg-python encoder backend (default).

Equivalent command line:

    ffmpeg -nostdin -hide_banner -loglevel error \\
        -i SOURCE -map_metadata -1 -acodec CODEC [-compression_level N] [-ar RATE] \\
        -f CONTAINER -y TARGET

The process output is captured; on failure the last lines of stderr are
included in the EncodingError message and the full text in details.
"""

import subprocess
from pathlib import Path

import ffmpeg

from lossless_mirror.core.exceptions import EncodingError
from lossless_mirror.core.formats import EncodingOptions
from lossless_mirror.core.logger import get_logger
from lossless_mirror.encoding.base import Encoder


logger = get_logger(__name__)

# Number of stderr lines kept in the error message
_STDERR_TAIL = 3


class FfmpegEncoder(Encoder):
    """
    Encoder running one ffmpeg process per file.

    Attributes:
        ffmpeg_path: ffmpeg executable to run.
        timeout: Seconds after which a running ffmpeg is killed and the job
                 fails. None waits indefinitely.
    """

    name = "ffmpeg"

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float | None = None) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def build_stream(self, source: Path, target: Path, options: EncodingOptions):
        """Build the ffmpeg-python stream for one conversion (not run)."""
        output_args = {
            "map_metadata": -1,
            "acodec": options.format.codec_name,
            "f": options.format.container,
        }
        if options.effective_compression_level is not None:
            output_args["compression_level"] = options.effective_compression_level
        if options.sample_rate:
            output_args["ar"] = options.sample_rate

        return (
            ffmpeg
            .input(str(source))
            .output(str(target), **output_args)
            .global_args("-nostdin", "-hide_banner", "-loglevel", "error")
            .overwrite_output()
        )

    def encode(self, source: Path, target: Path, options: EncodingOptions) -> None:
        self._prepare_target(target)
        stream = self.build_stream(source, target, options)
        logger.debug(f"Running: {' '.join(stream.compile(cmd=self.ffmpeg_path))}")

        try:
            process = stream.run_async(cmd=self.ffmpeg_path, pipe_stdout=True, pipe_stderr=True)
        except FileNotFoundError as e:
            raise EncodingError(
                f"ffmpeg executable not found: {self.ffmpeg_path}",
                details={"source": str(source), "original_error": str(e)}
            ) from e

        try:
            _, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            self._remove_partial(target)
            raise EncodingError(
                f"Encoding {source.name} timed out after {self.timeout:g}s",
                details={"source": str(source), "target": str(target)}
            ) from None
        except BaseException:
            process.kill()
            process.wait()
            self._remove_partial(target)
            raise

        if process.returncode != 0:
            self._remove_partial(target)
            diagnostic = stderr.decode("utf-8", errors="replace").strip()
            tail = " | ".join(diagnostic.splitlines()[-_STDERR_TAIL:])
            raise EncodingError(
                f"ffmpeg exited with status {process.returncode}"
                + (f": {tail}" if tail else ""),
                details={"source": str(source), "target": str(target), "stderr": diagnostic}
            )

        if not target.is_file():
            raise EncodingError(
                f"ffmpeg produced no output for {source.name}",
                details={"source": str(source), "target": str(target)}
            )
