"""
pydub encoder backend.

Decodes the source into an AudioSegment and exports it through pydub's
ffmpeg converter. Useful where pydub is already configured with a custom
converter (AudioSegment.converter); otherwise the ffmpeg backend is
preferred since it streams instead of loading the whole file in memory.

The per-file timeout is not supported by pydub and is ignored.
"""

from pathlib import Path

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from lossless_mirror.core.exceptions import EncodingError
from lossless_mirror.core.formats import EncodingOptions
from lossless_mirror.core.logger import get_logger
from lossless_mirror.encoding.base import Encoder


logger = get_logger(__name__)


class PydubEncoder(Encoder):
    name = "pydub"

    def export_parameters(self, options: EncodingOptions) -> list[str]:
        """Extra ffmpeg arguments passed to AudioSegment.export()."""
        parameters = ["-map_metadata", "-1"]
        if options.effective_compression_level is not None:
            parameters += ["-compression_level", str(options.effective_compression_level)]
        return parameters

    def encode(self, source: Path, target: Path, options: EncodingOptions) -> None:
        self._prepare_target(target)

        try:
            audio = AudioSegment.from_file(str(source))
            if options.sample_rate:
                audio = audio.set_frame_rate(options.sample_rate)

            out_f = audio.export(
                str(target),
                format=options.format.container,
                codec=options.format.codec_name,
                parameters=self.export_parameters(options),
            )
            out_f.close()
        except (CouldntDecodeError, CouldntEncodeError, OSError) as e:
            self._remove_partial(target)
            raise EncodingError(
                f"pydub failed to encode {source.name}: {e}",
                details={"source": str(source), "target": str(target), "original_error": str(e)}
            ) from e
        except BaseException:
            self._remove_partial(target)
            raise

        logger.debug(f"Encoded {source.name} with pydub")
