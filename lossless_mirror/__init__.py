"""
lossless-mirror: mirror a tree of WAV recordings into a tagged FLAC/ALAC library.

Sources are discovered by content, converted by a pool of worker threads
and tagged from their <artist>/<album>/<NN> <title> location. Re-running
over the same trees only converts what is missing.

Package Layout:
    core       - errors, formats, job models, configuration, logging, progress
    discovery  - classification, path mirroring and the tree walk
    encoding   - ffmpeg-python and pydub encoder backends
    tagging    - tag derivation and mutagen tag writing
    pipeline   - the orchestrator running a conversion pass
    cli        - the lossless-mirror command

Usage:
    from lossless_mirror import Orchestrator, Tagger, create_encoder, EncodingOptions

    orchestrator = Orchestrator(create_encoder("ffmpeg"), Tagger())
    summary = orchestrator.run(Path("wav"), Path("flac"), EncodingOptions())
"""

__version__ = "1.0.0"

from lossless_mirror.core.formats import AudioFormat, EncodingOptions
from lossless_mirror.discovery.scanner import discover
from lossless_mirror.encoding import create_encoder
from lossless_mirror.pipeline.orchestrator import Orchestrator, RunSummary, convert_file
from lossless_mirror.tagging import Tagger, derive_tags

__all__ = [
    "__version__",
    "AudioFormat",
    "EncodingOptions",
    "discover",
    "create_encoder",
    "Orchestrator",
    "RunSummary",
    "convert_file",
    "Tagger",
    "derive_tags",
]
