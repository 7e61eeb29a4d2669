"""
Command-line interface for lossless-mirror.

    lossless-mirror [OPTIONS] SOURCE DEST

Converts every WAV/AIFF file found under SOURCE to FLAC (or ALAC) under
DEST, mirroring the directory layout, copying album covers and tagging
each file from its <artist>/<album>/<NN> <title> path. Files that already
exist under DEST are skipped, so the command can be re-run to pick up new
or previously failed files.

Exit Status:
    0    Run completed (individual files may have failed, see the log)
    1    Fatal error: invalid directories or configuration
    130  Interrupted with Ctrl-C
"""

import functools
import sys
from pathlib import Path

import click

from lossless_mirror import __version__
from lossless_mirror.core.config import ENCODER_BACKENDS, load_config
from lossless_mirror.core.exceptions import LosslessMirrorError
from lossless_mirror.core.formats import AudioFormat
from lossless_mirror.core.logger import get_logger, setup_logging, shutdown_logging
from lossless_mirror.core.progress import NullProgressReporter, TqdmProgressReporter
from lossless_mirror.pipeline.orchestrator import Orchestrator


logger = get_logger(__name__)


def handle_error(func):
    """
    Decorator turning errors into exit codes.

    Fatal LosslessMirrorError (invalid directory, invalid config) exits
    with 1, Ctrl-C with 130. Logging is always shut down so the log file
    and failure report are flushed.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nConversion cancelled by user", fg="yellow"), err=True)
            sys.exit(130)
        except LosslessMirrorError as e:
            logger.debug(f"Fatal error: {e.message} {e.details}")
            click.echo(click.style(f"Error: {e}", fg="red"), err=True)
            sys.exit(1)
        finally:
            shutdown_logging()
    return wrapper


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("source", type=click.Path(path_type=Path))
@click.argument("dest", type=click.Path(path_type=Path))
@click.option("--format", "-f", "audio_format",
              type=click.Choice([f.codec_name for f in AudioFormat], case_sensitive=False),
              help="Target lossless format [default: flac]")
@click.option("--compression", "-c", type=int,
              help="FLAC compression level, 0 (fastest) to 12 (smallest) [default: 4]")
@click.option("--sample-rate", "-r", type=int, help="Resample output to this rate in Hz")
@click.option("--encoder", "-e", type=click.Choice(ENCODER_BACKENDS, case_sensitive=False),
              help="Encoding backend [default: ffmpeg]")
@click.option("--threads", "-j", type=int, help="Number of parallel conversions [default: CPU count]")
@click.option("--cover-name", help="File name of album covers [default: cover.jpg]")
@click.option("--no-embed-cover", is_flag=True, help="Copy covers but do not embed them")
@click.option("--keep-untagged", is_flag=True, help="Keep encoded files whose tagging failed")
@click.option("--quiet", "-q", is_flag=True, help="No console output or progress bar")
@click.option("--debug", "-d", is_flag=True, help="Show debug messages")
@click.option("--dry-run", is_flag=True, help="Show what would be converted without writing anything")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config file")
@click.option("--log-file", type=click.Path(path_type=Path), help="Write a detailed log to this file")
@click.version_option(__version__, prog_name="lossless-mirror")
@handle_error
def cli(
    source: Path,
    dest: Path,
    audio_format: str | None,
    compression: int | None,
    sample_rate: int | None,
    encoder: str | None,
    threads: int | None,
    cover_name: str | None,
    no_embed_cover: bool,
    keep_untagged: bool,
    quiet: bool,
    debug: bool,
    dry_run: bool,
    config_path: Path | None,
    log_file: Path | None
) -> None:
    """
    Mirror a tree of WAV files into FLAC or ALAC.

    SOURCE is scanned recursively (symbolic links are followed) and every
    converted file is written under DEST at the same relative path.
    """
    config = load_config(config_path).with_overrides(
        conversion={
            "format": audio_format,
            "compression_level": compression,
            "sample_rate": sample_rate,
            "encoder": encoder,
            "keep_untagged": True if keep_untagged else None,
        },
        library={
            "cover_name": cover_name,
            "embed_cover": False if no_embed_cover else None,
        },
        runtime={"threads": threads},
        logging={
            "level": "DEBUG" if debug else None,
            "file": log_file,
            "quiet": True if quiet else None,
        },
    )

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        colored=config.logging.colored,
        max_size=config.logging.max_size,
        backup_count=config.logging.backup_count,
        quiet=config.logging.quiet,
    )

    options = config.conversion.encoding_options()
    if options.compression_level is not None and not options.format.supports_compression:
        logger.debug(
            f"Ignoring compression level {options.compression_level}: "
            f"not supported by {options.format.name}"
        )

    progress = NullProgressReporter() if config.logging.quiet else TqdmProgressReporter()
    orchestrator = Orchestrator.from_config(config, progress=progress)
    orchestrator.run(source, dest, options, dry_run=dry_run)


if __name__ == "__main__":
    cli()
