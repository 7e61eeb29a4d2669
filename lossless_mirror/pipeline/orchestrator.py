"""
Conversion orchestrator.

Runs one conversion pass over a source tree:

    1. Validate the source and destination roots (fatal on error)
    2. Discover audio and cover jobs (single-threaded)
    3. Create every destination directory and copy covers (single-threaded)
    4. Dispatch audio jobs to a fixed-size thread pool; each worker encodes,
       tags and publishes one file, then puts exactly one
       ConversionOutcome on the results queue
    5. Drain exactly as many outcomes as jobs were dispatched, then shut
       the pool down and report a summary

Step 3 completes before any worker starts, so workers never race on
directory creation and every embedded cover is already in place.

Per-job failures never abort the run: they are logged, written to the
failure report and counted. Only invalid roots or configuration stop
the run.

Usage:
    orchestrator = Orchestrator(create_encoder("ffmpeg"), Tagger())
    summary = orchestrator.run(Path("/music/wav"), Path("/music/flac"), EncodingOptions())
    print(f"{summary.converted} converted, {summary.failed} failed")
"""

import os
import queue
import shutil
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from lossless_mirror.core.config import Config
from lossless_mirror.core.exceptions import EncodingError, InvalidDirectoryError, TaggingError
from lossless_mirror.core.formats import EncodingOptions
from lossless_mirror.core.logger import get_logger, log_conversion_failure
from lossless_mirror.core.models import AudioJob, ConversionOutcome, CoverJob
from lossless_mirror.core.progress import NullProgressReporter, ProgressReporter
from lossless_mirror.discovery.scanner import DiscoveryResult, discover
from lossless_mirror.encoding import Encoder, create_encoder
from lossless_mirror.tagging.deriver import derive_tags
from lossless_mirror.tagging.tagger import Tagger


logger = get_logger(__name__)


@dataclass
class RunSummary:
    """
    Counters of one conversion pass.

    Attributes:
        discovered: Audio sources found in the source tree.
        skipped: Audio sources not scheduled (target exists or collision).
        converted: Files encoded, tagged and published.
        failed: Jobs that did not produce a (tagged) target.
        covers_copied: Cover images copied.
        cover_failures: Cover images that could not be copied.
        collisions: Targets claimed by several sources.
        elapsed: Wall-clock seconds spent converting.
        dry_run: True if nothing was written.
    """

    discovered: int = 0
    skipped: int = 0
    converted: int = 0
    failed: int = 0
    covers_copied: int = 0
    cover_failures: int = 0
    collisions: int = 0
    elapsed: float = 0.0
    dry_run: bool = False

    @property
    def scheduled(self) -> int:
        return self.converted + self.failed

    @property
    def success_rate(self) -> float:
        """Percentage of scheduled jobs that succeeded (100.0 if none)."""
        if self.scheduled == 0:
            return 100.0
        return (self.converted / self.scheduled) * 100


def partial_path(target: Path) -> Path:
    """Hidden work file next to the target: "01 Song.flac" -> ".01 Song.partial.flac"."""
    return target.with_name(f".{target.stem}.partial{target.suffix}")


def convert_file(
    job: AudioJob,
    encoder: Encoder,
    tagger: Tagger,
    cover_name: str = "cover.jpg",
    keep_untagged: bool = False
) -> ConversionOutcome:
    """
    Encode, tag and publish one audio file.

    The file is encoded into a hidden partial path, tagged there, and only
    then renamed onto the target. A failed job therefore never leaves a
    file at the target path, and the next run retries it.

    Tags are derived from the final target path; the cover embedded is
    <target directory>/<cover_name> when it exists.

    Args:
        job: The job to execute.
        encoder: Encoder backend.
        tagger: Tag writer.
        cover_name: File name of album covers.
        keep_untagged: On a tagging failure, publish the encoded file
                       anyway. The job is still reported as failed.

    Returns:
        ConversionOutcome: Success, or failure with the cause.
    """
    target = job.target_path
    work_path = partial_path(target)

    try:
        encoder.encode(job.source_path, work_path, job.options)
    except EncodingError as e:
        return ConversionOutcome.failure(job, str(e))

    try:
        try:
            tags = derive_tags(target)
            cover = target.parent / cover_name
            tagger.tag(
                work_path,
                tags,
                job.options.format,
                cover_path=cover if cover.is_file() else None
            )
        except TaggingError as e:
            if not keep_untagged:
                _discard(work_path)
                return ConversionOutcome.failure(job, str(e))
            os.replace(work_path, target)
            return ConversionOutcome.failure(job, f"{e} (untagged file kept)")

        os.replace(work_path, target)
    except OSError as e:
        _discard(work_path)
        return ConversionOutcome.failure(job, f"Cannot publish {target.name}: {e}")
    except BaseException:
        _discard(work_path)
        raise

    return ConversionOutcome.ok(job)


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")


class Orchestrator:
    """
    Coordinates discovery, preparation and the worker pool for one run.

    The encoder, tagger and encoding options are shared read-only by all
    workers. The progress reporter is only called from the coordinating
    thread.

    Attributes:
        encoder: Encoder backend used by every worker.
        tagger: Tag writer used by every worker.
        cover_name: File name of album covers.
        workers: Thread pool size.
        keep_untagged: See convert_file().
        progress: Progress reporter.
    """

    def __init__(
        self,
        encoder: Encoder,
        tagger: Tagger,
        cover_name: str = "cover.jpg",
        workers: int | None = None,
        keep_untagged: bool = False,
        progress: ProgressReporter | None = None
    ) -> None:
        self.encoder = encoder
        self.tagger = tagger
        self.cover_name = cover_name
        self.workers = workers or os.cpu_count() or 1
        self.keep_untagged = keep_untagged
        self.progress = progress or NullProgressReporter()

    @classmethod
    def from_config(cls, config: Config, progress: ProgressReporter | None = None) -> "Orchestrator":
        """Build an orchestrator with the encoder and tagger described by config."""
        return cls(
            encoder=create_encoder(config.conversion.encoder, timeout=config.conversion.timeout),
            tagger=Tagger(embed_cover=config.library.embed_cover),
            cover_name=config.library.cover_name,
            workers=config.runtime.worker_count,
            keep_untagged=config.conversion.keep_untagged,
            progress=progress,
        )

    def run(
        self,
        source_root: Path,
        dest_root: Path,
        options: EncodingOptions,
        dry_run: bool = False
    ) -> RunSummary:
        """
        Mirror source_root into dest_root.

        Args:
            source_root: Existing source directory.
            dest_root: Existing destination directory.
            options: Encoding options for every audio job.
            dry_run: Only discover and log what would be done.

        Returns:
            RunSummary: Counters of the run.

        Raises:
            InvalidDirectoryError: If either root is not a directory.
        """
        source_root = Path(source_root)
        dest_root = Path(dest_root)
        validate_roots(source_root, dest_root)

        result = discover(
            source_root,
            dest_root,
            options.format.extension,
            self.cover_name,
            options=options
        )
        summary = RunSummary(
            discovered=result.audio_found,
            skipped=result.already_converted + sum(
                1 for collision in result.collisions for _ in collision.sources
            ),
            collisions=len(result.collisions),
            dry_run=dry_run,
        )

        if dry_run:
            self._log_plan(result)
            return summary

        self._prepare_destination(result, summary)

        start = time.monotonic()
        self._convert_all(result.audio_jobs, summary)
        summary.elapsed = time.monotonic() - start

        self._log_summary(summary, options)
        return summary

    def _prepare_destination(self, result: DiscoveryResult, summary: RunSummary) -> None:
        """Create all destination directories, then copy covers."""
        directories = {job.target_path.parent for job in result.audio_jobs}
        directories.update(job.target_path.parent for job in result.cover_jobs)
        for directory in sorted(directories):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Cannot create directory {directory}: {e}")

        for job in result.cover_jobs:
            if self._copy_cover(job):
                summary.covers_copied += 1
            else:
                summary.cover_failures += 1

    def _copy_cover(self, job: CoverJob) -> bool:
        try:
            shutil.copyfile(job.source_path, job.target_path)
        except OSError as e:
            logger.error(f"Failed to copy cover {job.source_path}: {e}")
            return False
        logger.debug(f"Copied cover {job.source_path} -> {job.target_path}")
        return True

    def _convert_all(self, jobs: list[AudioJob], summary: RunSummary) -> None:
        if not jobs:
            return

        results: queue.Queue[ConversionOutcome] = queue.Queue()

        def worker(job: AudioJob) -> None:
            try:
                outcome = convert_file(
                    job, self.encoder, self.tagger, self.cover_name, self.keep_untagged
                )
            except Exception as e:
                logger.debug(f"Unexpected error converting {job.source_path}", exc_info=True)
                outcome = ConversionOutcome.failure(job, f"Unexpected error: {e}")
            results.put(outcome)

        logger.info(f"Converting {len(jobs)} files with {self.workers} workers")
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="convert")
        self.progress.start(len(jobs))
        try:
            for job in jobs:
                executor.submit(worker, job)

            for _ in range(len(jobs)):
                outcome = results.get()
                if outcome.success:
                    summary.converted += 1
                    logger.debug(f"Converted {outcome.job.target_path}")
                else:
                    summary.failed += 1
                    log_conversion_failure(
                        logger, outcome.job.source_path, outcome.job.target_path, outcome.reason
                    )
                self.progress.advance(outcome)
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        else:
            executor.shutdown(wait=True)
        finally:
            self.progress.finish()

    def _log_plan(self, result: DiscoveryResult) -> None:
        for job in result.cover_jobs:
            logger.info(f"Would copy {job.source_path} -> {job.target_path}")
        for job in result.audio_jobs:
            logger.info(f"Would convert {job.source_path} -> {job.target_path}")
        logger.info(
            f"Dry run: {len(result.audio_jobs)} files to convert, "
            f"{len(result.cover_jobs)} covers to copy"
        )

    def _log_summary(self, summary: RunSummary, options: EncodingOptions) -> None:
        if summary.scheduled == 0:
            logger.info(f"All files are already converted to {options.format.name}.")
            return

        logger.info(
            f"Conversion completed in {summary.elapsed:.1f}s: {summary.converted} converted, "
            f"{summary.failed} failed, {summary.skipped} skipped, "
            f"{summary.covers_copied} covers copied"
        )
        if summary.failed:
            logger.warning(f"{summary.failed} files failed to convert ({summary.success_rate:.1f}% success)")


def validate_roots(source_root: Path, dest_root: Path) -> None:
    """
    Check both roots before discovery.

    Raises:
        InvalidDirectoryError: If either path is not an existing directory.
    """
    if not source_root.is_dir():
        raise InvalidDirectoryError(source_root, "source")
    if not dest_root.is_dir():
        raise InvalidDirectoryError(dest_root, "destination")
