# tests/test_orchestrator.py
"""Test the conversion pipeline"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from lossless_mirror.core.config import Config
from lossless_mirror.core.exceptions import InvalidDirectoryError, TagWriteError
from lossless_mirror.core.formats import AudioFormat, EncodingOptions
from lossless_mirror.core.models import AudioJob, ConversionOutcome, FileMapping
from lossless_mirror.core.progress import ProgressReporter
from lossless_mirror.encoding import FfmpegEncoder
from lossless_mirror.pipeline.orchestrator import Orchestrator, RunSummary, convert_file, partial_path

from conftest import FakeEncoder, FakeTagger, write_wav


ALBUM = Path("Pink Floyd") / "Animals"


class RecordingProgress(ProgressReporter):
    def __init__(self):
        self.total = None
        self.outcomes = []
        self.finished = False

    def start(self, total):
        self.total = total

    def advance(self, outcome):
        self.outcomes.append(outcome)

    def finish(self):
        self.finished = True


def make_job(temp_dir, name="02 Dogs"):
    source = write_wav(temp_dir / "wav" / ALBUM / f"{name}.wav")
    target = temp_dir / "flac" / ALBUM / f"{name}.flac"
    target.parent.mkdir(parents=True, exist_ok=True)
    return AudioJob(FileMapping(source, target), EncodingOptions())


class TestConvertFile:
    """Test the per-file worker body"""

    def test_success_publishes_target(self, temp_dir):
        job = make_job(temp_dir)
        tagger = FakeTagger()

        outcome = convert_file(job, FakeEncoder(), tagger)

        assert outcome == ConversionOutcome.ok(job)
        assert job.target_path.is_file()
        assert not partial_path(job.target_path).exists()

    def test_tags_partial_file_with_final_path_tags(self, temp_dir):
        """Tags come from the target path, the file tagged is the partial one"""
        job = make_job(temp_dir)
        tagger = FakeTagger()

        convert_file(job, FakeEncoder(), tagger)

        path, tags, audio_format, cover_path = tagger.calls[0]
        assert path == partial_path(job.target_path)
        assert (tags.artist, tags.album, tags.track_number, tags.title) == (
            "Pink Floyd", "Animals", 2, "Dogs"
        )
        assert audio_format is AudioFormat.FLAC
        assert cover_path is None

    def test_passes_existing_cover(self, temp_dir):
        job = make_job(temp_dir)
        cover = job.target_path.parent / "folder.png"
        cover.write_bytes(b"png")
        tagger = FakeTagger()

        convert_file(job, FakeEncoder(), tagger, cover_name="folder.png")

        assert tagger.calls[0][3] == cover

    def test_encoding_failure(self, temp_dir):
        job = make_job(temp_dir)

        outcome = convert_file(job, FakeEncoder(fail_on={"02 Dogs.wav"}), FakeTagger())

        assert not outcome.success
        assert "status 1" in outcome.reason
        assert not job.target_path.exists()

    def test_output_directory_failure_is_an_encoding_failure(self, temp_dir):
        """A destination directory that cannot be created fails the job with context"""
        source = write_wav(temp_dir / "wav" / ALBUM / "02 Dogs.wav")
        blocker = temp_dir / "flac" / "Pink Floyd"
        blocker.parent.mkdir()
        blocker.write_text("not a directory")
        job = AudioJob(FileMapping(source, blocker / "Animals" / "02 Dogs.flac"), EncodingOptions())

        outcome = convert_file(job, FakeEncoder(), FakeTagger())

        assert not outcome.success
        assert outcome.reason.startswith("Cannot create output directory")

    def test_tagging_failure_discards_file(self, temp_dir):
        """An untagged file is never published"""
        job = make_job(temp_dir)
        tagger = FakeTagger(fail_on={"Dogs"}, error=TagWriteError("Failed to write tags"))

        outcome = convert_file(job, FakeEncoder(), tagger)

        assert not outcome.success
        assert outcome.reason == "Failed to write tags"
        assert not job.target_path.exists()
        assert not partial_path(job.target_path).exists()

    def test_tagging_failure_with_keep_untagged(self, temp_dir):
        job = make_job(temp_dir)
        tagger = FakeTagger(fail_on={"Dogs"}, error=TagWriteError("Failed to write tags"))

        outcome = convert_file(job, FakeEncoder(), tagger, keep_untagged=True)

        assert not outcome.success
        assert "untagged file kept" in outcome.reason
        assert job.target_path.is_file()

    def test_underivable_tags(self, temp_dir):
        source = write_wav(temp_dir / "wav" / ALBUM / "Dogs.wav")
        target = temp_dir / "flac" / ALBUM / "Dogs.flac"
        job = AudioJob(FileMapping(source, target), EncodingOptions())

        outcome = convert_file(job, FakeEncoder(), FakeTagger())

        assert not outcome.success
        assert "space" in outcome.reason
        assert not target.exists()

    def test_partial_path(self):
        assert partial_path(Path("/d/01 Song.flac")) == Path("/d/.01 Song.partial.flac")


class TestOrchestrator:
    """Test a complete conversion pass"""

    def test_converts_library(self, library):
        source, dest = library
        encoder = FakeEncoder()
        progress = RecordingProgress()

        summary = Orchestrator(encoder, FakeTagger(), workers=2, progress=progress).run(
            source, dest, EncodingOptions()
        )

        assert summary.discovered == 3
        assert summary.converted == 3
        assert summary.failed == 0
        assert summary.covers_copied == 1
        album = dest / ALBUM
        assert (album / "cover.jpg").read_bytes() == (source / ALBUM / "cover.jpg").read_bytes()
        assert sorted(p.name for p in album.glob("*.flac")) == [
            "01 Pigs on the Wing.flac", "02 Dogs.flac", "03 Sheep.flac"
        ]
        assert progress.total == 3
        assert len(progress.outcomes) == 3
        assert progress.finished

    def test_partial_failure_is_isolated(self, library):
        """One failing job does not affect the others"""
        source, dest = library
        encoder = FakeEncoder(fail_on={"02 Dogs.wav"})

        summary = Orchestrator(encoder, FakeTagger(), workers=3).run(source, dest, EncodingOptions())

        assert summary.converted == 2
        assert summary.failed == 1
        assert not (dest / ALBUM / "02 Dogs.flac").exists()
        assert (dest / ALBUM / "01 Pigs on the Wing.flac").exists()
        assert (dest / ALBUM / "03 Sheep.flac").exists()

    def test_failed_job_is_retried_next_run(self, library):
        source, dest = library
        Orchestrator(FakeEncoder(fail_on={"02 Dogs.wav"}), FakeTagger()).run(
            source, dest, EncodingOptions()
        )

        encoder = FakeEncoder()
        summary = Orchestrator(encoder, FakeTagger()).run(source, dest, EncodingOptions())

        assert summary.converted == 1
        assert summary.skipped == 2
        assert [call[0].name for call in encoder.calls] == ["02 Dogs.wav"]

    def test_rerun_does_nothing(self, library):
        source, dest = library
        Orchestrator(FakeEncoder(), FakeTagger()).run(source, dest, EncodingOptions())

        encoder = FakeEncoder()
        summary = Orchestrator(encoder, FakeTagger()).run(source, dest, EncodingOptions())

        assert encoder.calls == []
        assert summary.scheduled == 0
        assert summary.success_rate == 100.0

    def test_unexpected_worker_error_becomes_failure(self, library):
        """Every dispatched job yields exactly one outcome"""
        source, dest = library
        encoder = Mock()
        encoder.encode.side_effect = RuntimeError("boom")

        summary = Orchestrator(encoder, FakeTagger(), workers=2).run(source, dest, EncodingOptions())

        assert summary.failed == 3
        assert summary.converted == 0

    def test_dry_run_writes_nothing(self, library):
        source, dest = library
        encoder = FakeEncoder()

        summary = Orchestrator(encoder, FakeTagger()).run(source, dest, EncodingOptions(), dry_run=True)

        assert summary.dry_run
        assert summary.discovered == 3
        assert encoder.calls == []
        assert list(dest.iterdir()) == []

    def test_cover_copy_failure_does_not_stop_audio(self, library, monkeypatch):
        source, dest = library

        def broken_copy(src, dst):
            raise PermissionError("denied")

        monkeypatch.setattr("lossless_mirror.pipeline.orchestrator.shutil.copyfile", broken_copy)
        summary = Orchestrator(FakeEncoder(), FakeTagger()).run(source, dest, EncodingOptions())

        assert summary.cover_failures == 1
        assert summary.converted == 3

    def test_collisions_are_counted(self, library):
        source, dest = library
        write_wav(source / ALBUM / "02 Dogs")

        summary = Orchestrator(FakeEncoder(), FakeTagger()).run(source, dest, EncodingOptions())

        assert summary.collisions == 1
        assert summary.converted == 2
        assert summary.skipped == 2

    def test_invalid_roots(self, temp_dir):
        orchestrator = Orchestrator(FakeEncoder(), FakeTagger())
        (temp_dir / "src").mkdir()

        with pytest.raises(InvalidDirectoryError) as exc_info:
            orchestrator.run(temp_dir / "missing", temp_dir, EncodingOptions())
        assert exc_info.value.role == "source"

        file_dest = temp_dir / "file"
        file_dest.touch()
        with pytest.raises(InvalidDirectoryError) as exc_info:
            orchestrator.run(temp_dir / "src", file_dest, EncodingOptions())
        assert exc_info.value.role == "destination"

    def test_from_config(self):
        config = Config().with_overrides(
            conversion={"timeout": 60, "keep_untagged": True},
            library={"cover_name": "folder.jpg", "embed_cover": False},
            runtime={"threads": 3},
        )

        orchestrator = Orchestrator.from_config(config)

        assert isinstance(orchestrator.encoder, FfmpegEncoder)
        assert orchestrator.encoder.timeout == 60
        assert orchestrator.tagger.embed_cover is False
        assert orchestrator.cover_name == "folder.jpg"
        assert orchestrator.workers == 3
        assert orchestrator.keep_untagged is True


class TestRunSummary:
    def test_success_rate(self):
        summary = RunSummary(converted=3, failed=1)
        assert summary.scheduled == 4
        assert summary.success_rate == 75.0

