# tests/test_discovery.py
"""Test classification, path mapping and the discovery walk"""

import os
from pathlib import Path

import pytest

from lossless_mirror.core.exceptions import CoverArtError
from lossless_mirror.core.formats import AudioFormat, EncodingOptions
from lossless_mirror.discovery.classifier import FileKind, classify, cover_mime_type
from lossless_mirror.discovery.mapper import identity, map_target, swap_extension
from lossless_mirror.discovery.scanner import discover

from conftest import write_wav


class TestClassifier:
    """Test content-based file classification"""

    def test_valid_wav_is_audio_source(self, temp_dir):
        """A readable WAV header makes an audio source"""
        path = write_wav(temp_dir / "01 Song.wav")
        assert classify(path, "cover.jpg") is FileKind.AUDIO_SOURCE

    def test_extensionless_wav_is_audio_source(self, temp_dir):
        """Detection does not depend on the extension"""
        path = write_wav(temp_dir / "01 Song")
        assert classify(path, "cover.jpg") is FileKind.AUDIO_SOURCE

    def test_corrupt_wav_is_skipped(self, temp_dir):
        """A .wav file with a garbage header is skipped"""
        path = temp_dir / "01 Song.wav"
        path.write_bytes(b"this is not a riff header at all")
        assert classify(path, "cover.jpg") is FileKind.SKIP

    def test_truncated_wav_is_skipped(self, temp_dir):
        """A WAV cut inside its header is skipped"""
        path = write_wav(temp_dir / "01 Song.wav")
        path.write_bytes(path.read_bytes()[:20])
        assert classify(path, "cover.jpg") is FileKind.SKIP

    def test_empty_file_is_skipped(self, temp_dir):
        path = temp_dir / "empty.wav"
        path.touch()
        assert classify(path, "cover.jpg") is FileKind.SKIP

    def test_cover_detected_by_exact_name(self, temp_dir):
        """Cover detection only compares the file name"""
        cover = temp_dir / "cover.jpg"
        cover.write_bytes(b"not even an image")
        assert classify(cover, "cover.jpg") is FileKind.COVER_ART
        assert classify(temp_dir / "Cover.jpg", "cover.jpg") is not FileKind.COVER_ART

    def test_cover_mime_types(self):
        """Allowed cover extensions map to their MIME type"""
        assert cover_mime_type(Path("cover.jpg")) == "image/jpeg"
        assert cover_mime_type(Path("cover.JPEG")) == "image/jpeg"
        assert cover_mime_type(Path("folder.png")) == "image/png"
        assert cover_mime_type(Path("art.tif")) == "image/tiff"

    def test_unsupported_cover_type(self):
        with pytest.raises(CoverArtError):
            cover_mime_type(Path("cover.webp"))


class TestMapper:
    """Test source to destination path mapping"""

    def test_mirrors_path_with_new_extension(self, temp_dir):
        """Audio paths keep their layout and get the target extension"""
        source_root = temp_dir / "src"
        dest_root = temp_dir / "dst"
        source = source_root / "A" / "B" / "01 Song.wav"

        target = map_target(source, source_root, dest_root, swap_extension("flac"))

        assert target == dest_root / "A" / "B" / "01 Song.flac"

    def test_identity_for_covers(self, temp_dir):
        source = temp_dir / "src" / "A" / "B" / "cover.jpg"
        target = map_target(source, temp_dir / "src", temp_dir / "dst", identity)
        assert target == temp_dir / "dst" / "A" / "B" / "cover.jpg"

    def test_extension_added_when_missing(self):
        assert swap_extension("m4a")(Path("/dst/A/B/01 Song")) == Path("/dst/A/B/01 Song.m4a")

    def test_existing_target_is_filtered(self, temp_dir):
        """An existing target means there is nothing left to do"""
        source_root = temp_dir / "src"
        dest_root = temp_dir / "dst"
        existing = dest_root / "A" / "B" / "01 Song.flac"
        existing.parent.mkdir(parents=True)
        existing.touch()

        source = source_root / "A" / "B" / "01 Song.wav"
        assert map_target(source, source_root, dest_root, swap_extension("flac")) is None

    def test_source_outside_root(self, temp_dir):
        assert map_target(Path("/elsewhere/01 Song.wav"), temp_dir / "src", temp_dir / "dst") is None


class TestDiscover:
    """Test the discovery walk"""

    def test_finds_audio_and_cover_jobs(self, library):
        source, dest = library

        result = discover(source, dest, "flac", "cover.jpg")

        targets = sorted(job.target_path.name for job in result.audio_jobs)
        assert targets == ["01 Pigs on the Wing.flac", "02 Dogs.flac", "03 Sheep.flac"]
        assert [job.target_path for job in result.cover_jobs] == [
            dest / "Pink Floyd" / "Animals" / "cover.jpg"
        ]
        assert result.unrecognized == 1  # notes.txt
        assert result.audio_found == 3

    def test_result_unpacks_into_job_lists(self, library):
        source, dest = library
        audio_jobs, cover_jobs = discover(source, dest, "flac", "cover.jpg")
        assert len(audio_jobs) == 3
        assert len(cover_jobs) == 1

    def test_jobs_carry_options(self, library):
        source, dest = library
        options = EncodingOptions(format=AudioFormat.ALAC)

        result = discover(source, dest, options.format.extension, "cover.jpg", options=options)

        assert all(job.options is options for job in result.audio_jobs)
        assert all(job.target_path.suffix == ".m4a" for job in result.audio_jobs)

    def test_deterministic_order(self, library):
        source, dest = library
        first = discover(source, dest, "flac", "cover.jpg")
        second = discover(source, dest, "flac", "cover.jpg")
        assert first.audio_jobs == second.audio_jobs

    def test_rerun_after_conversion_is_empty(self, library):
        """Once every target exists, discovery yields no jobs"""
        source, dest = library
        audio_jobs, cover_jobs = discover(source, dest, "flac", "cover.jpg")
        for job in [*audio_jobs, *cover_jobs]:
            job.target_path.parent.mkdir(parents=True, exist_ok=True)
            job.target_path.touch()

        result = discover(source, dest, "flac", "cover.jpg")

        assert result.audio_jobs == []
        assert result.cover_jobs == []
        assert result.already_converted == 3

    def test_partial_destination_only_yields_missing(self, library):
        source, dest = library
        done = dest / "Pink Floyd" / "Animals" / "02 Dogs.flac"
        done.parent.mkdir(parents=True)
        done.touch()

        audio_jobs, _ = discover(source, dest, "flac", "cover.jpg")

        assert done not in [job.target_path for job in audio_jobs]
        assert len(audio_jobs) == 2

    def test_collisions_are_rejected(self, library):
        """Two sources mapping to one target are both left out"""
        source, dest = library
        album = source / "Pink Floyd" / "Animals"
        write_wav(album / "02 Dogs")  # same target as "02 Dogs.wav"

        result = discover(source, dest, "flac", "cover.jpg")

        targets = [job.target_path.name for job in result.audio_jobs]
        assert "02 Dogs.flac" not in targets
        assert len(result.collisions) == 1
        collision = result.collisions[0]
        assert collision.target_path == dest / "Pink Floyd" / "Animals" / "02 Dogs.flac"
        assert set(collision.sources) == {album / "02 Dogs", album / "02 Dogs.wav"}

        # Consistent on the next run
        again = discover(source, dest, "flac", "cover.jpg")
        assert again.collisions == result.collisions

    def test_collision_with_converted_target_is_reported(self, library, caplog):
        """A new source clashing with an already converted file is still logged"""
        source, dest = library
        album = source / "Pink Floyd" / "Animals"
        converted = dest / "Pink Floyd" / "Animals" / "02 Dogs.flac"
        converted.parent.mkdir(parents=True)
        converted.write_bytes(b"converted")
        write_wav(album / "02 Dogs")

        with caplog.at_level("WARNING", logger="lossless_mirror"):
            result = discover(source, dest, "flac", "cover.jpg")

        assert len(result.collisions) == 1
        assert result.collisions[0].target_path == converted
        assert result.already_converted == 0
        assert len(result.audio_jobs) == 2
        assert "would all be written to" in caplog.text
        assert converted.read_bytes() == b"converted"

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_follows_symlinks_without_looping(self, library):
        """Linked directories are walked, cycles are visited once"""
        source, dest = library
        outside = source.parent / "extra" / "Artist" / "Album"
        write_wav(outside / "01 Linked.wav")
        os.symlink(source.parent / "extra" / "Artist", source / "Artist")
        os.symlink(source, source / "Pink Floyd" / "loop")

        result = discover(source, dest, "flac", "cover.jpg")

        targets = sorted(str(job.target_path.relative_to(dest)) for job in result.audio_jobs)
        assert os.path.join("Artist", "Album", "01 Linked.flac") in targets
        assert len(targets) == 4

    def test_destination_inside_source_is_not_walked(self, library):
        source, _ = library
        dest = source / "converted"
        (dest / "Pink Floyd" / "Animals").mkdir(parents=True)
        (dest / "Pink Floyd" / "Animals" / "cover.jpg").write_bytes(b"copied")

        result = discover(source, dest, "flac", "cover.jpg")

        assert result.scanned == 5  # the three WAVs, cover.jpg and notes.txt
        assert result.cover_jobs == []

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="permissions not enforced")
    def test_unreadable_directory_is_skipped(self, library):
        """A directory that cannot be listed is counted and skipped"""
        source, dest = library
        locked = source / "Locked" / "Album"
        write_wav(locked / "01 Hidden.wav")
        locked.chmod(0)
        try:
            result = discover(source, dest, "flac", "cover.jpg")
        finally:
            locked.chmod(0o755)

        assert result.walk_errors == 1
        assert len(result.audio_jobs) == 3
