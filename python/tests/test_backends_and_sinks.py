"""
Tests for compression backends, download sinks and archive verification.
"""

import io
import os
import shutil
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest.mock import patch

from export_ops import (
    ArchiveVerifier,
    CancellationError,
    CancellationToken,
    DeflateCompressionBackend,
    DirectorySink,
    DownloadError,
    FileEntry,
    MemorySink,
    NullCompressionBackend,
    ValidationError,
    ZipArchiveWriter,
)
from settings import ExportSettings


class TestDeflateCompressionBackend(unittest.TestCase):
    def setUp(self):
        self.backend = DeflateCompressionBackend(compression_level=9)

    def test_builds_deflated_archive(self):
        entries = [
            FileEntry(name="frame-000.png", data=b"a" * 1000),
            FileEntry(name="dir\\info.txt", data=b"info"),
        ]

        data = self.backend.build(entries, "out.zip")

        with zipfile.ZipFile(io.BytesIO(data)) as zipf:
            self.assertIsNone(zipf.testzip())
            self.assertEqual(zipf.namelist(), ["frame-000.png", "dir/info.txt"])
            info = zipf.getinfo("frame-000.png")
            self.assertEqual(info.compress_type, zipfile.ZIP_DEFLATED)
            self.assertLess(info.compress_size, info.file_size)

    def test_level_clamped(self):
        self.assertEqual(DeflateCompressionBackend(compression_level=42).compression_level, 9)
        self.assertEqual(DeflateCompressionBackend(compression_level=-1).compression_level, 0)

    def test_settings_level_applies_only_without_explicit_level(self):
        settings = ExportSettings(env_file=None, compression_level=2)

        default_backend = DeflateCompressionBackend()
        default_backend.apply_settings(settings)
        self.backend.apply_settings(settings)

        self.assertEqual(default_backend.compression_level, 2)
        self.assertEqual(self.backend.compression_level, 9)

    def test_unreadable_entries_skipped(self):
        entries = [
            FileEntry(name="gone.png", data=Path("/nonexistent/gone.png")),
            FileEntry(name="kept.png", data=b"kept"),
        ]

        data = self.backend.build(entries, "out.zip")

        with zipfile.ZipFile(io.BytesIO(data)) as zipf:
            self.assertEqual(zipf.namelist(), ["kept.png"])

    def test_no_usable_entries(self):
        with self.assertRaises(ValidationError):
            self.backend.build([FileEntry(name="", data=b"x")], "out.zip")

    def test_progress_and_cancellation(self):
        token = CancellationToken()
        seen = []

        def on_progress(value):
            seen.append(value)
            token.cancel()

        entries = [FileEntry(name=f"{i}.png", data=b"x") for i in range(3)]
        with self.assertRaises(CancellationError):
            self.backend.build(entries, "out.zip", on_progress, token)
        self.assertEqual(len(seen), 1)

    def test_unavailable_without_zlib(self):
        with patch("export_ops.backends.ZLIB_AVAILABLE", False):
            self.assertFalse(self.backend.is_available())
            with self.assertRaises(RuntimeError):
                self.backend.build([FileEntry(name="a.png", data=b"a")], "out.zip")


class TestNullCompressionBackend(unittest.TestCase):
    def test_never_available(self):
        backend = NullCompressionBackend()

        self.assertFalse(backend.is_available())
        with self.assertRaises(RuntimeError):
            backend.build([], "out.zip")


class TestMemorySink(unittest.TestCase):
    def test_records_deliveries(self):
        sink = MemorySink()
        sink.deliver(bytearray(b"abc"), "a.txt")
        sink.deliver(b"def", "b.txt")

        self.assertEqual(sink.deliveries, [("a.txt", b"abc"), ("b.txt", b"def")])
        self.assertEqual(sink.filenames, ["a.txt", "b.txt"])


class TestDirectorySink(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_writes_file(self):
        sink = DirectorySink(self.temp_dir)

        sink.deliver(b"zip-bytes", "out.zip")

        target = Path(self.temp_dir) / "out.zip"
        self.assertEqual(target.read_bytes(), b"zip-bytes")
        self.assertEqual(sink.delivered, [target])
        self.assertEqual(
            [name for name in os.listdir(self.temp_dir) if name.endswith(".tmp")], []
        )

    def test_existing_files_not_overwritten(self):
        sink = DirectorySink(self.temp_dir)

        sink.deliver(b"first", "out.zip")
        sink.deliver(b"second", "out.zip")
        sink.deliver(b"third", "out.zip")

        self.assertEqual((Path(self.temp_dir) / "out.zip").read_bytes(), b"first")
        self.assertEqual((Path(self.temp_dir) / "out_1.zip").read_bytes(), b"second")
        self.assertEqual((Path(self.temp_dir) / "out_2.zip").read_bytes(), b"third")

    def test_overwrite(self):
        sink = DirectorySink(self.temp_dir, overwrite=True)

        sink.deliver(b"first", "out.zip")
        sink.deliver(b"second", "out.zip")

        self.assertEqual((Path(self.temp_dir) / "out.zip").read_bytes(), b"second")

    def test_nested_names_flattened(self):
        sink = DirectorySink(self.temp_dir)

        sink.deliver(b"x", "frames/frame-000.png")

        self.assertTrue((Path(self.temp_dir) / "frames_frame-000.png").exists())

    def test_creates_missing_directory(self):
        target_dir = Path(self.temp_dir) / "nested" / "downloads"
        DirectorySink(target_dir).deliver(b"x", "a.png")

        self.assertTrue((target_dir / "a.png").exists())

    def test_unwritable_target_raises_download_error(self):
        blocker = Path(self.temp_dir) / "not-a-dir"
        blocker.write_bytes(b"")

        with self.assertRaises(DownloadError):
            DirectorySink(blocker / "sub").deliver(b"x", "a.png")


class TestArchiveVerifier(unittest.TestCase):
    def setUp(self):
        self.verifier = ArchiveVerifier()

    def test_stored_archive_verifies(self):
        data = ZipArchiveWriter().finalize([FileEntry(name="a.png", data=b"abc" * 100)])

        self.assertTrue(self.verifier.verify_bytes(data))
        info = self.verifier.get_archive_info(data)
        self.assertEqual(info["file_count"], 1)
        self.assertEqual(info["uncompressed_size"], 300)
        self.assertEqual(info["compression_ratio"], 0)

    def test_corrupted_data_fails(self):
        data = bytearray(ZipArchiveWriter().finalize([FileEntry(name="a.png", data=b"abc")]))
        # Flip a byte of the stored content so the CRC no longer matches
        data[30 + len("a.png")] ^= 0xFF

        self.assertFalse(self.verifier.verify_bytes(bytes(data)))

    def test_garbage_is_not_an_archive(self):
        self.assertFalse(self.verifier.verify_bytes(b"not a zip"))
        self.assertEqual(self.verifier.get_archive_info(b"not a zip")["file_count"], 0)


if __name__ == "__main__":
    unittest.main()
