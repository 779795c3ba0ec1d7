"""
Filename sanitization tests.
"""

import unittest

from export_ops import FilenameSanitizer, sanitize, sanitize_archive_name
from export_ops.filenames import DEFAULT_NAME, MAX_NAME_BYTES


class TestSanitize(unittest.TestCase):
    """Entry names should come out safe, relative and non-empty."""

    def test_backslashes_and_forbidden_characters(self):
        """Windows separators become slashes and reserved characters vanish."""
        result = sanitize("my\\file:name?.png")

        self.assertEqual(result, "my/filename.png")
        for char in "\\:?":
            self.assertNotIn(char, result)

    def test_all_reserved_characters_removed(self):
        self.assertEqual(sanitize('a<b>c:d"e|f?g*h.txt'), "abcdefgh.txt")

    def test_control_characters_removed(self):
        self.assertEqual(sanitize("fra\x00me\x1f\x7f.png"), "frame.png")

    def test_leading_and_trailing_whitespace_and_dots_trimmed(self):
        self.assertEqual(sanitize("  ..logo.png.. "), "logo.png")

    def test_traversal_segments_dropped(self):
        self.assertEqual(sanitize("../../etc/passwd"), "etc/passwd")
        self.assertEqual(sanitize("/abs/./path//file.txt"), "abs/path/file.txt")

    def test_empty_results_use_default(self):
        for raw in ("", "   ", "...", "???", "\\\\", None):
            with self.subTest(raw=raw):
                self.assertEqual(sanitize(raw), DEFAULT_NAME)

    def test_long_names_keep_extension(self):
        result = sanitize("x" * 400 + ".png")

        self.assertTrue(result.endswith(".png"))
        self.assertEqual(len(result.encode("utf-8")), MAX_NAME_BYTES)

    def test_truncation_does_not_split_multibyte_characters(self):
        result = sanitize("é" * 300 + ".txt")

        encoded = result.encode("utf-8")
        self.assertLessEqual(len(encoded), MAX_NAME_BYTES)
        self.assertTrue(result.endswith(".txt"))
        self.assertEqual(set(result[:-4]), {"é"})

    def test_idempotent(self):
        samples = [
            "my\\file:name?.png",
            " . hidden . ",
            "x" * 500 + ".jpeg",
            "dir/ sub. /file .txt",
            "a" * 239 + " .png",
            "é" * 200 + "/" + "b" * 200,
            "normal-name.png",
            "",
        ]
        for raw in samples:
            with self.subTest(raw=raw[:40]):
                once = sanitize(raw)
                self.assertEqual(sanitize(once), once)
                self.assertTrue(once)

    def test_custom_default_and_limit(self):
        sanitizer = FilenameSanitizer(default_name="frame.png", max_bytes=10)

        self.assertEqual(sanitizer.sanitize("***"), "frame.png")
        self.assertEqual(sanitizer.sanitize("abcdefghijkl.png"), "abcdef.png")


class TestSanitizeArchiveName(unittest.TestCase):
    def test_extension_added(self):
        self.assertEqual(sanitize_archive_name("frames"), "frames.zip")

    def test_existing_extension_kept(self):
        self.assertEqual(sanitize_archive_name("frames.ZIP"), "frames.ZIP")

    def test_directories_flattened(self):
        self.assertEqual(sanitize_archive_name("exports/logo.zip"), "exports_logo.zip")

    def test_empty_uses_default(self):
        self.assertEqual(sanitize_archive_name(""), "export.zip")
        self.assertEqual(sanitize_archive_name("..."), "export.zip")
        self.assertEqual(sanitize_archive_name("", default="frames.zip"), "frames.zip")


if __name__ == "__main__":
    unittest.main()
