"""Tests for the utils module."""

import pytest

from code2llm import utils
from code2llm.utils import (
    count_lines,
    format_bytes,
    format_number,
    is_binary_content,
    normalize_line_endings,
    normalize_path,
    read_file_safe,
)


class TestCountLines:
    @pytest.mark.parametrize(
        "content,expected",
        [("", 0), ("a", 1), ("a\n", 1), ("a\nb", 2), ("a\n\n", 2), ("a\r\nb\r\n", 2)],
    )
    def test_count_lines(self, content, expected):
        assert count_lines(content) == expected


class TestFormatting:
    def test_format_number(self):
        assert format_number(1234567) == "1,234,567"

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1536, "1.5 KB"), (1024**2, "1.0 MB")],
    )
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected


class TestBinaryDetection:
    def test_empty_sample_is_text(self):
        assert not is_binary_content(b"")

    def test_null_byte_is_binary(self):
        assert is_binary_content(b"abc\x00def")

    def test_control_heavy_sample_is_binary(self):
        assert is_binary_content(b"\x01\x02\x03a")

    def test_plain_text(self):
        assert not is_binary_content(b"def main():\n\treturn 1\r\n")


class TestTextHelpers:
    def test_normalize_line_endings(self):
        assert normalize_line_endings("a\r\nb\rc\n") == "a\nb\nc\n"

    def test_normalize_path(self):
        assert normalize_path("src\\pkg\\mod.py") == "src/pkg/mod.py"

    def test_read_utf8(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("héllo", encoding="utf-8")

        assert read_file_safe(path) == ("héllo", "utf-8")

    def test_read_legacy_encoding_does_not_raise(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_bytes("naïve café\n".encode("latin-1") * 10)

        content, encoding = read_file_safe(path)

        assert content.startswith("na")
        assert encoding != "utf-8" or "�" in content

    def test_estimate_tokens_fallback(self, monkeypatch):
        monkeypatch.setattr(utils, "_tiktoken_encoder", None)

        assert utils.estimate_tokens("x" * 40) == 10
