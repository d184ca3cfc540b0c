"""
Tests for Content-Disposition encoding.
"""
from urllib.parse import unquote

import pytest

from filedrop.services.content_disposition import encode_content_disposition, file_extension


class TestFileExtension:
    """Tests for file_extension."""

    @pytest.mark.parametrize("name,expected", [
        ("song.mp3", ".mp3"),
        ("archive.tar.gz", ".gz"),
        ("README", ""),
        (".bashrc", ".bashrc"),
        ("dir.d/README", ""),
        ("a/b/c.flac", ".flac"),
        ("trailing.", "."),
    ])
    def test_extension_of_last_element(self, name, expected):
        """Only the final path element is considered."""
        assert file_extension(name) == expected


class TestEncodeContentDisposition:
    """Tests for encode_content_disposition."""

    def test_plain_ascii_name(self):
        """Simple names keep their extension in the fallback."""
        assert encode_content_disposition("song.mp3") == (
            "attachment; filename=\"file.mp3\"; filename*=UTF-8''song.mp3"
        )

    def test_spaces_become_percent_20(self):
        """Spaces are %20, never +."""
        cd = encode_content_disposition("my song.mp3")
        assert cd == "attachment; filename=\"file.mp3\"; filename*=UTF-8''my%20song.mp3"
        assert "+" not in cd

    def test_literal_plus_is_escaped(self):
        """A literal + in the name must not be confused with a space."""
        cd = encode_content_disposition("a+b c.mp3")
        assert cd.endswith("filename*=UTF-8''a%2Bb%20c.mp3")

    def test_unicode_name(self):
        """Non-ASCII names are percent-encoded as UTF-8."""
        cd = encode_content_disposition("Café del Mar.flac")
        assert cd == (
            "attachment; filename=\"file.flac\"; "
            "filename*=UTF-8''Caf%C3%A9%20del%20Mar.flac"
        )

    def test_no_extension(self):
        """Names without an extension fall back to the bare base name."""
        assert encode_content_disposition("README").startswith("attachment; filename=\"file\";")

    def test_unsafe_extension_dropped(self):
        """Extensions with non-alphanumeric characters are not echoed."""
        cd = encode_content_disposition("evil.m\"p3")
        assert cd.startswith("attachment; filename=\"file\";")
        assert "%22" in cd

    def test_unicode_extension_dropped(self):
        """Only ASCII alphanumeric extensions survive in the fallback."""
        cd = encode_content_disposition("track.mp³")
        assert cd.startswith("attachment; filename=\"file\";")

    def test_slashes_and_quotes_escaped(self):
        """Reserved characters are escaped in filename*."""
        cd = encode_content_disposition("a/b\"c.mp3")
        assert cd.endswith("filename*=UTF-8''a%2Fb%22c.mp3")

    @pytest.mark.parametrize("name", ["my song.mp3", "Ñandú – live.flac", "日本語 トラック.ogg", "100% + more.wav"])
    def test_extended_value_decodes_to_original(self, name):
        """filename* is lossless for any UTF-8 name."""
        encoded = encode_content_disposition(name).split("filename*=UTF-8''", 1)[1]
        assert unquote(encoded) == name
