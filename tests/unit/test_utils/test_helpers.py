"""Unit tests for helper functions."""

from src.utils.helpers import (
    decode_s3_key,
    format_file_size,
    generate_s3_key,
    sanitize_filename,
    strip_etag,
)


def test_sanitize_filename_strips_path_components():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\report.pdf") == "report.pdf"


def test_sanitize_filename_replaces_unsafe_characters():
    assert sanitize_filename("my file (1).txt") == "my file _1_.txt"


def test_sanitize_filename_empty():
    assert sanitize_filename("") == "unnamed"


def test_generate_s3_key_with_prefix():
    assert generate_s3_key("user-1", "photo.jpg", prefix="dropbox") == "dropbox/user-1/photo.jpg"


def test_generate_s3_key_without_prefix():
    assert generate_s3_key("user-1", "photo.jpg") == "user-1/photo.jpg"


def test_decode_s3_key_plus_and_percent():
    """Event keys encode spaces as '+' and reserved characters as %XX."""
    assert decode_s3_key("dropbox/user-1/my+file%281%29.txt") == "dropbox/user-1/my file(1).txt"


def test_decode_s3_key_invalid_utf8_falls_back():
    assert decode_s3_key("dropbox/%ff%fe.bin") == "dropbox/%ff%fe.bin"


def test_strip_etag():
    assert strip_etag('"abc123"') == "abc123"
    assert strip_etag("abc123") == "abc123"


def test_format_file_size():
    assert format_file_size(512) == "512.00 B"
    assert format_file_size(1024 * 1024) == "1.00 MB"
