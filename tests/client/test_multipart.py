"""Tests for the hand-built multipart body."""

from __future__ import annotations

from pathlib import Path

import pytest

from wingusync.client.errors import TransferFailure
from wingusync.client.multipart import BOUNDARY, MultipartUpload


class TestMultipartUpload:
    """Tests for MultipartUpload."""

    def test_exact_layout_for_new_upload(self, tmp_path: Path) -> None:
        """Should emit field, file part and closing boundary in order."""
        local = tmp_path / "notes.txt"
        local.write_bytes(b"hello")

        body = MultipartUpload(local, "parent_dir", "/docs")
        data = b"".join(body.iter_body())

        b = BOUNDARY.encode()
        expected = (
            b"--" + b + b"\r\n"
            b'Content-Disposition: form-data; name="parent_dir"\r\n'
            b"\r\n"
            b"/docs\r\n"
            b"--" + b + b"\r\n"
            b'Content-Disposition: form-data; name="file";filename="notes.txt"\r\n'
            b"Content-Type: text/plain\r\n"
            b"\r\n"
            b"hello"
            b"\r\n"
            b"--" + b + b"--\r\n"
        )
        assert data == expected
        assert body.content_length == len(expected)

    def test_update_uses_target_file(self, tmp_path: Path) -> None:
        """Should name the field target_file for updates."""
        local = tmp_path / "a.bin"
        local.write_bytes(b"\x00\x01")

        data = b"".join(MultipartUpload(local, "target_file", "/docs/a.bin").iter_body())

        assert b'name="target_file"\r\n\r\n/docs/a.bin\r\n' in data
        assert b"Content-Type: text/plain" in data

    def test_declared_length_matches_large_file(self, tmp_path: Path) -> None:
        """Should declare exactly the bytes transmitted for a 10 MB file."""
        local = tmp_path / "big.dat"
        local.write_bytes(b"\xab" * (10 * 1024 * 1024))

        body = MultipartUpload(local, "parent_dir", "/")
        sent = sum(len(chunk) for chunk in body.iter_body())

        assert sent == body.content_length
        assert body.content_length == (
            len(body.field_part) + len(body.file_header) + body.file_size + 2 + len(body.closing)
        )
        assert body.headers["Content-Length"] == str(sent)

    def test_non_ascii_names(self, tmp_path: Path) -> None:
        """Should count UTF-8 bytes, not characters."""
        local = tmp_path / "résumé.txt"
        local.write_bytes(b"cv")

        body = MultipartUpload(local, "parent_dir", "/Документы")

        assert sum(len(c) for c in body.iter_body()) == body.content_length

    def test_headers(self, tmp_path: Path) -> None:
        """Should declare the boundary and disable keep-alive."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"")

        headers = MultipartUpload(local, "parent_dir", "/").headers

        assert headers["Content-Type"] == f"multipart/form-data;boundary={BOUNDARY}"
        assert headers["Connection"] == "close"
        assert headers["Cache-Control"] == "no-cache"

    def test_file_changed_size(self, tmp_path: Path) -> None:
        """Should fail if the file shrank after the length was computed."""
        local = tmp_path / "a.txt"
        local.write_bytes(b"0123456789")
        body = MultipartUpload(local, "parent_dir", "/")
        local.write_bytes(b"012")

        with pytest.raises(TransferFailure):
            b"".join(body.iter_body())
