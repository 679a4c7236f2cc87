"""Hand-built multipart/form-data body with a precomputed length.

The body is streamed from disk, so its total length must be known before
the request is sent; otherwise HTTP stacks fall back to chunked encoding
or buffer the whole file in memory.

Layout, in order:
    1. one form field (``target_file`` for updates, ``parent_dir`` for
       new uploads)
    2. the file part, always declared as ``text/plain``
    3. the closing boundary
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from wingusync.client.errors import TransferFailure
from wingusync.client.monitor import MonitoredReader, ProgressMonitor

CRLF = b"\r\n"
TWO_HYPHENS = b"--"
BOUNDARY = "----WinguSyncBound$_$"
UPLOAD_BUFFER_SIZE = 64 * 1024


class MultipartUpload:
    """Multipart body for one upload request."""

    def __init__(
        self,
        file_path: Path,
        field_name: str,
        field_value: str,
        boundary: str = BOUNDARY,
        buffer_size: int = UPLOAD_BUFFER_SIZE,
    ) -> None:
        """Prepare the body.

        Args:
            file_path: Local file to upload.
            field_name: ``target_file`` or ``parent_dir``.
            field_value: Remote path for the field.
            boundary: Multipart boundary, fixed for the request.
            buffer_size: Read size for file chunks.
        """
        self.file_path = file_path
        self.boundary = boundary
        self._buffer_size = buffer_size
        delimiter = TWO_HYPHENS + boundary.encode("ascii") + CRLF

        self.field_part = (
            delimiter
            + f'Content-Disposition: form-data; name="{field_name}"'.encode()
            + CRLF
            + CRLF
            + field_value.encode("utf-8")
            + CRLF
        )
        self.file_header = (
            delimiter
            + f'Content-Disposition: form-data; name="file";filename="{file_path.name}"'.encode()
            + CRLF
            + b"Content-Type: text/plain"
            + CRLF
            + CRLF
        )
        self.closing = TWO_HYPHENS + boundary.encode("ascii") + TWO_HYPHENS + CRLF
        self.file_size = file_path.stat().st_size

    @property
    def content_type(self) -> str:
        return f"multipart/form-data;boundary={self.boundary}"

    @property
    def content_length(self) -> int:
        """Exact number of bytes ``iter_body`` will produce."""
        return (
            len(self.field_part)
            + len(self.file_header)
            + self.file_size
            + len(CRLF)
            + len(self.closing)
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": self.content_type,
            "Content-Length": str(self.content_length),
            "Connection": "close",
            "Cache-Control": "no-cache",
        }

    def iter_body(self, monitor: ProgressMonitor | None = None) -> Iterator[bytes]:
        """Yield the body, reading the file through the monitor if given.

        Raises:
            TransferFailure: If the file size changed since the length was
                computed.
            TransferCancelled: If the monitor reports cancellation.
        """
        yield self.field_part
        yield self.file_header

        sent = 0
        with open(self.file_path, "rb") as f:
            reader = MonitoredReader(f, monitor) if monitor is not None else None
            while True:
                chunk = reader.read(self._buffer_size) if reader else f.read(self._buffer_size)
                if not chunk:
                    break
                sent += len(chunk)
                if sent > self.file_size:
                    break
                yield chunk
            if reader is not None:
                reader.finish()
        if sent != self.file_size:
            raise TransferFailure(
                f"{self.file_path} changed size during upload "
                f"({self.file_size} -> {sent} bytes)"
            )

        yield CRLF
        yield self.closing
