"""
services/file_upload.py

Attachment storage for lessons, assignments and submissions.

Objects live under UPLOAD_DIR and are addressed by a relative path such as
`uploads/<userId>/<courseId>/<ms>-<name>`; the dashboard serves them back
under /files/<path>. Uploads are copied in chunks and report progress after
each chunk.
"""
from __future__ import annotations

import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterable

from config import MAX_UPLOAD_MB, UPLOAD_CHUNK_SIZE, UPLOAD_DIR
from errors import NotFoundError, UploadError
from models import now_ms, utc_now

logger = logging.getLogger("classroomhq.uploads")

_UNSAFE_NAME = re.compile(r"[^a-zA-Z0-9.-]")
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


@dataclass
class UploadProgress:
    progress: float
    bytes_transferred: int
    total_bytes: int

    def to_dict(self) -> dict:
        return {
            "progress": self.progress,
            "bytesTransferred": self.bytes_transferred,
            "totalBytes": self.total_bytes,
        }


@dataclass
class UploadResult:
    url: str
    path: str
    metadata: dict

    def to_dict(self) -> dict:
        return {"url": self.url, "path": self.path, "metadata": dict(self.metadata)}


def generate_file_path(user_id: str, course_id: str, file_name: str) -> str:
    return f"uploads/{user_id}/{course_id}/{now_ms()}-{_UNSAFE_NAME.sub('_', file_name)}"


def validate_file(
    file_name: str,
    content_type: str,
    size: int,
    allowed_types: Iterable[str] = (),
    max_size: int = MAX_UPLOAD_MB * 1024 * 1024,
) -> tuple[bool, str | None]:
    allowed = list(allowed_types)
    if allowed and content_type not in allowed:
        return False, f"File type {content_type} is not allowed. Allowed types: {', '.join(allowed)}"
    if size > max_size:
        return False, f"File size exceeds {round(max_size / 1024 / 1024)}MB limit"
    return True, None


def get_file_category(mime_type: str) -> str:
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if any(k in mime_type for k in ("pdf", "document", "text", "spreadsheet", "presentation")):
        return "document"
    return "other"


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    value = float(num_bytes)
    index = 0
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    return f"{float(f'{value:.2f}'):g} {_SIZE_UNITS[index]}"


class FileUploadService:
    def __init__(self, root: str | Path | None = None, chunk_size: int = UPLOAD_CHUNK_SIZE):
        self.root = (Path(root) if root is not None else UPLOAD_DIR).resolve()
        self.chunk_size = max(1, int(chunk_size))

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise UploadError(f"Invalid upload path: {path}")
        return target

    def relative_parts(self, path: str) -> tuple[str, ...]:
        """Path segments under the root after `..` and duplicate slashes are resolved."""
        return self._resolve(path).relative_to(self.root).parts

    def open_path(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"File not found: {path}")
        return target

    def upload_file(
        self,
        stream: BinaryIO,
        path: str,
        on_progress: Callable[[UploadProgress], None] | None = None,
        size: int | None = None,
        content_type: str | None = None,
        name: str | None = None,
    ) -> UploadResult:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        total = int(size or 0)
        written = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = stream.read(self.chunk_size)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
                    if on_progress:
                        known_total = max(total, written)
                        on_progress(UploadProgress(written / known_total * 100, written, known_total))
        except OSError as exc:
            target.unlink(missing_ok=True)
            logger.exception("Upload to %s failed", path)
            raise UploadError(f"Upload failed: {exc}") from exc
        except Exception:
            target.unlink(missing_ok=True)
            logger.warning("Upload to %s aborted; partial file removed", path)
            raise

        if written == 0 and on_progress:
            on_progress(UploadProgress(100.0, 0, 0))

        rel_path = target.relative_to(self.root).as_posix()
        mime = content_type or mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        logger.info("Stored %s (%s)", rel_path, format_file_size(written))
        return UploadResult(
            url=f"/files/{rel_path}",
            path=rel_path,
            metadata={
                "name": name or target.name,
                "size": written,
                "type": mime,
                "timeCreated": utc_now().isoformat(),
            },
        )

    def upload_files(
        self,
        files: Iterable[tuple[BinaryIO, str, str | None]],
        base_path: str,
        on_progress: Callable[[int, UploadProgress], None] | None = None,
    ) -> list[UploadResult]:
        """Upload (stream, file_name, content_type) triples under `base_path`."""
        results: list[UploadResult] = []
        for index, (stream, file_name, content_type) in enumerate(files):
            path = f"{base_path.rstrip('/')}/{now_ms()}-{file_name}"

            def report(progress: UploadProgress, index: int = index) -> None:
                if on_progress:
                    on_progress(index, progress)

            results.append(
                self.upload_file(stream, path, report, content_type=content_type, name=file_name)
            )
        return results

    def delete_file(self, path: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"File not found: {path}")
        target.unlink()
        logger.info("Deleted %s", path)
