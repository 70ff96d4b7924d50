from __future__ import annotations

import base64
import dataclasses
import io
import logging
import re
import typing as t

from bson import ObjectId
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from mentor import config
from mentor.models import FileRef

logger = logging.getLogger(__name__)

ACCEPTED_TYPES = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg,.jpeg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclasses.dataclass(frozen=True)
class UploadBatch:
    accepted: list[FileRef]
    rejected: list[str]


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


class FileUtils:
    def __init__(self, max_bytes: int | None = None, excerpt_chars: int | None = None) -> None:
        self.max_bytes = max_bytes if max_bytes is not None else config.MAX_UPLOAD_MB * 1024 * 1024
        self.excerpt_chars = excerpt_chars if excerpt_chars is not None else config.SYLLABUS_EXCERPT_CHARS

    def rejection_reason(self, name: str, mime_type: str, size: int) -> str | None:
        if mime_type not in ACCEPTED_TYPES:
            return f"{name} is not a supported file type"
        if size > self.max_bytes:
            return f"{name} is too large (max {format_file_size(self.max_bytes)})"
        return None

    def image_preview(self, data: bytes, mime_type: str) -> str:
        return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

    def pdf_excerpt(self, data: bytes) -> str | None:
        try:
            reader = PdfReader(io.BytesIO(data))
            texts: list[str] = []
            for page in reader.pages:
                t0 = page.extract_text() or ""
                if t0.strip():
                    texts.append(t0)
                if sum(len(x) for x in texts) >= self.excerpt_chars:
                    break
        except (PyPdfError, ValueError, OSError) as e:
            logger.warning("Could not read PDF text: %s", e)
            return None
        text = self._normalize_extracted_text("\n\n".join(texts))
        return text[: self.excerpt_chars] or None

    def accept_file(self, name: str, mime_type: str, data: bytes) -> FileRef:
        """Build the FileRef for an upload that already passed validation."""
        preview = None
        excerpt = None
        if mime_type.startswith("image/"):
            preview = self.image_preview(data, mime_type)
        elif mime_type == "application/pdf":
            excerpt = self.pdf_excerpt(data)
        return FileRef(
            id=str(ObjectId()),
            name=name,
            mime_type=mime_type,
            size_bytes=len(data),
            preview=preview,
            text_excerpt=excerpt,
        )

    def process_files(self, files: t.Iterable[tuple[str, str, bytes]]) -> UploadBatch:
        """Validate a batch of ``(name, mime_type, data)``.

        A rejected file only drops itself; the rest of the batch still goes in.
        """
        accepted: list[FileRef] = []
        rejected: list[str] = []
        for name, mime_type, data in files:
            reason = self.rejection_reason(name, mime_type, len(data))
            if reason:
                rejected.append(reason)
                continue
            accepted.append(self.accept_file(name, mime_type, data))
        return UploadBatch(accepted=accepted, rejected=rejected)

    def _normalize_extracted_text(self, text: str) -> str:
        s = text.replace("\r\n", "\n").replace("\r", "\n")
        s = re.sub(r"[ \t]+\n", "\n", s)
        s = re.sub(r"\n{3,}", "\n\n", s)
        s = re.sub(r"[ \t]{2,}", " ", s)
        return s.strip()
