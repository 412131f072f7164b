import asyncio
import logging
import os
import re
import time
from typing import Dict, Optional

from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import ValidationError, NotFoundError
from app.database.models import FileDocument, DOCUMENT_SLOTS

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/webp", "application/pdf"}


class DocumentService:
    """Stores KYC uploads on local disk under ``settings.UPLOAD_DIR``."""

    def __init__(self, upload_dir: Optional[str] = None, max_size: Optional[int] = None):
        self.upload_dir = upload_dir or settings.UPLOAD_DIR
        self.max_size = max_size or settings.MAX_UPLOAD_SIZE

    # Writes every supplied slot to disk and returns the stored metadata per slot
    async def store_documents(self, files: Dict[str, UploadFile]) -> Dict[str, FileDocument]:
        files = {slot: f for slot, f in files.items() if f is not None and f.filename}
        if not files:
            raise ValidationError("No files uploaded")

        unknown = set(files) - set(DOCUMENT_SLOTS)
        if unknown:
            raise ValidationError(f"Unknown document field: {', '.join(sorted(unknown))}")

        stored: Dict[str, FileDocument] = {}
        written = []
        try:
            for slot, file in files.items():
                contents = await self._read_validated(file)
                filename = self._generate_unique_filename(file.filename)
                path = os.path.join(self.upload_dir, filename)
                await asyncio.to_thread(self._write_file, path, contents)
                written.append(path)
                stored[slot] = FileDocument(filename=filename, path=path)
                logger.info("Stored %s as %s (%d bytes)", slot, filename, len(contents))
        except Exception:
            await self._cleanup(written)
            raise

        return stored

    def resolve_path(self, document: FileDocument) -> str:
        if not os.path.isfile(document.path):
            logger.warning("Document %s is missing from disk", document.filename)
            raise NotFoundError("Document file not found on server")
        return document.path

    async def _read_validated(self, file: UploadFile) -> bytes:
        await file.seek(0)
        contents = await file.read()
        size = len(contents)

        if size == 0:
            raise ValidationError(f"Empty file uploaded: {file.filename}")
        if size > self.max_size:
            raise ValidationError(f"File size {size} exceeds limit of {self.max_size} bytes")

        content_type = self._resolve_content_type(file, contents)
        if content_type not in ALLOWED_TYPES:
            logger.warning("Rejected upload %s with type %s", file.filename, content_type)
            raise ValidationError(f"Invalid file type: {content_type}")
        return contents

    def _resolve_content_type(self, file: UploadFile, contents: bytes) -> str:
        content_type = file.content_type or "application/octet-stream"
        if content_type not in ("text/plain", "application/octet-stream"):
            return content_type

        header = contents[:12]
        if header.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        if header.startswith(b"\x89PNG\r\n\x1a\n"):
            return "image/png"
        if header[0:4] == b"RIFF" and header[8:12] == b"WEBP":
            return "image/webp"
        if header.startswith(b"%PDF"):
            return "application/pdf"
        return content_type

    def _generate_unique_filename(self, original_filename: str) -> str:
        safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", os.path.basename(original_filename))
        return f"{int(time.time() * 1000)}-{safe_name}"

    def _write_file(self, path: str, contents: bytes) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(contents)

    async def _cleanup(self, paths) -> None:
        for path in paths:
            try:
                await asyncio.to_thread(os.remove, path)
            except OSError as e:
                logger.warning("Failed to remove partial upload %s: %s", path, e)


document_service = DocumentService()
