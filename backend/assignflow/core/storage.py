# core/storage.py
"""
Local-disk uploads.

Stored paths are repository-relative strings ("uploads/<name>"). Older
records may hold absolute or Windows-style paths, so downloads go through
resolve_stored_path which tries several locations.
"""
import logging
import os
import secrets
import time
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from assignflow.core.config import settings
from assignflow.core.errors import ValidationFailed
from assignflow.models.assignment_model import StoredFile

logger = logging.getLogger("assignflow.storage")

ALLOWED_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".pdf", ".doc", ".docx", ".mp3", ".pptx",
    ".zip", ".rar", ".txt", ".heic", ".pages", ".key",
}

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR)


def unique_name(field: str, original: str) -> str:
    ext = os.path.splitext(original)[1].lower()
    return f"{field}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


def normalize_stored_path(raw: str) -> str:
    """Collapse any historical path form into 'uploads/<relative>'."""
    path = raw.replace("\\", "/").strip()
    marker = "uploads/"
    idx = path.rfind(marker)
    if idx != -1:
        return path[idx:]
    return marker + path.rsplit("/", 1)[-1]


def resolve_stored_path(stored: str) -> Optional[Path]:
    """Find the file on disk for a stored path, or None."""
    if not stored:
        return None

    normalized = normalize_stored_path(stored)
    relative = normalized[len("uploads/"):]
    candidates = [
        Path(stored),
        upload_root() / relative,
        upload_root() / os.path.basename(relative),
        Path.cwd() / normalized,
        PROJECT_ROOT / normalized,
        PROJECT_ROOT / "backend" / normalized,
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate

    logger.warning(f"Stored file not found on disk: {stored}")
    return None


async def save_upload(file: UploadFile, field: str) -> StoredFile:
    """Validate and write one upload. Raises ValidationFailed."""
    original = file.filename or ""
    ext = os.path.splitext(original)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationFailed(f"File type not allowed: {original or 'unnamed file'}")

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailed(f"File too large: {original} (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB)")

    root = upload_root()
    root.mkdir(parents=True, exist_ok=True)
    name = unique_name(field, original)
    (root / name).write_bytes(content)

    logger.info(f"Stored upload {original} as {name}")
    return StoredFile(name=original, path=f"uploads/{name}")


async def save_uploads(files: Optional[List[UploadFile]], field: str) -> List[StoredFile]:
    files = [f for f in (files or []) if f is not None and f.filename]
    if len(files) > settings.MAX_FILES_PER_UPLOAD:
        raise ValidationFailed(f"Too many files (max {settings.MAX_FILES_PER_UPLOAD})")
    return [await save_upload(f, field) for f in files]
