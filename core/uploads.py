"""
Local filesystem storage for uploaded media, e-filing attachments and
signatures, plus chunked upload sessions.

Chunks of an upload session live in ``CHUNK_TEMP_DIR/<upload_id>/chunk_<n>``
until they are assembled into the final file.
"""
import os
import re
import time
import random
import shutil
import logging
from pathlib import Path
from typing import Optional

from fastapi import HTTPException

from config import (
    UPLOAD_DIR, CHUNK_TEMP_DIR, MEDIA_DIRS, BLOCKED_EXTENSIONS,
    ALLOWED_IMAGE_TYPES, ALLOWED_VIDEO_TYPES, ALLOWED_DOCUMENT_TYPES,
    MAX_IMAGE_SIZE, MAX_VIDEO_SIZE, MAX_DOCUMENT_SIZE, CHUNK_SIZE_TOLERANCE,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50
_UPLOAD_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
# holds the id of the user who started a chunk session
OWNER_FILE = ".owner"

# media type -> (allowed MIME types, size limit)
MEDIA_RULES = {
    "before_content": (ALLOWED_IMAGE_TYPES | ALLOWED_VIDEO_TYPES, MAX_VIDEO_SIZE),
    "image": (ALLOWED_IMAGE_TYPES, MAX_IMAGE_SIZE),
    "video": (ALLOWED_VIDEO_TYPES, MAX_VIDEO_SIZE),
    "final_video": (ALLOWED_VIDEO_TYPES, MAX_VIDEO_SIZE),
}


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


def sanitize_filename(filename: str) -> str:
    """Keep letters, digits, ``-`` and ``_`` in the stem; extension preserved."""
    stem, ext = os.path.splitext(os.path.basename(filename or ""))
    stem = re.sub(r"\s+", "-", stem)
    stem = re.sub(r"[^a-zA-Z0-9_-]", "", stem)
    stem = re.sub(r"-+", "-", stem).strip("-")
    if not stem:
        stem = "file"
    return stem[:MAX_NAME_LENGTH] + ext


def generate_unique_filename(original_name: str) -> str:
    stem, ext = os.path.splitext(sanitize_filename(original_name))
    timestamp = int(time.time() * 1000)
    suffix = random.randint(0, 10 ** 9)
    return f"{stem}-{timestamp}-{suffix}{ext}"


def validate_media_file(media_type: str, filename: str, content_type: str, size: int):
    """Raise 400 when a file may not be stored as ``media_type``."""
    if media_type not in MEDIA_RULES:
        raise HTTPException(status_code=400, detail=f"Invalid media type: {media_type}")
    allowed_types, max_size = MEDIA_RULES[media_type]
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in BLOCKED_EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"File extension {ext} is not allowed")
    if content_type not in allowed_types:
        raise HTTPException(status_code=400, detail=f"File type {content_type} is not allowed")
    if size > max_size:
        raise HTTPException(status_code=400, detail=f"File size exceeds limit of {format_file_size(max_size)}")


def validate_document(filename: str, content_type: str, size: int):
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in BLOCKED_EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"File extension {ext} is not allowed")
    if content_type not in ALLOWED_DOCUMENT_TYPES | ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail=f"File type {content_type} is not allowed")
    if size > MAX_DOCUMENT_SIZE:
        raise HTTPException(status_code=400, detail=f"File size exceeds limit of {format_file_size(MAX_DOCUMENT_SIZE)}")


def public_link(relative_path: str) -> str:
    return "/uploads/" + relative_path.replace(os.sep, "/")


def store_bytes(subdir: str, filename: str, data: bytes) -> str:
    """Write ``data`` to ``UPLOAD_DIR/subdir/filename``; returns the relative path."""
    target_dir = UPLOAD_DIR / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / filename).write_bytes(data)
    return f"{subdir}/{filename}"


def store_media(media_type: str, original_name: str, data: bytes) -> dict:
    filename = generate_unique_filename(original_name)
    relative = store_bytes(MEDIA_DIRS[media_type], filename, data)
    return {"file_name": filename, "file_path": relative, "link": public_link(relative), "file_size": len(data)}


def remove_stored_file(relative_path: Optional[str]) -> bool:
    """Unlink a stored file; a missing file is logged and reported as False."""
    if not relative_path:
        return False
    path = UPLOAD_DIR / relative_path.lstrip("/").removeprefix("uploads/")
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        logger.warning(f"Stored file already missing: {path}")
        return False


def resolve_upload_path(segments) -> Path:
    """Map URL path segments to a file under ``UPLOAD_DIR``.

    Raises 400 for traversal attempts and 404 when nothing is there.
    """
    if not segments:
        raise HTTPException(status_code=400, detail="File path is required")
    for segment in segments:
        if not segment or segment == "." or ".." in segment or "/" in segment or "\\" in segment:
            raise HTTPException(status_code=400, detail="Invalid path segment")
    root = UPLOAD_DIR.resolve()
    target = root.joinpath(*segments).resolve()
    if root != target and root not in target.parents:
        raise HTTPException(status_code=400, detail="Invalid file path")
    if not target.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return target


# ── Chunked uploads ───────────────────────────────────────

def validate_upload_id(upload_id: str) -> str:
    if not upload_id or not _UPLOAD_ID_RE.match(upload_id):
        raise HTTPException(status_code=400, detail="Invalid upload id")
    return upload_id


def chunk_session_dir(upload_id: str) -> Path:
    return CHUNK_TEMP_DIR / validate_upload_id(upload_id)


def check_chunk_owner(upload_id: str, user_id: str):
    """403 unless ``user_id`` started the upload session."""
    owner_file = chunk_session_dir(upload_id) / OWNER_FILE
    if owner_file.is_file() and owner_file.read_text(encoding="utf-8") != user_id:
        raise HTTPException(status_code=403, detail="Upload session belongs to another user")


def save_chunk(upload_id: str, chunk_index: int, data: bytes, owner_id: Optional[str] = None) -> Path:
    session_dir = chunk_session_dir(upload_id)
    if owner_id:
        check_chunk_owner(upload_id, owner_id)
    session_dir.mkdir(parents=True, exist_ok=True)
    if owner_id and not (session_dir / OWNER_FILE).is_file():
        (session_dir / OWNER_FILE).write_text(owner_id, encoding="utf-8")
    chunk_path = session_dir / f"chunk_{chunk_index}"
    chunk_path.write_bytes(data)
    return chunk_path


def discard_chunks(upload_id: str) -> bool:
    session_dir = chunk_session_dir(upload_id)
    if not session_dir.exists():
        return False
    shutil.rmtree(session_dir, ignore_errors=True)
    return True


def assemble_chunks(upload_id: str, total_chunks: int, file_name: str,
                    media_type: str = "final_video", expected_size: Optional[int] = None) -> dict:
    """Concatenate ``chunk_0..chunk_{n-1}`` into a stored media file.

    The session directory is removed whether or not assembly succeeds.
    """
    session_dir = chunk_session_dir(upload_id)
    if not session_dir.is_dir():
        raise HTTPException(status_code=404, detail="Upload session not found or expired")
    try:
        parts = []
        for i in range(total_chunks):
            chunk_path = session_dir / f"chunk_{i}"
            if not chunk_path.is_file():
                raise HTTPException(status_code=400, detail=f"Missing chunk {i}. Upload may be incomplete.")
            parts.append(chunk_path.read_bytes())
        data = b"".join(parts)
        max_size = MEDIA_RULES[media_type][1]
        if len(data) > max_size:
            raise HTTPException(status_code=400, detail=f"File size exceeds limit of {format_file_size(max_size)}")
        if expected_size and abs(len(data) - expected_size) > CHUNK_SIZE_TOLERANCE:
            raise HTTPException(
                status_code=400,
                detail=f"File size mismatch. Expected {expected_size}, got {len(data)}",
            )
        stored = store_media(media_type, file_name, data)
        logger.info(f"Assembled upload {upload_id} from {total_chunks} chunks ({len(data)} bytes)")
        return stored
    finally:
        shutil.rmtree(session_dir, ignore_errors=True)
