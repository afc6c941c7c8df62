# portal/core/storage.py

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile, HTTPException
from loguru import logger
from supabase import create_client, Client

from portal.core.config import settings

LOCAL_URL_PREFIX = "/uploads"
MAX_FILE_SIZE = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


@dataclass
class StoredFile:
    path: str
    size: int
    mime_type: Optional[str]


# 1. Init Supabase client only when that backend is selected
def _make_supabase_client() -> Optional[Client]:
    if settings.STORAGE_BACKEND != "supabase":
        return None
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        logger.warning("STORAGE_BACKEND=supabase but SUPABASE_URL/SUPABASE_KEY are missing.")
        return None
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    except Exception as e:
        logger.error(f"Supabase init failed: {e}")
        return None


supabase: Optional[Client] = _make_supabase_client()


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR)


def extension_of(filename: Optional[str]) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


async def read_upload(file: UploadFile, max_size: int = MAX_FILE_SIZE) -> bytes:
    """
    Reads the whole upload into memory and enforces the size cap.
    Resets the cursor afterwards so the caller can read it again.
    """
    content = await file.read()
    if not content:
        raise HTTPException(400, "Uploaded file is empty.")
    if len(content) > max_size:
        raise HTTPException(400, f"File too large. Maximum size is {max_size // (1024 * 1024)}MB.")
    await file.seek(0)
    return content


async def save_upload(file: UploadFile, folder: str, max_size: int = MAX_FILE_SIZE) -> StoredFile:
    """
    Stores an uploaded file under `folder` and returns its storage path.
    - Ignores the original filename (keeps only the extension).
    - Local backend paths start with /uploads and are served by the app.
    """
    content = await read_upload(file, max_size)

    ext = extension_of(file.filename)
    safe_filename = f"{uuid.uuid4()}.{ext}" if ext else str(uuid.uuid4())
    key = f"{folder}/{safe_filename}"
    content_type = file.content_type or "application/octet-stream"

    if settings.STORAGE_BACKEND == "supabase":
        if not supabase:
            logger.error("Supabase credentials missing in env vars.")
            raise HTTPException(500, "Storage service unavailable.")
        try:
            supabase.storage.from_(settings.SUPABASE_BUCKET).upload(
                path=key,
                file=content,
                file_options={"content-type": content_type, "upsert": "true"}
            )
        except Exception as e:
            logger.error(f"Storage upload error: {e}")
            raise HTTPException(500, "Failed to upload file to cloud storage.")
        return StoredFile(path=key, size=len(content), mime_type=content_type)

    target = upload_root() / key
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
    except OSError as e:
        logger.error(f"Local storage write failed for {target}: {e}")
        raise HTTPException(500, "Failed to store uploaded file.")

    return StoredFile(path=f"{LOCAL_URL_PREFIX}/{key}", size=len(content), mime_type=content_type)


def delete_stored_file(path: Optional[str]) -> None:
    """Best effort: a missing object is logged, never raised."""
    if not path:
        return

    if settings.STORAGE_BACKEND == "supabase":
        if not supabase:
            return
        try:
            supabase.storage.from_(settings.SUPABASE_BUCKET).remove([path])
        except Exception as e:
            logger.warning(f"Failed to delete {path} from storage: {e}")
        return

    relative = path[len(LOCAL_URL_PREFIX):].lstrip("/") if path.startswith(LOCAL_URL_PREFIX) else path
    target = upload_root() / relative
    try:
        target.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to delete local file {target}: {e}")


def get_file_url(path: Optional[str], expiration: int = 3600) -> Optional[str]:
    """
    Local files are served as-is. Supabase objects get a temporary signed link,
    valid for 1 hour by default.
    """
    if not path:
        return None
    if settings.STORAGE_BACKEND != "supabase":
        return path
    if not supabase:
        return None

    try:
        response = supabase.storage.from_(settings.SUPABASE_BUCKET).create_signed_url(path, expiration)

        # Handle different Supabase Python SDK response versions
        if isinstance(response, dict):
            return response.get("signedURL") or response.get("signedUrl")
        if hasattr(response, "signedURL"):
            return response.signedURL
        return str(response)

    except Exception as e:
        logger.warning(f"Failed to sign URL for {path}: {e}")
        return None
