import logging
import os
import uuid
from typing import BinaryIO, NamedTuple

from meetingroom.config import ALLOWED_UPLOAD_EXTENSIONS, MAX_UPLOAD_BYTES, UPLOAD_DIR

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class StoredFile(NamedTuple):
    url: str
    original_name: str
    size: int


class UploadRejected(ValueError):
    pass


def save_upload(stream: BinaryIO, filename: str, upload_dir: str = UPLOAD_DIR,
                max_bytes: int = MAX_UPLOAD_BYTES) -> StoredFile:
    """Store an attachment under a random name and return its stable reference."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_UPLOAD_EXTENSIONS:
        raise UploadRejected(f"File type not allowed: {ext or 'none'}")

    os.makedirs(upload_dir, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{ext}"
    path = os.path.join(upload_dir, stored_name)
    size = 0
    with open(path, "wb") as out:
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                out.close()
                os.remove(path)
                raise UploadRejected(f"File exceeds {max_bytes} bytes")
            out.write(chunk)
    logger.debug(f"Stored upload {filename} as {stored_name} ({size} bytes)")
    return StoredFile(url=f"/uploads/{stored_name}", original_name=filename, size=size)
