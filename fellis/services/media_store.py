"""
Media Store

Local-disk storage for uploaded and imported media. Files are addressed by
their public URL (``/uploads/<filename>``); only the basename is ever used to
build a filesystem path, so a stored URL cannot point outside the upload
directory.
"""

import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

# Content type -> extension for images fetched from external CDNs
IMAGE_EXTENSIONS = {
    "png": ".png",
    "gif": ".gif",
}
DEFAULT_IMAGE_EXTENSION = ".jpg"


def extension_for_content_type(content_type: str | None) -> str:
    """Infer a file extension from a response content type (png/gif, else jpg)."""
    content_type = (content_type or "").lower()
    for marker, ext in IMAGE_EXTENSIONS.items():
        if marker in content_type:
            return ext
    return DEFAULT_IMAGE_EXTENSION


class LocalMediaStore:
    """Service for saving and removing media files on local disk"""

    def __init__(self, upload_dir: str | Path = "uploads", url_prefix: str = "/uploads"):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_filename(extension: str) -> str:
        """Random filename; original names are never preserved."""
        return f"{uuid.uuid4()}{extension}"

    def is_local(self, url: str | None) -> bool:
        return bool(url) and url.startswith(f"{self.url_prefix}/")

    def _path_for(self, url: str) -> Path:
        return self.upload_dir / Path(url).name

    async def save(self, data: bytes, filename: str) -> str:
        """Write bytes under the upload directory and return the public URL."""
        name = Path(filename).name
        (self.upload_dir / name).write_bytes(data)
        return f"{self.url_prefix}/{name}"

    async def exists(self, url: str) -> bool:
        if not self.is_local(url):
            return False
        return self._path_for(url).is_file()

    async def delete(self, url: str) -> bool:
        """
        Remove a stored file. Missing files and non-local URLs are not errors.

        Returns True if a file was removed.
        """
        if not self.is_local(url):
            return False
        path = self._path_for(url)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug(f"Deleted media file {path}")
        return True
