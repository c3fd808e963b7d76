# garden/storage.py
# ==============================
# Local file storage for plant images
# ==============================

from pathlib import Path
from typing import Optional, Union

from core.settings import get_storage_dir


class LocalImageStorage:
    """Stores images as files under one directory; the file path is the URL."""

    def __init__(self, storage_dir: Optional[Union[str, Path]] = None):
        self.storage_dir = Path(storage_dir) if storage_dir else get_storage_dir()

    def upload_image(self, image_data: bytes, filename: str) -> str:
        """
        Write image bytes to storage.

        Args:
            image_data: Raw image bytes.
            filename: Target file name (no directories).

        Returns:
            Path of the stored file as a string.
        """
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        path = self.storage_dir / Path(filename).name
        path.write_bytes(image_data)
        return str(path)

    def delete_image(self, url: str) -> None:
        """Remove a stored image; missing files are ignored."""
        Path(url).unlink(missing_ok=True)
