"""
Article image storage.

Uploading lives outside this service; the only operation the article engine
needs is reclaiming files after an article has been permanently removed.
"""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Protocol

from blog_backend.config import settings

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    async def delete(self, filenames: Iterable[str]) -> None: ...


class LocalFileStorage:
    """Files kept on local disk under ``MEDIA_ROOT``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path_for(self, filename: str) -> Path | None:
        path = (self.root / filename).resolve()
        if not path.is_relative_to(self.root):
            logger.warning("Refusing to delete %r: outside media root", filename)
            return None
        return path

    def _delete_sync(self, filenames: list[str]) -> None:
        for name in filenames:
            path = self._path_for(name)
            if path is None:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                # The rows are already gone; a stray file is left for cleanup.
                logger.warning("Could not delete image file %s: %s", path, exc)

    async def delete(self, filenames: Iterable[str]) -> None:
        names = list(filenames)
        if not names:
            return
        await asyncio.to_thread(self._delete_sync, names)
        logger.info("Reclaimed %d image file(s)", len(names))


def get_file_storage() -> FileStorage:
    """FastAPI dependency; overridden in tests."""
    return LocalFileStorage(settings.MEDIA_ROOT)
