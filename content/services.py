# src/content/services.py
import aiofiles
import logging
import os
from pathlib import Path
from typing import AsyncIterator, List

from content.registry import ResourceRegistry
from content.schemas import ArticleInfo, PublicArticle

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


async def stream_file(path: Path, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield a file's content in chunks without loading it whole."""
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(chunk_size):
            yield chunk


class ContentService:
    @staticmethod
    def list_public(registry: ResourceRegistry) -> List[PublicArticle]:
        """Previews only; no file names or locations."""
        return [
            PublicArticle(id=entry.id, title=entry.title, media_type=entry.media_type, preview=entry.preview)
            for entry in registry.entries()
        ]

    @staticmethod
    def list_accessible(registry: ResourceRegistry) -> List[ArticleInfo]:
        articles = []
        for entry in registry.entries():
            path = registry.resolve(entry.id)
            size = os.path.getsize(path) if path.is_file() else None
            if size is None:
                logger.error(f"Registered resource {entry.id} is missing on disk")
            articles.append(ArticleInfo(
                id=entry.id,
                title=entry.title,
                media_type=entry.media_type,
                size=size,
                url=f"/content/articles/{entry.id}",
            ))
        return articles
