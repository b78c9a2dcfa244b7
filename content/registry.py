# src/content/registry.py
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, field_validator

from config import settings

logger = logging.getLogger(__name__)


class ResourceEntry(BaseModel):
    """A protected file, addressed by its public id."""
    id: str
    file_name: str
    title: str
    media_type: str = "application/pdf"
    preview: str = ""

    @field_validator("file_name")
    @classmethod
    def bare_file_name(cls, value: str) -> str:
        if (
            not value
            or value in (".", "..")
            or "\x00" in value
            or "/" in value
            or "\\" in value
            or os.path.basename(value) != value
        ):
            raise ValueError(f"file_name must be a bare file name, got {value!r}")
        return value


class ResourceRegistry:
    """Public resource ids mapped to files under one root directory.

    resolve() is the only place a request-supplied id becomes a filesystem
    path, and it only ever joins the configured root with a configured name.
    """

    def __init__(self, root: str, resources: Dict[str, dict]):
        self.root = Path(root)
        self._entries = {
            resource_id: ResourceEntry(id=resource_id, **data) for resource_id, data in resources.items()
        }
        logger.info(f"Resource registry loaded: {len(self._entries)} entries under {self.root}")

    def get(self, resource_id: str) -> Optional[ResourceEntry]:
        return self._entries.get(resource_id)

    def entries(self) -> List[ResourceEntry]:
        return list(self._entries.values())

    def resolve(self, resource_id: str) -> Optional[Path]:
        entry = self.get(resource_id)
        if entry is None:
            return None
        return self.root / entry.file_name


resource_registry = ResourceRegistry(settings.RESOURCE_ROOT, settings.PROTECTED_RESOURCES)
