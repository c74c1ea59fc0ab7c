"""Folder breadcrumb resolution."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models.folder import Folder

logger = logging.getLogger(__name__)

FOLDER_PATH_MAX_DEPTH = 64


class FolderPathResolver:
    """Walks parent references from a folder up to its root.

    Lookups are cached for the lifetime of the resolver, so one instance per
    request reads each folder at most once. A walk stops at the first missing
    folder, at a folder already seen on the same walk, or after ``max_depth``
    levels.
    """

    def __init__(self, db: AsyncSession, *, max_depth: int = FOLDER_PATH_MAX_DEPTH):
        self._db = db
        self._max_depth = max(int(max_depth), 1)
        self._folders: Dict[str, Optional[Folder]] = {}
        self._paths: Dict[str, List[Dict[str, str]]] = {}

    async def _get_folder(self, folder_id: str) -> Optional[Folder]:
        if folder_id not in self._folders:
            self._folders[folder_id] = await self._db.get(Folder, folder_id)
        return self._folders[folder_id]

    async def path(self, folder_id: Optional[str]) -> List[Dict[str, str]]:
        """Return ``[{id, name}, ...]`` ordered root to leaf."""
        if not folder_id:
            return []
        if folder_id in self._paths:
            return [dict(entry) for entry in self._paths[folder_id]]

        reversed_path: List[Dict[str, str]] = []
        visited = set()
        current_id: Optional[str] = folder_id
        while current_id:
            if current_id in visited:
                logger.warning("Folder cycle detected at folder=%s (start=%s)", current_id, folder_id)
                break
            if len(reversed_path) >= self._max_depth:
                logger.warning("Folder path truncated at depth %d (start=%s)", self._max_depth, folder_id)
                break
            visited.add(current_id)
            folder = await self._get_folder(current_id)
            if folder is None:
                break
            reversed_path.append({"id": folder.id, "name": folder.name})
            current_id = folder.parent_id

        path = list(reversed(reversed_path))
        self._paths[folder_id] = path
        return [dict(entry) for entry in path]
