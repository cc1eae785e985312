# -*- coding: utf-8 -*-
"""
On-disk workspaces for previews, one directory per preview identifier.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Iterable, Optional, Union

import aiofiles

from repo_preview.core.preview.exceptions import WorkspaceError
from repo_preview.core.preview.models import RepositoryFile

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """Materializes fetched repository files under a shared previews root."""

    def __init__(self, root_path: Union[str, Path]):
        self.root_path = Path(root_path)

    def workspace_path(self, project_id: str) -> Path:
        """Directory holding the workspace of one preview."""
        path = (self.root_path / project_id).resolve()
        if path.parent != self.root_path.resolve():
            raise WorkspaceError(
                message=f"Invalid preview identifier: {project_id!r}",
                operation="workspace_path",
            )
        return path

    @staticmethod
    def _get_safe_path(workspace: Path, relative_path: str) -> Optional[Path]:
        """Resolve relative_path inside workspace, None if it would escape it."""
        target = (workspace / relative_path.lstrip("/")).resolve()
        try:
            target.relative_to(workspace)
        except ValueError:
            return None
        if target == workspace:
            return None
        return target

    async def create_workspace(self, project_id: str, files: Iterable[RepositoryFile]) -> Path:
        """
        Write every file verbatim under the preview's workspace directory.

        Partial writes are left in place on failure; callers remove the
        workspace themselves.

        Args:
            project_id: Preview identifier, used as directory name
            files: Files to write, paths relative to the repository root

        Returns:
            Path: The workspace directory

        Raises:
            WorkspaceError: If a path is unsafe or any write fails
        """
        workspace = self.workspace_path(project_id)

        try:
            workspace.mkdir(parents=True, exist_ok=True)
            for f in files:
                target = self._get_safe_path(workspace, f.path)
                if target is None:
                    raise WorkspaceError(
                        message=f"Refusing to write outside workspace: {f.path!r}",
                        operation="create_workspace",
                        details={"path": f.path},
                    )
                target.parent.mkdir(parents=True, exist_ok=True)
                # newline="" keeps line endings byte-for-byte
                async with aiofiles.open(target, mode="w", encoding="utf-8", newline="") as out:
                    await out.write(f.content)
        except OSError as e:
            raise WorkspaceError(
                message=f"Failed to create workspace: {e}",
                operation="create_workspace",
                details={"workspace": str(workspace)},
            ) from e

        logger.info(f"Created workspace {workspace}")
        return workspace

    async def remove_workspace(self, project_id: str) -> bool:
        """
        Recursively delete a preview workspace.

        Returns:
            bool: True if a directory was removed, False if none existed
        """
        workspace = self.workspace_path(project_id)
        if not workspace.exists():
            return False
        await asyncio.to_thread(shutil.rmtree, workspace)
        logger.info(f"Removed workspace {workspace}")
        return True
