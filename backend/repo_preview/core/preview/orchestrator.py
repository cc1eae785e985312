# -*- coding: utf-8 -*-
"""
Preview orchestrator.

One create call walks fetch -> detect -> workspace -> Dockerfile -> build ->
run -> health poll. Any failure after the fetch triggers best-effort cleanup
of what the attempt created before the error is re-raised with the failing
phase attached.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol, Union

from repo_preview.config.settings import Settings, get_settings
from repo_preview.core.preview.constants import (
    LABEL_EXPIRES_AT,
    LABEL_OWNER,
    LABEL_PROJECT_ID,
    LABEL_REPOSITORY,
    PROJECT_ID_LENGTH,
)
from repo_preview.core.preview.container_manager import PreviewContainerManager
from repo_preview.core.preview.detector import detect_project_type
from repo_preview.core.preview.dockerfile import (
    DockerConfigOverride,
    generate_dockerfile,
    resolve_project_type,
)
from repo_preview.core.preview.exceptions import PreviewCreationError
from repo_preview.core.preview.models import (
    PreviewContainer,
    PreviewProject,
    ProjectType,
    RepositoryFile,
)
from repo_preview.core.preview.runtime import ContainerRuntime
from repo_preview.core.preview.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class SourceFetcher(Protocol):
    """Anything that can list a repository's files."""

    async def fetch_repository_files(self, owner: str, repo: str, path: str = "") -> List[RepositoryFile]:
        ...


def generate_project_id() -> str:
    """Short opaque preview identifier."""
    return uuid.uuid4().hex[:PROJECT_ID_LENGTH]


def summarize_file_types(files: List[RepositoryFile]) -> List[str]:
    """Distinct file extensions in first-seen order."""
    return list(dict.fromkeys(f.extension for f in files if f.extension))


class PreviewOrchestrator:
    """Creates, lists and tears down previews."""

    def __init__(
        self,
        fetcher: SourceFetcher,
        workspace: WorkspaceManager,
        container_manager: PreviewContainerManager,
        settings: Optional[Settings] = None,
    ):
        self.fetcher = fetcher
        self.workspace = workspace
        self.container_manager = container_manager
        self.settings = settings or get_settings()
        # Host ports of previews created by this process, for reservation release
        self._ports: Dict[str, int] = {}

    @property
    def runtime(self) -> ContainerRuntime:
        return self.container_manager.runtime

    @property
    def name_prefix(self) -> str:
        return self.settings.preview_name_prefix

    def container_name(self, project_id: str) -> str:
        return f"{self.name_prefix}{project_id}"

    def image_name(self, project_id: str) -> str:
        return f"{self.name_prefix}{project_id}"

    def preview_url(self, port: Optional[int]) -> Optional[str]:
        if port is None:
            return None
        return f"http://{self.settings.preview_host}:{port}"

    def _project_id_of(self, container: PreviewContainer) -> str:
        return container.labels.get(LABEL_PROJECT_ID) or container.name[len(self.name_prefix):]

    async def create_preview(
        self,
        owner: str,
        repo: str,
        project_type: Optional[Union[ProjectType, str]] = None,
        docker_config: Optional[DockerConfigOverride] = None,
    ) -> PreviewProject:
        """
        Create a live preview of owner/repo.

        Args:
            owner: Repository owner
            repo: Repository name
            project_type: Archetype override; detected from the files when omitted
            docker_config: Per-request template overrides

        Returns:
            PreviewProject: The running preview, healthy or not

        Raises:
            PreviewCreationError: Naming the phase that failed
        """
        project_id = generate_project_id()
        container_name = self.container_name(project_id)
        image_name = self.image_name(project_id)
        phase = "fetch"
        logger.info(f"Starting preview {project_id} for {owner}/{repo}")

        try:
            files = await self.fetcher.fetch_repository_files(owner, repo)
        except Exception as e:
            # Nothing exists yet, nothing to clean up
            raise PreviewCreationError(phase, owner, repo, e) from e
        logger.info(f"Fetched {len(files)} files")

        running = None
        try:
            phase = "dockerfile" if project_type else "detect"
            resolved_type = resolve_project_type(project_type) if project_type else detect_project_type(files)
            logger.info(f"Project type: {resolved_type.value}")

            phase = "workspace"
            workspace_dir = await self.workspace.create_workspace(project_id, files)

            phase = "dockerfile"
            config = await generate_dockerfile(workspace_dir, resolved_type, docker_config)

            phase = "build"
            await self.container_manager.build(workspace_dir, image_name)

            created_at = datetime.now(timezone.utc)
            expires_at = created_at + timedelta(seconds=self.settings.preview_ttl_seconds)

            phase = "run"
            running = await self.container_manager.run(
                image_name,
                container_name,
                config.port,
                labels={
                    LABEL_OWNER: self.settings.preview_owner_label,
                    LABEL_PROJECT_ID: project_id,
                    LABEL_REPOSITORY: f"{owner}/{repo}",
                    LABEL_EXPIRES_AT: expires_at.isoformat(),
                },
            )
            self._ports[project_id] = running.port
        except Exception as e:
            logger.error(f"Preview {project_id} failed during {phase}: {e}")
            try:
                await self.stop_preview(project_id)
            except Exception as cleanup_error:
                logger.error(f"Cleanup failed for preview {project_id}: {cleanup_error}")
            raise PreviewCreationError(phase, owner, repo, e) from e

        logger.info("Checking container health...")
        healthy = await self.container_manager.wait_for_healthy(running.port, config.health_check)

        preview = PreviewProject(
            project_id=project_id,
            owner=owner,
            repo=repo,
            project_type=resolved_type.value,
            container_name=container_name,
            image_name=image_name,
            workspace_path=str(workspace_dir),
            created_at=created_at,
            expires_at=expires_at,
            host=self.settings.preview_host,
            port=running.port,
            internal_port=running.internal_port,
            container_id=running.container_id,
            healthy=healthy,
            file_count=len(files),
            file_types=summarize_file_types(files),
        )
        logger.info(f"Preview created successfully: {preview.url} (healthy={healthy})")
        return preview

    async def stop_preview(self, project_id: str) -> Dict[str, Any]:
        """
        Stop a preview and release everything it holds.

        Safe to call repeatedly; absent containers, images and workspaces
        count as already cleaned up.
        """
        outcome = await self.container_manager.teardown(
            self.container_name(project_id),
            self.image_name(project_id),
            port=self._ports.get(project_id),
        )
        # Error text means the stop failed and the port is still held
        if not isinstance(outcome.get("container"), str):
            self._ports.pop(project_id, None)

        try:
            outcome["workspace"] = await self.workspace.remove_workspace(project_id)
        except Exception as e:
            logger.warning(f"Failed to remove workspace for preview {project_id}: {e}")
            outcome["workspace"] = str(e)

        return {
            "success": True,
            "message": "Preview stopped and cleaned up",
            "details": outcome,
        }

    async def list_active_previews(self) -> Dict[str, Any]:
        """List running previews as reported by the container runtime."""
        try:
            containers = await self.runtime.list_containers(self.name_prefix)
        except Exception as e:
            logger.error(f"Failed to list previews: {e}")
            return {"success": False, "error": str(e), "previews": [], "count": 0}

        previews = []
        for c in containers:
            project_id = self._project_id_of(c)
            previews.append({
                "projectId": project_id,
                "containerName": c.name,
                "port": c.port,
                "url": self.preview_url(c.port),
                "status": c.status,
                "repository": c.labels.get(LABEL_REPOSITORY),
                "expiresAt": c.labels.get(LABEL_EXPIRES_AT),
            })

        return {"success": True, "previews": previews, "count": len(previews)}

    async def stop_all_previews(self) -> Dict[str, Any]:
        """Stop every running preview; a failure on one does not stop the rest."""
        tracked = list(self._ports)
        containers = await self.runtime.list_containers(self.name_prefix)

        stopped = []
        for c in containers:
            project_id = self._project_id_of(c)
            try:
                await self.stop_preview(project_id)
                stopped.append(project_id)
            except Exception as e:
                logger.warning(f"Failed to stop container {c.name}: {e}")

        return {
            "success": True,
            "message": f"Stopped {len(stopped)} preview containers",
            "stopped": stopped,
            "released": await self._release_vanished(tracked, containers),
        }

    async def release_vanished_previews(self) -> List[str]:
        """
        Clean up previews started here whose container is gone.

        Auto-removed containers that exit on their own never pass through
        stop_preview, so their port reservation, image and workspace would
        otherwise be held for the life of the process.
        """
        # Previews registered after this snapshot are still starting
        tracked = list(self._ports)
        if not tracked:
            return []
        containers = await self.runtime.list_containers(self.name_prefix)
        return await self._release_vanished(tracked, containers)

    async def _release_vanished(self, tracked: List[str], containers: List[PreviewContainer]) -> List[str]:
        live = {self._project_id_of(c) for c in containers}
        released = []
        for project_id in [p for p in tracked if p in self._ports and p not in live]:
            try:
                await self.stop_preview(project_id)
                released.append(project_id)
                logger.info(f"Released vanished preview {project_id}")
            except Exception as e:
                logger.warning(f"Failed to release vanished preview {project_id}: {e}")
        return released

    async def cleanup_docker_resources(self) -> Dict[str, Any]:
        """Prune stopped containers, unused images and build cache."""
        logger.info("Cleaning up Docker resources...")
        pruned = await self.runtime.prune()
        usage = await self.runtime.disk_usage()

        return {
            "success": True,
            "message": "Docker cleanup completed",
            "details": usage,
            "pruned": pruned,
        }

    async def expired_previews(self, now: Optional[datetime] = None) -> List[str]:
        """Identifiers of running previews whose expiry label lies in the past."""
        now = now or datetime.now(timezone.utc)
        containers = await self.runtime.list_containers(self.name_prefix)

        expired = []
        for c in containers:
            raw = c.labels.get(LABEL_EXPIRES_AT)
            if not raw:
                continue
            try:
                expires_at = datetime.fromisoformat(raw)
            except ValueError:
                logger.warning(f"Ignoring malformed expiry label on {c.name}: {raw!r}")
                continue
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= now:
                expired.append(self._project_id_of(c))
        return expired
