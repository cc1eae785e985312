"""
Preview service implementation

Business logic layer for preview endpoints.
"""

import logging
from typing import Optional

from repo_preview.config import get_settings
from repo_preview.config.logging_config import log_print
from repo_preview.core.github_service import GitHubService, parse_github_url
from repo_preview.core.preview import (
    DockerConfigOverride,
    PortReservations,
    PreviewContainerManager,
    PreviewCreationError,
    PreviewError,
    PreviewOrchestrator,
    WorkspaceManager,
    create_runtime,
)
from repo_preview.utils.exceptions import BusinessException
from repo_preview.utils.model.response_code import ResponseCode
from repo_preview.utils.model.response_model import BaseResponse, ListResponse
from repo_preview.utils.ttl_store import TTLStore

logger = logging.getLogger(__name__)


def build_orchestrator() -> PreviewOrchestrator:
    """Wire the orchestrator from application settings."""
    settings = get_settings()
    cache = TTLStore(settings.github_cache_ttl) if settings.github_cache_ttl > 0 else None
    container_manager = PreviewContainerManager(
        runtime=create_runtime(settings.preview_runtime_backend),
        reservations=PortReservations(),
        settings=settings,
    )
    return PreviewOrchestrator(
        fetcher=GitHubService(cache=cache),
        workspace=WorkspaceManager(settings.preview_root_path),
        container_manager=container_manager,
        settings=settings,
    )


class PreviewService:
    """
    Preview service

    Wraps the orchestrator results in the unified response envelope.
    Expected pipeline failures (a fetch, build or start that fails) are
    answered with HTTP 200 and the envelope ``code`` naming the failing
    phase. Only PreviewErrors that escape this layer reach the 502 handler.
    """

    def __init__(self, orchestrator: Optional[PreviewOrchestrator] = None):
        self.orchestrator = orchestrator or build_orchestrator()

    @log_print
    async def create_preview(
        self,
        owner: str,
        repo: str,
        project_type: Optional[str] = None,
        docker_config: Optional[DockerConfigOverride] = None,
    ):
        """Create a live preview of a GitHub repository"""
        try:
            preview = await self.orchestrator.create_preview(
                owner, repo, project_type=project_type, docker_config=docker_config
            )
        except PreviewCreationError as e:
            return BaseResponse.error(
                message=str(e),
                data=e.details,
                code=ResponseCode.for_phase(e.phase),
            )

        message = "Preview created" if preview.healthy else "Preview started but not healthy yet"
        return BaseResponse.created(data=preview.to_dict(), message=message)

    @log_print
    async def create_preview_from_url(
        self,
        repo_url: str,
        project_type: Optional[str] = None,
        docker_config: Optional[DockerConfigOverride] = None,
    ):
        """Create a preview from a GitHub repository URL"""
        try:
            owner, repo = parse_github_url(repo_url)
        except ValueError as e:
            raise BusinessException(message=str(e), data={"repoUrl": repo_url}) from e
        return await self.create_preview(owner, repo, project_type, docker_config)

    @log_print
    async def stop_preview(self, project_id: str):
        """Stop one preview"""
        result = await self.orchestrator.stop_preview(project_id)
        return BaseResponse.success(data=result, message=result["message"])

    @log_print
    async def list_previews(self):
        """List running previews"""
        result = await self.orchestrator.list_active_previews()
        if not result["success"]:
            return BaseResponse.error(
                message=f"Failed to list previews: {result['error']}",
                data={"previews": [], "count": 0},
                code=ResponseCode.PREVIEW_RUNTIME_ERROR,
            )
        return ListResponse.success(
            items=result["previews"],
            total=result["count"],
            previews=result["previews"],
            count=result["count"],
        )

    @log_print
    async def stop_all_previews(self):
        """Stop every running preview"""
        try:
            result = await self.orchestrator.stop_all_previews()
        except PreviewError as e:
            return BaseResponse.error(
                message=f"Failed to stop all previews: {e}",
                code=ResponseCode.PREVIEW_RUNTIME_ERROR,
            )
        return BaseResponse.success(data=result, message=result["message"])

    @log_print
    async def cleanup_docker_resources(self):
        """Prune unused Docker resources"""
        try:
            result = await self.orchestrator.cleanup_docker_resources()
        except PreviewError as e:
            return BaseResponse.error(
                message=f"Docker cleanup failed: {e}",
                code=ResponseCode.PREVIEW_RUNTIME_ERROR,
            )
        return BaseResponse.success(data=result, message=result["message"])


_preview_service: Optional[PreviewService] = None


def get_preview_service() -> PreviewService:
    """Get global preview service instance."""
    global _preview_service
    if _preview_service is None:
        _preview_service = PreviewService()
    return _preview_service
