"""
Preview API Router

Route definitions for ephemeral repository previews.
Business logic lives in the service layer.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path
from pydantic import BaseModel, Field

from repo_preview.core.preview import DockerConfigOverride, ProjectType
from repo_preview.service.preview_service import PreviewService, get_preview_service

preview_router = APIRouter(prefix="/preview", tags=["preview"])


# ===================
# Request Models
# ===================

class CreatePreviewRequest(BaseModel):
    project_type: Optional[ProjectType] = Field(default=None, alias="projectType")
    docker_config: Optional[DockerConfigOverride] = Field(default=None, alias="dockerConfig")

    model_config = {"populate_by_name": True}


class CreatePreviewFromUrlRequest(CreatePreviewRequest):
    repo_url: str = Field(..., alias="repoUrl", description="GitHub repository URL")


# ===================
# Preview Routes
# ===================

@preview_router.get(
    "",
    summary="List active previews",
    operation_id="list_previews"
)
async def list_previews(
    service: PreviewService = Depends(get_preview_service),
):
    """List running preview containers"""
    return await service.list_previews()


@preview_router.post(
    "/from-url",
    summary="Create preview from repository URL",
    operation_id="create_preview_from_url"
)
async def create_preview_from_url(
    data: CreatePreviewFromUrlRequest = Body(...),
    service: PreviewService = Depends(get_preview_service),
):
    """Build and start a preview for a GitHub repository URL"""
    return await service.create_preview_from_url(
        repo_url=data.repo_url,
        project_type=data.project_type,
        docker_config=data.docker_config,
    )


@preview_router.post(
    "/cleanup",
    summary="Prune Docker resources",
    operation_id="cleanup_docker_resources"
)
async def cleanup_docker_resources(
    service: PreviewService = Depends(get_preview_service),
):
    """Remove stopped containers, unused images and build cache"""
    return await service.cleanup_docker_resources()


@preview_router.post(
    "/{owner}/{repo}",
    summary="Create preview",
    operation_id="create_preview"
)
async def create_preview(
    owner: str = Path(..., description="Repository owner"),
    repo: str = Path(..., description="Repository name"),
    data: Optional[CreatePreviewRequest] = Body(default=None),
    service: PreviewService = Depends(get_preview_service),
):
    """Build and start a preview for owner/repo"""
    data = data or CreatePreviewRequest()
    return await service.create_preview(
        owner=owner,
        repo=repo,
        project_type=data.project_type,
        docker_config=data.docker_config,
    )


@preview_router.delete(
    "",
    summary="Stop all previews",
    operation_id="stop_all_previews"
)
async def stop_all_previews(
    service: PreviewService = Depends(get_preview_service),
):
    """Stop every running preview"""
    return await service.stop_all_previews()


@preview_router.delete(
    "/{project_id}",
    summary="Stop preview",
    operation_id="stop_preview"
)
async def stop_preview(
    project_id: str = Path(..., pattern=r"^[A-Za-z0-9_-]+$", description="Preview identifier"),
    service: PreviewService = Depends(get_preview_service),
):
    """Stop a preview and remove its image and workspace"""
    return await service.stop_preview(project_id=project_id)
