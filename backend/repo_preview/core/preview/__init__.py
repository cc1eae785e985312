# -*- coding: utf-8 -*-
"""
Preview module for ephemeral containerized repository previews.

This module provides:
- Project type detection and Dockerfile synthesis
- Workspace materialization
- Container lifecycle management (build, run, health poll, teardown)
- Orchestration of the full create/stop/list cycle
"""

from repo_preview.core.preview.container_manager import PreviewContainerManager
from repo_preview.core.preview.detector import PackageManifest, detect_project_type
from repo_preview.core.preview.dockerfile import (
    PROJECT_CONFIGS,
    DockerConfigOverride,
    generate_dockerfile,
    resolve_project_config,
)
from repo_preview.core.preview.exceptions import (
    BuildError,
    DockerCommandError,
    DockerfileError,
    PortAllocationError,
    PreviewCreationError,
    PreviewError,
    RunError,
    WorkspaceError,
)
from repo_preview.core.preview.models import (
    PreviewContainer,
    PreviewProject,
    ProjectType,
    ProjectTypeConfig,
    RepositoryFile,
    RunningContainer,
)
from repo_preview.core.preview.orchestrator import PreviewOrchestrator
from repo_preview.core.preview.port_allocator import PortReservations, find_available_port
from repo_preview.core.preview.reaper import PreviewReaper
from repo_preview.core.preview.runtime import (
    ContainerRuntime,
    DockerCliRuntime,
    DockerSdkRuntime,
    create_runtime,
)
from repo_preview.core.preview.workspace import WorkspaceManager

__all__ = [
    "PreviewContainerManager",
    "PackageManifest",
    "detect_project_type",
    "PROJECT_CONFIGS",
    "DockerConfigOverride",
    "generate_dockerfile",
    "resolve_project_config",
    "BuildError",
    "DockerCommandError",
    "DockerfileError",
    "PortAllocationError",
    "PreviewCreationError",
    "PreviewError",
    "RunError",
    "WorkspaceError",
    "PreviewContainer",
    "PreviewProject",
    "ProjectType",
    "ProjectTypeConfig",
    "RepositoryFile",
    "RunningContainer",
    "PreviewOrchestrator",
    "PortReservations",
    "find_available_port",
    "PreviewReaper",
    "ContainerRuntime",
    "DockerCliRuntime",
    "DockerSdkRuntime",
    "create_runtime",
    "WorkspaceManager",
]
