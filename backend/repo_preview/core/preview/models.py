# -*- coding: utf-8 -*-
"""
Data types of the preview pipeline.
"""

import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ProjectType(str, Enum):
    """Project archetypes driving Dockerfile template selection."""
    REACT = "react"
    NEXTJS = "nextjs"
    VUE = "vue"
    NODEJS = "nodejs"
    PYTHON = "python"
    FLASK = "flask"
    STATIC = "static"


@dataclass
class RepositoryFile:
    """A fetched source file."""
    name: str
    path: str               # repository-relative, forward slashes
    content: str
    size: int = 0

    @property
    def extension(self) -> str:
        """Extension of the file name including the dot, or empty string."""
        return posixpath.splitext(self.name)[1]


@dataclass(frozen=True)
class ProjectTypeConfig:
    """Static per-archetype build/run template."""
    name: str
    dockerfile: str
    build_command: str
    start_command: str
    port: int
    health_check: str = "/"


@dataclass
class RunningContainer:
    """Result of a successful container start."""
    container_id: str
    container_name: str
    port: int               # host port
    internal_port: int


@dataclass
class PreviewContainer:
    """A preview container as reported by the container runtime."""
    name: str
    status: str
    port: Optional[int] = None
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class PreviewProject:
    """One live preview."""
    project_id: str
    owner: str
    repo: str
    project_type: str
    container_name: str
    image_name: str
    workspace_path: str
    created_at: datetime
    expires_at: datetime
    host: str = "localhost"
    port: Optional[int] = None
    internal_port: Optional[int] = None
    container_id: Optional[str] = None
    healthy: bool = False
    file_count: int = 0
    file_types: List[str] = field(default_factory=list)

    @property
    def url(self) -> Optional[str]:
        if self.port is None:
            return None
        return f"http://{self.host}:{self.port}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the client-facing result shape."""
        result = {
            "success": True,
            "projectId": self.project_id,
            "repository": {"owner": self.owner, "repo": self.repo},
            "projectType": self.project_type,
            "preview": {
                "url": self.url,
                "port": self.port,
                "internalPort": self.internal_port,
                "containerId": self.container_id,
                "containerName": self.container_name,
                "healthy": self.healthy,
            },
            "files": {
                "count": self.file_count,
                "types": self.file_types,
            },
            "workspace": self.workspace_path,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }
        if not self.healthy:
            result["warning"] = "Container started but health check failed. Preview might not be ready yet."
        return result
