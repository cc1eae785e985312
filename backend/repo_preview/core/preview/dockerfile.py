# -*- coding: utf-8 -*-
"""
Dockerfile templates per project type and their per-request overrides.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import aiofiles
from pydantic import BaseModel, Field

from repo_preview.core.preview.constants import DOCKERFILE_NAME
from repo_preview.core.preview.exceptions import DockerfileError
from repo_preview.core.preview.models import ProjectType, ProjectTypeConfig

logger = logging.getLogger(__name__)


PROJECT_CONFIGS: Dict[ProjectType, ProjectTypeConfig] = {
    ProjectType.REACT: ProjectTypeConfig(
        name=ProjectType.REACT.value,
        dockerfile="""
# Multi-stage build for Vite + React
FROM node:20-alpine as builder
WORKDIR /app
COPY package*.json ./
RUN npm ci && npm cache clean --force
COPY . .
RUN npm run build

# Production stage with Nginx
FROM nginx:alpine
COPY --from=builder /app/dist /usr/share/nginx/html
EXPOSE 80
CMD ["nginx", "-g", "daemon off;"]
""",
        build_command="npm ci && npm run build",
        start_command='nginx -g "daemon off;"',
        port=80,
        health_check="/",
    ),
    ProjectType.NEXTJS: ProjectTypeConfig(
        name=ProjectType.NEXTJS.value,
        dockerfile="""
# Multi-stage build for Next.js
FROM node:20-alpine as builder
WORKDIR /app
COPY package*.json ./
RUN npm ci && npm cache clean --force
COPY . .
RUN npm run build

# Production stage
FROM node:20-alpine
WORKDIR /app
COPY --from=builder /app/.next ./.next
COPY --from=builder /app/public ./public
COPY --from=builder /app/package*.json ./
RUN npm ci --omit=dev && npm cache clean --force
EXPOSE 3000
CMD ["npm", "start"]
""",
        build_command="npm ci && npm run build",
        start_command="npm start",
        port=3000,
        health_check="/",
    ),
    ProjectType.VUE: ProjectTypeConfig(
        name=ProjectType.VUE.value,
        dockerfile="""
FROM node:20-alpine
WORKDIR /app
COPY package*.json ./
RUN npm install
COPY . .
EXPOSE 8080
CMD ["npm", "run", "serve"]
""",
        build_command="npm install",
        start_command="npm run serve",
        port=8080,
        health_check="/",
    ),
    ProjectType.NODEJS: ProjectTypeConfig(
        name=ProjectType.NODEJS.value,
        dockerfile="""
FROM node:20-alpine
WORKDIR /app
COPY package*.json ./
RUN npm install
COPY . .
EXPOSE 8000
CMD ["node", "index.js"]
""",
        build_command="npm install",
        start_command="node index.js",
        port=8000,
        health_check="/health",
    ),
    ProjectType.PYTHON: ProjectTypeConfig(
        name=ProjectType.PYTHON.value,
        dockerfile="""
FROM python:3.9-slim
WORKDIR /app
COPY requirements.txt ./
RUN pip install -r requirements.txt
COPY . .
EXPOSE 8000
CMD ["python", "app.py"]
""",
        build_command="pip install -r requirements.txt",
        start_command="python app.py",
        port=8000,
        health_check="/health",
    ),
    ProjectType.FLASK: ProjectTypeConfig(
        name=ProjectType.FLASK.value,
        dockerfile="""
FROM python:3.9-slim
WORKDIR /app
COPY requirements.txt ./
RUN pip install -r requirements.txt
COPY . .
EXPOSE 5000
ENV FLASK_APP=app.py
CMD ["flask", "run", "--host=0.0.0.0"]
""",
        build_command="pip install -r requirements.txt",
        start_command="flask run --host=0.0.0.0",
        port=5000,
        health_check="/",
    ),
    ProjectType.STATIC: ProjectTypeConfig(
        name=ProjectType.STATIC.value,
        dockerfile="""
FROM nginx:alpine
COPY . /usr/share/nginx/html
EXPOSE 80
CMD ["nginx", "-g", "daemon off;"]
""",
        build_command='echo "Static site - no build needed"',
        start_command='nginx -g "daemon off;"',
        port=80,
        health_check="/",
    ),
}


class DockerConfigOverride(BaseModel):
    """Caller-supplied overrides merged onto a project type template."""

    port: Optional[int] = Field(default=None, ge=1, le=65535, description="Internal container port")
    dockerfile: Optional[str] = Field(default=None, description="Full Dockerfile text")
    build_command: Optional[str] = Field(default=None, alias="buildCommand")
    start_command: Optional[str] = Field(default=None, alias="startCommand")

    model_config = {"populate_by_name": True}


def resolve_project_type(project_type: Union[ProjectType, str]) -> ProjectType:
    """
    Normalize a project type tag.

    Raises:
        DockerfileError: If the tag is not one of the known archetypes
    """
    try:
        return ProjectType(project_type)
    except ValueError:
        raise DockerfileError(
            message=f"Unknown project type: {project_type!r}",
            operation="resolve_project_type",
            details={"project_type": str(project_type), "supported": [t.value for t in ProjectType]},
        )


def resolve_project_config(
    project_type: Union[ProjectType, str],
    override: Optional[DockerConfigOverride] = None,
) -> ProjectTypeConfig:
    """
    Shallow-merge override fields that are set onto the archetype template.

    The template itself is never modified.
    """
    config = PROJECT_CONFIGS[resolve_project_type(project_type)]
    if override is None:
        return config

    changes = override.model_dump(exclude_none=True)
    if not changes:
        return config
    return dataclasses.replace(config, **changes)


async def generate_dockerfile(
    workspace: Union[str, Path],
    project_type: Union[ProjectType, str],
    override: Optional[DockerConfigOverride] = None,
) -> ProjectTypeConfig:
    """
    Write the effective Dockerfile into the workspace root.

    Returns:
        ProjectTypeConfig: The effective configuration used

    Raises:
        DockerfileError: Unknown project type or unwritable Dockerfile
    """
    config = resolve_project_config(project_type, override)
    dockerfile_path = Path(workspace) / DOCKERFILE_NAME

    try:
        async with aiofiles.open(dockerfile_path, mode="w", encoding="utf-8") as f:
            await f.write(config.dockerfile.strip())
    except OSError as e:
        raise DockerfileError(
            message=f"Failed to write Dockerfile: {e}",
            operation="generate_dockerfile",
            details={"path": str(dockerfile_path)},
        ) from e

    logger.info(f"Generated Dockerfile for {config.name} at {dockerfile_path}")
    return config
