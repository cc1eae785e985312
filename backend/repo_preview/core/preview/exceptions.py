# -*- coding: utf-8 -*-
"""
Exceptions raised by the preview pipeline.
"""

from typing import Optional


class PreviewError(Exception):
    """Base exception for preview operations."""

    def __init__(self, message: str, operation: str, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class PortAllocationError(PreviewError):
    """No free host port left in the configured range."""

    def __init__(self, start: int, end: int):
        super().__init__(
            message=f"No available ports in range {start}-{end}",
            operation="allocate_port",
            details={"start": start, "end": end},
        )


class WorkspaceError(PreviewError):
    """Writing or removing a preview workspace failed."""
    pass


class DockerfileError(PreviewError):
    """Unknown project type or unusable Dockerfile configuration."""
    pass


class DockerCommandError(PreviewError):
    """A container runtime command exited unsuccessfully."""

    def __init__(self, command: list, returncode: Optional[int], stderr: str = "", operation: str = "docker"):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr.strip() if stderr else ""
        super().__init__(
            message=f"{' '.join(str(c) for c in command)} failed with exit code {returncode}: {self.stderr}",
            operation=operation,
            details={"returncode": returncode, "stderr": self.stderr},
        )


class BuildError(PreviewError):
    """Image build failed."""
    pass


class RunError(PreviewError):
    """Container start failed."""
    pass


class PreviewCreationError(PreviewError):
    """
    Creation aborted in one of the pipeline phases.

    Raised after cleanup of whatever the failed attempt had created.
    """

    def __init__(self, phase: str, owner: str, repo: str, cause: Exception):
        self.phase = phase
        self.owner = owner
        self.repo = repo
        details = {"phase": phase, "repository": f"{owner}/{repo}"}
        if isinstance(cause, PreviewError):
            details.update(cause.details)
        super().__init__(
            message=f"Preview creation failed for {owner}/{repo} during {phase}: {cause}",
            operation="create_preview",
            details=details,
        )
