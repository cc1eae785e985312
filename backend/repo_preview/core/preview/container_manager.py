# -*- coding: utf-8 -*-
"""
Container lifecycle manager for preview containers.

This module handles:
- Image build from a materialized workspace
- Container start with dynamic host port allocation
- Health polling against the mapped port
- Best-effort teardown
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from repo_preview.config.settings import Settings, get_settings
from repo_preview.core.preview.constants import DEFAULT_INTERNAL_PORT
from repo_preview.core.preview.exceptions import (
    BuildError,
    DockerCommandError,
    PortAllocationError,
    RunError,
)
from repo_preview.core.preview.models import RunningContainer
from repo_preview.core.preview.port_allocator import PortReservations, find_available_port
from repo_preview.core.preview.runtime import ContainerRuntime

logger = logging.getLogger(__name__)


class PreviewContainerManager:
    """
    Manager for preview container lifecycle.

    Build, run and health polling are strictly sequential per preview; the
    manager holds no per-preview state besides port reservations.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        reservations: Optional[PortReservations] = None,
        settings: Optional[Settings] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize container manager.

        Args:
            runtime: Container runtime backend
            reservations: Shared in-process port reservation table
            settings: Application settings (uses cached settings if not provided)
            http_transport: Transport for health probes, mainly for tests
        """
        self.runtime = runtime
        self.reservations = reservations if reservations is not None else PortReservations()
        self.settings = settings or get_settings()
        self._http_transport = http_transport

    async def build(self, workspace: Union[str, Path], image_name: str) -> str:
        """
        Build the preview image from the workspace Dockerfile.

        Raises:
            BuildError: If the build exits unsuccessfully; carries captured output
        """
        try:
            return await self.runtime.build_image(workspace, image_name)
        except DockerCommandError as e:
            logger.error(f"Docker build failed for {image_name}: {e.stderr}")
            raise BuildError(
                message=f"Docker build failed: {e.stderr or e}",
                operation="build",
                details={"image": image_name, "returncode": e.returncode, "stderr": e.stderr},
            ) from e

    async def run(
        self,
        image_name: str,
        container_name: str,
        internal_port: Optional[int],
        labels: Optional[Dict[str, str]] = None,
    ) -> RunningContainer:
        """
        Start the preview container on a freshly allocated host port.

        The host port search starts at the internal port, clamped into the
        configured range.

        Raises:
            RunError: If no port is free or the container fails to start
        """
        internal_port = internal_port or DEFAULT_INTERNAL_PORT

        try:
            host_port = await asyncio.to_thread(
                find_available_port,
                internal_port,
                self.settings.preview_port_range_start,
                self.settings.preview_port_range_end,
                self.reservations,
            )
        except PortAllocationError as e:
            raise RunError(message=str(e), operation="run", details=e.details) from e

        logger.info(f"Starting container: {container_name} on port {host_port} (internal: {internal_port})")
        try:
            container_id = await self.runtime.run_container(
                image=image_name,
                name=container_name,
                host_port=host_port,
                internal_port=internal_port,
                labels=labels,
            )
        except DockerCommandError as e:
            self.reservations.release(host_port)
            logger.error(f"Container failed to start: {e.stderr}")
            raise RunError(
                message=f"Container start failed: {e.stderr or e}",
                operation="run",
                details={"container": container_name, "port": host_port, "stderr": e.stderr},
            ) from e

        logger.info(f"Container started: {container_id} on port {host_port}")
        return RunningContainer(
            container_id=container_id,
            container_name=container_name,
            port=host_port,
            internal_port=internal_port,
        )

    async def wait_for_healthy(self, port: int, health_path: str = "/") -> bool:
        """
        Poll the preview until it answers with a 2xx status.

        Args:
            port: Host port mapped to the container
            health_path: Path to probe

        Returns:
            bool: True once healthy, False after all attempts are used up
        """
        if not health_path.startswith("/"):
            health_path = f"/{health_path}"
        url = f"http://localhost:{port}{health_path}"
        retries = self.settings.preview_health_check_retries
        interval = self.settings.preview_health_check_interval

        async with httpx.AsyncClient(
            timeout=self.settings.preview_health_check_timeout,
            transport=self._http_transport,
        ) as client:
            for attempt in range(1, retries + 1):
                try:
                    response = await client.get(url)
                    if response.is_success:
                        logger.info(f"Preview on port {port} healthy after {attempt} attempt(s)")
                        return True
                except httpx.HTTPError:
                    # Container might still be starting
                    pass
                if attempt < retries:
                    await asyncio.sleep(interval)

        logger.warning(f"Preview on port {port} not healthy after {retries} attempts")
        return False

    async def teardown(
        self,
        container_name: str,
        image_name: str,
        port: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Stop the container, remove its image and release its port.

        Every step is attempted; failures are logged, never raised.

        Returns:
            dict: Outcome per step (True, False when already absent, or error text)
        """
        outcome: Dict[str, Any] = {}
        stopped = False

        try:
            outcome["container"] = await self.runtime.stop_container(
                container_name, timeout=self.settings.preview_stop_timeout
            )
            stopped = True
        except Exception as e:
            logger.warning(f"Failed to stop container {container_name}: {e}")
            outcome["container"] = str(e)

        try:
            outcome["image"] = await self.runtime.remove_image(image_name)
        except Exception as e:
            logger.warning(f"Failed to remove image {image_name}: {e}")
            outcome["image"] = str(e)

        # A port stays reserved while its container may still be running
        if stopped:
            self.reservations.release(port)
        return outcome
