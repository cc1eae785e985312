# -*- coding: utf-8 -*-
"""
Container runtime backends.

The runtime is the source of truth for which previews exist: listing goes to
the daemon by name prefix rather than to an in-process table, so running
previews survive a restart of this service.
"""

import asyncio
import logging
import re
import subprocess
from abc import ABC, abstractmethod
from functools import wraps
from pathlib import Path
from typing import Dict, List, Optional, Union

import docker
from docker.errors import BuildError as SdkBuildError, DockerException, ImageNotFound, NotFound

from repo_preview.core.preview.exceptions import DockerCommandError
from repo_preview.core.preview.models import PreviewContainer

logger = logging.getLogger(__name__)

# Matches host port of mappings like 0.0.0.0:3001->80/tcp
HOST_PORT_PATTERN = re.compile(r":(\d+)->")

# Keep the tail of build output attached to errors
BUILD_OUTPUT_TAIL = 50


class ContainerRuntime(ABC):
    """
    Abstract container runtime.

    Implementations cover image build, detached container run, stop, image
    removal, listing by name prefix and resource pruning.
    """

    @abstractmethod
    async def build_image(self, context_dir: Union[str, Path], tag: str) -> str:
        """Build an image from the Dockerfile in context_dir; returns build output."""
        pass

    @abstractmethod
    async def run_container(
        self,
        image: str,
        name: str,
        host_port: int,
        internal_port: int,
        labels: Optional[Dict[str, str]] = None,
    ) -> str:
        """Start a detached, auto-removed container; returns its id."""
        pass

    @abstractmethod
    async def stop_container(self, name: str, timeout: int = 10) -> bool:
        """Stop a container; False if it does not exist."""
        pass

    @abstractmethod
    async def remove_image(self, tag: str) -> bool:
        """Remove an image; False if it does not exist."""
        pass

    @abstractmethod
    async def list_containers(self, name_prefix: str) -> List[PreviewContainer]:
        """List running containers whose name starts with name_prefix."""
        pass

    @abstractmethod
    async def prune(self) -> Dict[str, str]:
        """Remove stopped containers, dangling images and build cache."""
        pass

    @abstractmethod
    async def disk_usage(self) -> str:
        """Human-readable disk usage report."""
        pass


def parse_labels(raw: str) -> Dict[str, str]:
    """Parse docker's comma separated key=value label listing."""
    labels = {}
    for item in raw.split(","):
        if "=" in item:
            key, value = item.split("=", 1)
            labels[key.strip()] = value.strip()
    return labels


def parse_host_port(ports: str) -> Optional[int]:
    match = HOST_PORT_PATTERN.search(ports or "")
    return int(match.group(1)) if match else None


class DockerCliRuntime(ContainerRuntime):
    """Runtime backed by the docker command line client."""

    def __init__(self, docker_bin: str = "docker"):
        self.docker_bin = docker_bin

    def _run(self, args: List[str], operation: str, cwd: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run a docker command to completion (sync helper)."""
        cmd = [self.docker_bin, *args]
        try:
            result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
        except OSError as e:
            raise DockerCommandError(cmd, None, str(e), operation=operation) from e

        if result.returncode != 0:
            raise DockerCommandError(cmd, result.returncode, result.stderr, operation=operation)
        return result

    def _build(self, context_dir: str, tag: str) -> str:
        """Run docker build, streaming merged output to the log (sync helper)."""
        cmd = [self.docker_bin, "build", "-t", tag, "."]
        lines: List[str] = []
        try:
            process = subprocess.Popen(
                cmd,
                cwd=context_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise DockerCommandError(cmd, None, str(e), operation="build_image") from e

        with process:
            for line in process.stdout:
                line = line.rstrip()
                lines.append(line)
                logger.debug(f"[build {tag}] {line}")
        output = "\n".join(lines)

        if process.returncode != 0:
            tail = "\n".join(lines[-BUILD_OUTPUT_TAIL:])
            raise DockerCommandError(cmd, process.returncode, tail, operation="build_image")
        return output

    async def build_image(self, context_dir: Union[str, Path], tag: str) -> str:
        logger.info(f"Building Docker image: {tag}")
        output = await asyncio.to_thread(self._build, str(context_dir), tag)
        logger.info(f"Docker image built successfully: {tag}")
        return output

    async def run_container(
        self,
        image: str,
        name: str,
        host_port: int,
        internal_port: int,
        labels: Optional[Dict[str, str]] = None,
    ) -> str:
        args = ["run", "-d", "--rm", "--name", name, "-p", f"{host_port}:{internal_port}"]
        for key, value in (labels or {}).items():
            args.extend(["--label", f"{key}={value}"])
        args.append(image)

        result = await asyncio.to_thread(self._run, args, "run_container")
        return result.stdout.strip()

    async def stop_container(self, name: str, timeout: int = 10) -> bool:
        try:
            await asyncio.to_thread(self._run, ["stop", "-t", str(timeout), name], "stop_container")
            return True
        except DockerCommandError as e:
            if "no such container" in e.stderr.lower():
                return False
            raise

    async def remove_image(self, tag: str) -> bool:
        try:
            await asyncio.to_thread(self._run, ["rmi", "-f", tag], "remove_image")
            return True
        except DockerCommandError as e:
            if "no such image" in e.stderr.lower():
                return False
            raise

    async def list_containers(self, name_prefix: str) -> List[PreviewContainer]:
        args = [
            "ps",
            "--filter", f"name={name_prefix}",
            "--format", "{{.Names}}\t{{.Ports}}\t{{.Status}}\t{{.Labels}}",
        ]
        result = await asyncio.to_thread(self._run, args, "list_containers")

        containers = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            parts = line.split("\t")
            parts += [""] * (4 - len(parts))
            name, ports, status, labels = parts[:4]
            # docker's name filter is a substring match
            if not name.startswith(name_prefix):
                continue
            containers.append(PreviewContainer(
                name=name,
                status=status,
                port=parse_host_port(ports),
                labels=parse_labels(labels),
            ))
        return containers

    async def prune(self) -> Dict[str, str]:
        results = {}
        for key, args in (
            ("containers", ["container", "prune", "-f"]),
            ("images", ["image", "prune", "-f"]),
            ("build_cache", ["builder", "prune", "-f"]),
        ):
            result = await asyncio.to_thread(self._run, args, f"prune_{key}")
            results[key] = result.stdout.strip()
        return results

    async def disk_usage(self) -> str:
        result = await asyncio.to_thread(self._run, ["system", "df"], "disk_usage")
        return result.stdout


def sdk_operation(operation_name: str):
    """Decorator mapping docker SDK errors to DockerCommandError."""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except DockerCommandError:
                raise
            except DockerException as e:
                raise DockerCommandError(
                    [operation_name],
                    getattr(e, "status_code", None),
                    str(e),
                    operation=operation_name,
                ) from e
        return wrapper
    return decorator


class DockerSdkRuntime(ContainerRuntime):
    """Runtime backed by the docker daemon API through the docker SDK."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        """Get Docker client, creating if needed."""
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    @sdk_operation("build_image")
    async def build_image(self, context_dir: Union[str, Path], tag: str) -> str:
        logger.info(f"Building Docker image: {tag}")
        try:
            _, logs = await asyncio.to_thread(
                self.client.images.build,
                path=str(context_dir),
                tag=tag,
                rm=True,
            )
        except SdkBuildError as e:
            tail = "\n".join(
                str(chunk.get("stream") or chunk.get("error") or "").rstrip()
                for chunk in list(e.build_log)[-BUILD_OUTPUT_TAIL:]
            )
            raise DockerCommandError(["build", tag], 1, tail or str(e), operation="build_image") from e

        lines = []
        for chunk in logs:
            text = str(chunk.get("stream", "")).rstrip()
            if text:
                lines.append(text)
                logger.debug(f"[build {tag}] {text}")
        logger.info(f"Docker image built successfully: {tag}")
        return "\n".join(lines)

    @sdk_operation("run_container")
    async def run_container(
        self,
        image: str,
        name: str,
        host_port: int,
        internal_port: int,
        labels: Optional[Dict[str, str]] = None,
    ) -> str:
        container = await asyncio.to_thread(
            self.client.containers.run,
            image=image,
            name=name,
            detach=True,
            auto_remove=True,
            ports={f"{internal_port}/tcp": host_port},
            labels=labels or {},
        )
        return container.id

    @sdk_operation("stop_container")
    async def stop_container(self, name: str, timeout: int = 10) -> bool:
        try:
            container = await asyncio.to_thread(self.client.containers.get, name)
            await asyncio.to_thread(container.stop, timeout=timeout)
            return True
        except NotFound:
            return False

    @sdk_operation("remove_image")
    async def remove_image(self, tag: str) -> bool:
        try:
            await asyncio.to_thread(self.client.images.remove, tag, force=True)
            return True
        except ImageNotFound:
            return False

    @sdk_operation("list_containers")
    async def list_containers(self, name_prefix: str) -> List[PreviewContainer]:
        containers = await asyncio.to_thread(
            self.client.containers.list,
            filters={"name": name_prefix},
        )

        result = []
        for c in containers:
            if not c.name.startswith(name_prefix):
                continue
            port = None
            for bindings in (c.ports or {}).values():
                if bindings:
                    port = int(bindings[0]["HostPort"])
                    break
            result.append(PreviewContainer(
                name=c.name,
                status=c.status,
                port=port,
                labels=dict(c.labels or {}),
            ))
        return result

    @sdk_operation("prune")
    async def prune(self) -> Dict[str, str]:
        containers = await asyncio.to_thread(self.client.containers.prune)
        images = await asyncio.to_thread(self.client.images.prune)
        build_cache = await asyncio.to_thread(self.client.api.prune_builds)
        return {
            "containers": f"Total reclaimed space: {containers.get('SpaceReclaimed', 0)} bytes",
            "images": f"Total reclaimed space: {images.get('SpaceReclaimed', 0)} bytes",
            "build_cache": f"Total reclaimed space: {build_cache.get('SpaceReclaimed', 0)} bytes",
        }

    @sdk_operation("disk_usage")
    async def disk_usage(self) -> str:
        df = await asyncio.to_thread(self.client.df)
        rows = [
            ("Images", df.get("Images") or [], "Size"),
            ("Containers", df.get("Containers") or [], "SizeRw"),
            ("Local Volumes", df.get("Volumes") or [], None),
            ("Build Cache", df.get("BuildCache") or [], "Size"),
        ]
        lines = ["TYPE\tTOTAL\tSIZE"]
        for label, items, size_key in rows:
            size = sum(int(i.get(size_key) or 0) for i in items) if size_key else 0
            lines.append(f"{label}\t{len(items)}\t{size}B")
        return "\n".join(lines)


def create_runtime(backend: str = "cli") -> ContainerRuntime:
    """Create the runtime configured by preview.runtime_backend."""
    if backend == "cli":
        return DockerCliRuntime()
    if backend == "sdk":
        return DockerSdkRuntime()
    raise ValueError(f"Unknown container runtime backend: {backend!r}")
