"""Tests for the preview container manager."""

from unittest.mock import patch

import httpx
import pytest

from repo_preview.core.preview.container_manager import PreviewContainerManager
from repo_preview.core.preview.exceptions import (
    BuildError,
    DockerCommandError,
    PortAllocationError,
    RunError,
)
from repo_preview.core.preview.port_allocator import PortReservations

FIND_PORT = "repo_preview.core.preview.container_manager.find_available_port"


@pytest.fixture
def manager(mock_runtime, settings, healthy_transport):
    return PreviewContainerManager(
        runtime=mock_runtime,
        reservations=PortReservations(),
        settings=settings,
        http_transport=healthy_transport,
    )


class TestBuild:
    """Tests for image build."""

    @pytest.mark.asyncio
    async def test_build_success(self, manager, mock_runtime, tmp_path):
        output = await manager.build(tmp_path, "preview-abc12345")

        assert output == "Successfully built"
        mock_runtime.build_image.assert_awaited_once_with(tmp_path, "preview-abc12345")

    @pytest.mark.asyncio
    async def test_build_failure_wrapped(self, manager, mock_runtime, tmp_path):
        """Test build failures carry the captured output."""
        mock_runtime.build_image.side_effect = DockerCommandError(
            ["docker", "build"], 1, "npm ERR! missing script: build"
        )

        with pytest.raises(BuildError) as exc_info:
            await manager.build(tmp_path, "preview-abc12345")

        assert "npm ERR!" in str(exc_info.value)
        assert exc_info.value.details["stderr"] == "npm ERR! missing script: build"


class TestRun:
    """Tests for container start."""

    @pytest.mark.asyncio
    async def test_run_maps_host_port_to_internal(self, manager, mock_runtime):
        """Test the allocated host port maps to the template port."""
        with patch(FIND_PORT, return_value=4000) as find_port:
            running = await manager.run("img", "preview-abc12345", 4000, labels={"owner": "repo_preview"})

        find_port.assert_called_once_with(4000, 3001, 9000, manager.reservations)
        mock_runtime.run_container.assert_awaited_once_with(
            image="img",
            name="preview-abc12345",
            host_port=4000,
            internal_port=4000,
            labels={"owner": "repo_preview"},
        )
        assert running.port == 4000
        assert running.internal_port == 4000
        assert running.container_id == "abc123def456"

    @pytest.mark.asyncio
    async def test_run_low_internal_port_lands_in_range(self, manager, mock_runtime):
        """Test an nginx preview on port 80 gets a host port inside the range."""
        with patch("repo_preview.core.preview.port_allocator.is_port_free", return_value=True):
            running = await manager.run("img", "preview-abc12345", 80)

        assert running.port == 3001
        assert running.internal_port == 80
        assert 3001 in manager.reservations

    @pytest.mark.asyncio
    async def test_missing_internal_port_defaults_to_80(self, manager):
        with patch(FIND_PORT, return_value=3001):
            running = await manager.run("img", "name", None)
        assert running.internal_port == 80

    @pytest.mark.asyncio
    async def test_no_port_raises_run_error(self, manager, mock_runtime):
        with patch(FIND_PORT, side_effect=PortAllocationError(3001, 9000)):
            with pytest.raises(RunError) as exc_info:
                await manager.run("img", "name", 80)

        assert "3001-9000" in str(exc_info.value)
        mock_runtime.run_container.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_failure_releases_port(self, manager, mock_runtime):
        """Test a failed start gives its port back."""
        mock_runtime.run_container.side_effect = DockerCommandError(
            ["docker", "run"], 125, "port is already allocated"
        )

        with patch("repo_preview.core.preview.port_allocator.is_port_free", return_value=True):
            with pytest.raises(RunError):
                await manager.run("img", "name", 80)

        assert len(manager.reservations) == 0


class TestWaitForHealthy:
    """Tests for health polling."""

    @pytest.mark.asyncio
    async def test_healthy_on_first_attempt(self, manager):
        assert await manager.wait_for_healthy(3001, "/") is True

    @pytest.mark.asyncio
    async def test_probes_mapped_host_port_and_path(self, mock_runtime, settings):
        """Test probes go to the host port, not the container port."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(204)

        manager = PreviewContainerManager(mock_runtime, settings=settings, http_transport=httpx.MockTransport(handler))

        assert await manager.wait_for_healthy(4000, "health") is True
        assert seen == ["http://localhost:4000/health"]

    @pytest.mark.asyncio
    async def test_becomes_healthy_after_retries(self, mock_runtime, settings):
        """Test connection errors and non-2xx answers are retried."""
        responses = iter(["refused", 503, 200])

        def handler(request):
            item = next(responses)
            if item == "refused":
                raise httpx.ConnectError("Connection refused", request=request)
            return httpx.Response(item)

        manager = PreviewContainerManager(mock_runtime, settings=settings, http_transport=httpx.MockTransport(handler))

        assert await manager.wait_for_healthy(3001) is True

    @pytest.mark.asyncio
    async def test_unhealthy_after_all_attempts(self, mock_runtime, settings):
        """Test exhausted attempts return False instead of raising."""
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500)

        manager = PreviewContainerManager(mock_runtime, settings=settings, http_transport=httpx.MockTransport(handler))

        assert await manager.wait_for_healthy(3001) is False
        assert len(attempts) == settings.preview_health_check_retries

    @pytest.mark.asyncio
    async def test_refused_connections_are_unhealthy(self, mock_runtime, settings, unhealthy_transport):
        manager = PreviewContainerManager(mock_runtime, settings=settings, http_transport=unhealthy_transport)
        assert await manager.wait_for_healthy(3001) is False


class TestTeardown:
    """Tests for teardown."""

    @pytest.mark.asyncio
    async def test_teardown_stops_removes_and_releases(self, manager, mock_runtime):
        manager.reservations.reserve(3001)

        outcome = await manager.teardown("preview-abc12345", "preview-abc12345", port=3001)

        assert outcome == {"container": True, "image": True}
        mock_runtime.stop_container.assert_awaited_once_with("preview-abc12345", timeout=10)
        mock_runtime.remove_image.assert_awaited_once_with("preview-abc12345")
        assert 3001 not in manager.reservations

    @pytest.mark.asyncio
    async def test_teardown_of_absent_resources(self, manager, mock_runtime):
        """Test already-gone containers and images are fine."""
        mock_runtime.stop_container.return_value = False
        mock_runtime.remove_image.return_value = False

        outcome = await manager.teardown("preview-x", "preview-x")

        assert outcome == {"container": False, "image": False}

    @pytest.mark.asyncio
    async def test_teardown_never_raises(self, manager, mock_runtime):
        """Test every step is attempted even when one fails."""
        mock_runtime.stop_container.side_effect = DockerCommandError(["docker", "stop"], 1, "daemon down")
        manager.reservations.reserve(3001)

        outcome = await manager.teardown("preview-x", "preview-x", port=3001)

        assert "daemon down" in outcome["container"]
        assert outcome["image"] is True
        mock_runtime.remove_image.assert_awaited_once()
        # Container may still be running on it
        assert 3001 in manager.reservations
