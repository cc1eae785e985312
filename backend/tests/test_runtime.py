"""Tests for container runtime backends."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import APIError, ImageNotFound, NotFound

from repo_preview.core.preview.exceptions import DockerCommandError
from repo_preview.core.preview.runtime import (
    DockerCliRuntime,
    DockerSdkRuntime,
    create_runtime,
    parse_host_port,
    parse_labels,
)


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def fake_process(lines, returncode=0):
    process = MagicMock()
    process.__enter__.return_value = process
    process.__exit__.return_value = False
    process.stdout = iter(lines)
    process.returncode = returncode
    return process


class TestParsing:
    """Tests for docker CLI output parsing helpers."""

    def test_parse_labels(self):
        labels = parse_labels("owner=repo_preview,preview.project_id=abc12345,preview.repository=octo/demo")
        assert labels == {
            "owner": "repo_preview",
            "preview.project_id": "abc12345",
            "preview.repository": "octo/demo",
        }

    def test_parse_labels_empty(self):
        assert parse_labels("") == {}

    @pytest.mark.parametrize("ports,expected", [
        ("0.0.0.0:3001->80/tcp", 3001),
        ("0.0.0.0:4000->4000/tcp, :::4000->4000/tcp", 4000),
        ("80/tcp", None),
        ("", None),
    ])
    def test_parse_host_port(self, ports, expected):
        assert parse_host_port(ports) == expected


class TestDockerCliRuntime:
    """Tests for DockerCliRuntime."""

    @pytest.fixture
    def runtime(self):
        return DockerCliRuntime()

    @pytest.mark.asyncio
    async def test_run_container_arguments(self, runtime):
        """Test detached, auto-removed run with port mapping and labels."""
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=completed("abc123\n")) as run:
            container_id = await runtime.run_container(
                image="preview-abc12345",
                name="preview-abc12345",
                host_port=3001,
                internal_port=80,
                labels={"owner": "repo_preview"},
            )

        assert container_id == "abc123"
        cmd = run.call_args.args[0]
        assert cmd == [
            "docker", "run", "-d", "--rm",
            "--name", "preview-abc12345",
            "-p", "3001:80",
            "--label", "owner=repo_preview",
            "preview-abc12345",
        ]

    @pytest.mark.asyncio
    async def test_run_failure_raises(self, runtime):
        """Test non-zero exit raises with stderr attached."""
        result = completed(stderr="port is already allocated\n", returncode=125)
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=result):
            with pytest.raises(DockerCommandError) as exc_info:
                await runtime.run_container("img", "name", 3001, 80)

        assert exc_info.value.returncode == 125
        assert exc_info.value.stderr == "port is already allocated"

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, runtime):
        """Test a missing docker binary surfaces as DockerCommandError."""
        with patch("repo_preview.core.preview.runtime.subprocess.run", side_effect=FileNotFoundError("docker")):
            with pytest.raises(DockerCommandError):
                await runtime.disk_usage()

    @pytest.mark.asyncio
    async def test_stop_missing_container_returns_false(self, runtime):
        """Test stopping an absent container is not an error."""
        result = completed(stderr="Error response from daemon: No such container: preview-x", returncode=1)
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=result):
            assert await runtime.stop_container("preview-x") is False

    @pytest.mark.asyncio
    async def test_stop_other_failure_raises(self, runtime):
        result = completed(stderr="Cannot connect to the Docker daemon", returncode=1)
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=result):
            with pytest.raises(DockerCommandError):
                await runtime.stop_container("preview-x")

    @pytest.mark.asyncio
    async def test_stop_passes_timeout(self, runtime):
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=completed("preview-x")) as run:
            assert await runtime.stop_container("preview-x", timeout=5) is True
        assert run.call_args.args[0] == ["docker", "stop", "-t", "5", "preview-x"]

    @pytest.mark.asyncio
    async def test_remove_missing_image_returns_false(self, runtime):
        result = completed(stderr="Error: No such image: preview-x", returncode=1)
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=result):
            assert await runtime.remove_image("preview-x") is False

    @pytest.mark.asyncio
    async def test_list_containers_filters_by_prefix(self, runtime):
        """Test ps output parsing and exact prefix filtering."""
        stdout = (
            "preview-abc12345\t0.0.0.0:3001->80/tcp\tUp 2 minutes\t"
            "owner=repo_preview,preview.project_id=abc12345\n"
            "my-preview-db\t5432/tcp\tUp 1 hour\t\n"
            "\n"
        )
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=completed(stdout)) as run:
            containers = await runtime.list_containers("preview-")

        assert "name=preview-" in run.call_args.args[0]
        assert len(containers) == 1
        assert containers[0].name == "preview-abc12345"
        assert containers[0].port == 3001
        assert containers[0].status == "Up 2 minutes"
        assert containers[0].labels["preview.project_id"] == "abc12345"

    @pytest.mark.asyncio
    async def test_prune_runs_all_three(self, runtime):
        with patch("repo_preview.core.preview.runtime.subprocess.run", return_value=completed("Total reclaimed space: 0B")) as run:
            result = await runtime.prune()

        assert set(result) == {"containers", "images", "build_cache"}
        commands = [c.args[0][1:3] for c in run.call_args_list]
        assert commands == [["container", "prune"], ["image", "prune"], ["builder", "prune"]]

    @pytest.mark.asyncio
    async def test_build_streams_output(self, runtime, tmp_path):
        """Test a successful build returns its output."""
        process = fake_process(["Step 1/3 : FROM nginx\n", "Successfully built abc\n"])
        with patch("repo_preview.core.preview.runtime.subprocess.Popen", return_value=process) as popen:
            output = await runtime.build_image(tmp_path, "preview-abc12345")

        assert output == "Step 1/3 : FROM nginx\nSuccessfully built abc"
        assert popen.call_args.args[0] == ["docker", "build", "-t", "preview-abc12345", "."]
        assert popen.call_args.kwargs["cwd"] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_build_failure_keeps_output_tail(self, runtime, tmp_path):
        """Test a failed build carries the tail of its output."""
        lines = [f"line {i}\n" for i in range(100)] + ["npm ERR! missing script: build\n"]
        process = fake_process(lines, returncode=1)
        with patch("repo_preview.core.preview.runtime.subprocess.Popen", return_value=process):
            with pytest.raises(DockerCommandError) as exc_info:
                await runtime.build_image(tmp_path, "preview-abc12345")

        assert "npm ERR! missing script: build" in exc_info.value.stderr
        assert "line 0\n" not in exc_info.value.stderr
        assert exc_info.value.returncode == 1


class TestDockerSdkRuntime:
    """Tests for DockerSdkRuntime."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def runtime(self, client):
        return DockerSdkRuntime(client=client)

    @pytest.mark.asyncio
    async def test_run_container(self, runtime, client):
        client.containers.run.return_value = MagicMock(id="abc123")

        container_id = await runtime.run_container("img", "preview-abc12345", 3001, 80, {"owner": "repo_preview"})

        assert container_id == "abc123"
        kwargs = client.containers.run.call_args.kwargs
        assert kwargs["ports"] == {"80/tcp": 3001}
        assert kwargs["detach"] is True
        assert kwargs["auto_remove"] is True
        assert kwargs["labels"] == {"owner": "repo_preview"}

    @pytest.mark.asyncio
    async def test_api_error_mapped(self, runtime, client):
        """Test SDK errors surface as DockerCommandError."""
        client.containers.run.side_effect = APIError("port is already allocated")

        with pytest.raises(DockerCommandError) as exc_info:
            await runtime.run_container("img", "name", 3001, 80)
        assert "port is already allocated" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_stop_missing_container_returns_false(self, runtime, client):
        client.containers.get.side_effect = NotFound("No such container")
        assert await runtime.stop_container("preview-x") is False

    @pytest.mark.asyncio
    async def test_stop_container(self, runtime, client):
        container = MagicMock()
        client.containers.get.return_value = container

        assert await runtime.stop_container("preview-x", timeout=3) is True
        container.stop.assert_called_once_with(timeout=3)

    @pytest.mark.asyncio
    async def test_remove_missing_image_returns_false(self, runtime, client):
        client.images.remove.side_effect = ImageNotFound("No such image")
        assert await runtime.remove_image("preview-x") is False

    @pytest.mark.asyncio
    async def test_list_containers(self, runtime, client):
        preview = MagicMock(
            status="running",
            ports={"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "3001"}]},
            labels={"preview.project_id": "abc12345"},
        )
        preview.name = "preview-abc12345"
        other = MagicMock(status="running", ports={}, labels={})
        other.name = "not-a-preview-1"
        client.containers.list.return_value = [preview, other]

        containers = await runtime.list_containers("preview-")

        assert [c.name for c in containers] == ["preview-abc12345"]
        assert containers[0].port == 3001
        assert containers[0].labels == {"preview.project_id": "abc12345"}


class TestCreateRuntime:
    """Tests for create_runtime."""

    def test_backends(self):
        assert isinstance(create_runtime("cli"), DockerCliRuntime)
        assert isinstance(create_runtime("sdk"), DockerSdkRuntime)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_runtime("podman-remote")
