"""Pytest configuration and fixtures for backend tests."""

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from repo_preview.config.settings import Settings  # noqa: E402
from repo_preview.core.preview.models import RepositoryFile  # noqa: E402


def make_file(path: str, content: str = "") -> RepositoryFile:
    """Build a RepositoryFile the way the GitHub fetcher does."""
    return RepositoryFile(
        name=path.rsplit("/", 1)[-1],
        path=path,
        content=content,
        size=len(content.encode("utf-8")),
    )


@pytest.fixture
def previews_root(tmp_path) -> Path:
    """Create a temporary previews root directory."""
    root = tmp_path / "previews"
    root.mkdir()
    return root


@pytest.fixture
def settings(previews_root) -> Settings:
    """Settings with fast health polling and an isolated previews root."""
    return Settings(
        preview_root_path=previews_root,
        preview_host="localhost",
        preview_name_prefix="preview-",
        preview_owner_label="repo_preview",
        preview_port_range_start=3001,
        preview_port_range_end=9000,
        preview_health_check_retries=3,
        preview_health_check_interval=0,
        preview_health_check_timeout=1.0,
        preview_ttl_seconds=7200,
        preview_stop_timeout=10,
        github_excluded_dirs=[".git", "node_modules"],
    )


@pytest.fixture
def mock_runtime():
    """Create mock container runtime."""
    runtime = MagicMock()
    runtime.build_image = AsyncMock(return_value="Successfully built")
    runtime.run_container = AsyncMock(return_value="abc123def456")
    runtime.stop_container = AsyncMock(return_value=True)
    runtime.remove_image = AsyncMock(return_value=True)
    runtime.list_containers = AsyncMock(return_value=[])
    runtime.prune = AsyncMock(return_value={
        "containers": "Total reclaimed space: 0B",
        "images": "Total reclaimed space: 0B",
        "build_cache": "Total reclaimed space: 0B",
    })
    runtime.disk_usage = AsyncMock(return_value="TYPE  TOTAL  ACTIVE  SIZE")
    return runtime


@pytest.fixture
def healthy_transport():
    """HTTP transport answering every health probe with 200."""
    return httpx.MockTransport(lambda request: httpx.Response(200, text="ok"))


@pytest.fixture
def unhealthy_transport():
    """HTTP transport refusing every connection."""
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)
    return httpx.MockTransport(handler)


@pytest.fixture
def react_files():
    """A minimal Vite + React repository."""
    manifest = {
        "name": "demo",
        "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0"},
        "devDependencies": {"vite": "^5.0.0"},
    }
    return [
        make_file("package.json", json.dumps(manifest)),
        make_file("vite.config.js", "export default {}\n"),
        make_file("index.html", "<div id=\"root\"></div>\n"),
        make_file("src/main.jsx", "import React from 'react'\n"),
    ]


@pytest.fixture
def express_files():
    """A minimal Express repository."""
    manifest = {"name": "api", "dependencies": {"express": "^4.18.0"}}
    return [
        make_file("package.json", json.dumps(manifest)),
        make_file("server.js", "require('express')\n"),
    ]
