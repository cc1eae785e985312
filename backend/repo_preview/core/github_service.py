"""GitHub source fetching for previews."""

import asyncio
import base64
import logging
from functools import wraps
from typing import Callable, List, Optional, TypeVar
from urllib.parse import urlparse

from github import Auth, Github, GithubException
from github.ContentFile import ContentFile
from github.Repository import Repository

from repo_preview.config import get_settings
from repo_preview.core.preview.models import RepositoryFile
from repo_preview.utils.ttl_store import TTLStore

logger = logging.getLogger(__name__)

T = TypeVar('T')


class GitHubAPIError(Exception):
    """Custom exception for GitHub API operations."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


def parse_github_url(url: str) -> tuple[str, str]:
    """Parse GitHub URL to extract owner and repo name.

    Args:
        url: GitHub repository URL

    Returns:
        Tuple of (owner, repo_name)

    Raises:
        ValueError: If URL format is invalid
    """
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]

    if url.startswith("git@github.com:"):
        # SSH format: git@github.com:owner/repo
        path = url.replace("git@github.com:", "")
    else:
        # HTTPS format: https://github.com/owner/repo
        path = urlparse(url).path.lstrip("/")

    parts = [p for p in path.split("/") if p]
    if len(parts) >= 2:
        return parts[0], parts[1]

    raise ValueError(f"Invalid GitHub URL: {url}")


def github_api_operation(operation_name: str):
    """Decorator for GitHub API operations with error handling."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except GitHubAPIError:
                raise
            except GithubException as e:
                message = e.data.get("message") if isinstance(e.data, dict) else None
                raise GitHubAPIError(
                    message=f"GitHub API {operation_name} failed: {message or e}",
                    status_code=e.status,
                    details={"data": e.data},
                ) from e
            except Exception as e:
                raise GitHubAPIError(
                    message=f"GitHub API {operation_name} failed: {e}",
                ) from e
        return wrapper
    return decorator


class GitHubService:
    """Fetches repository trees from the GitHub contents API."""

    def __init__(
        self,
        token: Optional[str] = None,
        cache: Optional[TTLStore] = None,
        client: Optional[Github] = None,
    ):
        """Initialize GitHub service.

        Args:
            token: GitHub personal access token (uses config if not provided)
            cache: Optional store for fetched file lists, keyed by owner/repo/path
            client: Preconfigured PyGithub client
        """
        settings = get_settings()
        self.token = token or settings.github_token
        self.excluded_dirs = set(settings.github_excluded_dirs)
        self._timeout = settings.github_request_timeout
        self._retries = settings.github_retries
        self._cache = cache
        self._client = client

    @property
    def client(self) -> Github:
        """Get GitHub client (lazy initialization)."""
        if self._client is None:
            # Anonymous access works for public repositories at a lower rate limit
            auth = Auth.Token(self.token) if self.token else None
            self._client = Github(auth=auth, timeout=self._timeout, retry=self._retries)
        return self._client

    def _read_content(self, gh_repo: Repository, item: ContentFile) -> str:
        """Decode a file's content as text (sync helper)."""
        if item.encoding == "base64":
            raw = item.decoded_content
        else:
            # Files above the contents API size limit come back without content
            blob = gh_repo.get_git_blob(item.sha)
            raw = base64.b64decode(blob.content)
        return raw.decode("utf-8", errors="replace")

    def _walk(self, gh_repo: Repository, path: str) -> List[RepositoryFile]:
        """Recursively collect regular files below path (sync helper)."""
        contents = gh_repo.get_contents(path)
        if not isinstance(contents, list):
            contents = [contents]

        files: List[RepositoryFile] = []
        for item in contents:
            if item.type == "file":
                files.append(RepositoryFile(
                    name=item.name,
                    path=item.path,
                    content=self._read_content(gh_repo, item),
                    size=item.size or 0,
                ))
            elif item.type == "dir" and item.name not in self.excluded_dirs:
                files.extend(self._walk(gh_repo, item.path))
        return files

    @github_api_operation("fetch_repository_files")
    async def fetch_repository_files(self, owner: str, repo: str, path: str = "") -> List[RepositoryFile]:
        """Fetch every regular file of a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            path: Sub-directory to start from (repository root by default)

        Returns:
            Flattened list of files with decoded text content

        Raises:
            GitHubAPIError: On any fetch failure
        """
        cache_key = f"{owner}/{repo}:{path}"
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.info(f"Using cached file list for {owner}/{repo}")
                return list(cached)

        logger.info(f"Fetching files from {owner}/{repo}{f'/{path}' if path else ''}")
        gh_repo = await asyncio.to_thread(self.client.get_repo, f"{owner}/{repo}")
        files = await asyncio.to_thread(self._walk, gh_repo, path)
        logger.info(f"Fetched {len(files)} files from {owner}/{repo}")

        if self._cache is not None:
            self._cache.set(cache_key, list(files))
        return files
