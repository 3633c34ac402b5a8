"""Repository loaders that turn a GitHub URL and token into text documents."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Sequence
from urllib.parse import quote, urlparse

import httpx
import pathspec

from ..core.errors import LoadError, UpstreamAuthError, UpstreamUnavailableError, ValidationError

logger = logging.getLogger(__name__)

GITHUB_HOSTS = {"github.com", "www.github.com"}

IGNORE_PATTERNS: tuple[str, ...] = (
    "package-lock.json",
    ".env",
    "deno-lock.json",
    "yarn.lock",
    "composer.lock",
    "pnpm-lock.yaml",
    "Gemfile.lock",
    "poetry.lock",
    "uv.lock",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.svg",
    "*.ico",
    "*.pdf",
    "*.docx",
    "*.woff",
    "*.woff2",
    "*.ttf",
    "*.eot",
    ".git/",
    ".vscode/",
    ".idea/",
    "node_modules/",
    "__pycache__/",
    "*.pyc",
)


@dataclass(frozen=True, slots=True)
class Document:
    """Text content of one repository file."""

    path: str
    text: str


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    owner: str
    name: str


def validate_repository_input(repo_url: str, token: str) -> RepositoryRef:
    """Reject input that must never reach the source host.

    Raises :class:`ValidationError` for non-ASCII characters, foreign hosts and
    URLs whose path is anything other than ``owner/repo``.
    """

    if not repo_url.isascii():
        raise ValidationError("Repository URL contains non-ASCII characters")
    if not token.isascii():
        raise ValidationError("GitHub token contains non-ASCII characters")

    parsed = urlparse(repo_url.strip())
    if parsed.scheme not in ("http", "https") or (parsed.hostname or "").lower() not in GITHUB_HOSTS:
        raise ValidationError("Invalid GitHub repository URL")

    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) != 2:
        raise ValidationError("GitHub URL must point to a repository (owner/repo)")
    owner, name = segments[0], segments[1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise ValidationError("GitHub URL must point to a repository (owner/repo)")
    return RepositoryRef(owner=owner, name=name)


class GithubRepoLoader:
    """Load every text file of a repository through the GitHub REST API."""

    def __init__(
        self,
        *,
        api_url: str = "https://api.github.com",
        branch: str | None = None,
        ignore_patterns: Sequence[str] = IGNORE_PATTERNS,
        max_concurrency: int = 2,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.branch = branch
        self.max_concurrency = max(max_concurrency, 1)
        self.timeout = timeout
        self.transport = transport
        self.ignore_spec = pathspec.GitIgnoreSpec.from_lines(ignore_patterns)

    def is_ignored(self, path: str) -> bool:
        return self.ignore_spec.match_file(path)

    async def load(self, repo_url: str, token: str) -> List[Document]:
        """Return the repository's text documents ordered by path."""

        repo = validate_repository_input(repo_url, token)
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token.strip()}",
            "User-Agent": "repochat-loader",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        async with httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=True,
        ) as client:
            try:
                branch = self.branch or await self._default_branch(client, repo)
                paths = await self._list_files(client, repo, branch)
                logger.info(
                    "Fetching %s files from %s/%s@%s", len(paths), repo.owner, repo.name, branch
                )
                semaphore = asyncio.Semaphore(self.max_concurrency)

                async def fetch(path: str) -> Document | None:
                    async with semaphore:
                        return await self._fetch_file(client, repo, branch, path)

                tasks = [asyncio.ensure_future(fetch(path)) for path in paths]
                try:
                    results = await asyncio.gather(*tasks)
                except BaseException:
                    # Siblings must not outlive the client.
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
                    raise
            except httpx.HTTPError as exc:
                raise LoadError(f"Failed to load repository: {exc}") from exc

        documents = [doc for doc in results if doc is not None]
        logger.info("Loaded %s documents from %s/%s", len(documents), repo.owner, repo.name)
        return documents

    async def _default_branch(self, client: httpx.AsyncClient, repo: RepositoryRef) -> str:
        response = await client.get(f"/repos/{repo.owner}/{repo.name}")
        _raise_for_status(response)
        return response.json().get("default_branch") or "main"

    async def _list_files(
        self, client: httpx.AsyncClient, repo: RepositoryRef, branch: str
    ) -> List[str]:
        response = await client.get(
            f"/repos/{repo.owner}/{repo.name}/git/trees/{quote(branch, safe='')}",
            params={"recursive": "1"},
        )
        _raise_for_status(response)
        payload = response.json()
        if payload.get("truncated"):
            logger.warning("Tree listing for %s/%s was truncated by GitHub", repo.owner, repo.name)
        paths = [
            entry["path"]
            for entry in payload.get("tree", [])
            if entry.get("type") == "blob" and entry.get("path")
        ]
        return sorted(path for path in paths if not self.is_ignored(path))

    async def _fetch_file(
        self, client: httpx.AsyncClient, repo: RepositoryRef, branch: str, path: str
    ) -> Document | None:
        response = await client.get(
            f"/repos/{repo.owner}/{repo.name}/contents/{quote(path)}",
            params={"ref": branch},
            headers={"Accept": "application/vnd.github.raw"},
        )
        _raise_for_status(response)
        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping non UTF-8 file %s", path)
            return None
        if not text.strip():
            logger.debug("Skipping empty file %s", path)
            return None
        return Document(path=path, text=text)


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        message = response.json().get("message") or response.text
    except ValueError:
        message = response.text
    if response.status_code == 429 or (
        response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
    ):
        raise UpstreamUnavailableError(
            f"Failed to load repository: GitHub rate limit exceeded ({response.status_code}): {message}"
        )
    if response.status_code in (401, 403):
        raise UpstreamAuthError(
            f"Failed to load repository: GitHub rejected the token ({response.status_code}): {message}"
        )
    if response.status_code == 404:
        raise LoadError(f"Failed to load repository: not found ({message})")
    raise LoadError(f"Failed to load repository: HTTP {response.status_code} - {message}")
