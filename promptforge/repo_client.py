import base64
import binascii
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator
from contextlib import asynccontextmanager
from urllib.parse import quote, urlparse

import httpx

from promptforge.config import (
    BITBUCKET_API_BASE,
    BITBUCKET_MAX_DEPTH,
    GITHUB_API_BASE,
    GITHUB_TOKEN,
    GITLAB_API_BASE,
    GITLAB_TOKEN,
    REQUEST_TIMEOUT,
)
from promptforge.errors import (
    EmptyImportError,
    InvalidUrlError,
    ProviderError,
    RateLimitError,
    RepoNotFoundError,
    UnsupportedProviderError,
)
from promptforge.file_filter import is_blocked, rejection_reason

logger = logging.getLogger(__name__)


class Provider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"


PROVIDER_HOSTS = {
    "github.com": Provider.GITHUB,
    "gitlab.com": Provider.GITLAB,
    "bitbucket.org": Provider.BITBUCKET,
}


@dataclass(frozen=True)
class RepoRef:
    provider: Provider
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repo_url(url: str) -> RepoRef:
    """Extract provider, owner and repository name from a hosting URL."""
    raw = url.strip()
    if not raw:
        raise InvalidUrlError("Enter a repository URL")
    if not re.match(r"^[a-z][a-z0-9+.\-]*://", raw, re.IGNORECASE):
        raw = f"https://{raw}"

    try:
        parsed = urlparse(raw)
        host = (parsed.hostname or "").lower()
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL: {url!r}") from exc

    if host.startswith("www."):
        host = host[len("www."):]

    parts = [p for p in parsed.path.split("/") if p]
    if not host or len(parts) < 2:
        raise InvalidUrlError(
            f"Could not extract owner/repository from {url!r}. "
            "Use the form https://github.com/owner/repository."
        )

    provider = PROVIDER_HOSTS.get(host)
    if provider is None:
        raise UnsupportedProviderError(f"Unsupported repository host: {host}")

    owner = parts[0]
    repo = re.sub(r"\.git$", "", parts[1])
    if not repo:
        raise InvalidUrlError(f"Missing repository name in {url!r}")

    return RepoRef(provider=provider, owner=owner, repo=repo)


@asynccontextmanager
async def create_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create an httpx async client shared by all Git-hosting calls."""
    async with httpx.AsyncClient(
        headers={"User-Agent": "promptforge/1.0"},
        timeout=REQUEST_TIMEOUT,
    ) as client:
        yield client


def _github_headers() -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    if GITHUB_TOKEN:
        headers["Authorization"] = f"token {GITHUB_TOKEN}"
    return headers


def _gitlab_headers() -> dict[str, str]:
    return {"PRIVATE-TOKEN": GITLAB_TOKEN} if GITLAB_TOKEN else {}


async def _get(client: httpx.AsyncClient, url: str, what: str, **kwargs) -> httpx.Response:
    logger.debug(f"GET {url}")
    try:
        return await client.get(url, **kwargs)
    except httpx.RequestError as exc:
        raise ProviderError(f"Network error fetching {what}: {exc}") from exc


def _raise_for_status(response: httpx.Response, what: str) -> None:
    if response.status_code == 404:
        raise RepoNotFoundError(f"{what} not found (404). Check the URL and make sure the repository is public.")
    if response.status_code in (403, 429):
        raise RateLimitError()
    if response.status_code != 200:
        raise ProviderError(f"Could not load {what}. Status: {response.status_code}")


def _json(response: httpx.Response, what: str):
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(f"Unexpected non-JSON response for {what}") from exc


def _decode_base64(data: dict, what: str) -> bytes:
    if data.get("encoding", "base64") != "base64":
        raise ProviderError(f"Unexpected encoding {data.get('encoding')!r} for {what}")
    # GitHub wraps its base64 payload in newlines
    try:
        return base64.b64decode(data.get("content", "").replace("\n", ""), validate=True)
    except binascii.Error as exc:
        raise ProviderError(f"Malformed base64 content for {what}") from exc


# --- GitHub ---


async def github_default_branch(ref: RepoRef, client: httpx.AsyncClient) -> str:
    url = f"{GITHUB_API_BASE}/repos/{ref.full_name}"
    response = await _get(client, url, "repository info", headers=_github_headers())
    _raise_for_status(response, f"Repository {ref.full_name}")
    return _json(response, "repository info")["default_branch"]


async def github_list_files(
    ref: RepoRef, branch: str, client: httpx.AsyncClient, limit: int
) -> list[dict]:
    """List blobs of the recursive tree, stopping once ``limit`` usable files are listed."""
    url = f"{GITHUB_API_BASE}/repos/{ref.full_name}/git/trees/{branch}"
    response = await _get(
        client, url, "file tree", params={"recursive": "1"}, headers=_github_headers()
    )
    _raise_for_status(response, "File tree")
    data = _json(response, "file tree")

    if data.get("truncated"):
        logger.warning(
            f"Tree is truncated for {ref.full_name}, working with available files only"
        )

    entries: list[dict] = []
    usable = 0
    for item in data.get("tree", []):
        if item.get("type") != "blob":
            continue
        if usable >= limit:
            break
        entries.append({"path": item["path"], "size": item.get("size"), "location": item["url"]})
        if rejection_reason(item["path"], item.get("size")) is None:
            usable += 1
    return entries


async def github_fetch_file(
    ref: RepoRef, branch: str, entry: dict, client: httpx.AsyncClient
) -> bytes:
    response = await _get(client, entry["location"], entry["path"], headers=_github_headers())
    _raise_for_status(response, entry["path"])
    return _decode_base64(_json(response, entry["path"]), entry["path"])


# --- GitLab ---


def _gitlab_project(ref: RepoRef) -> str:
    return f"{GITLAB_API_BASE}/projects/{quote(ref.full_name, safe='')}"


async def gitlab_default_branch(ref: RepoRef, client: httpx.AsyncClient) -> str:
    response = await _get(client, _gitlab_project(ref), "repository info", headers=_gitlab_headers())
    _raise_for_status(response, f"Repository {ref.full_name}")
    branch = _json(response, "repository info").get("default_branch")
    if not branch:
        raise EmptyImportError(f"Repository {ref.full_name} has no default branch (is it empty?)")
    return branch


async def gitlab_list_files(
    ref: RepoRef, branch: str, client: httpx.AsyncClient, limit: int
) -> list[dict]:
    """Walk the paginated recursive tree until it is exhausted or ``limit`` usable blobs are seen."""
    url = f"{_gitlab_project(ref)}/repository/tree"
    entries: list[dict] = []
    usable = 0
    page = "1"

    while page and usable < limit:
        response = await _get(
            client,
            url,
            "file tree",
            params={"recursive": "true", "per_page": "100", "ref": branch, "page": page},
            headers=_gitlab_headers(),
        )
        _raise_for_status(response, "File tree")
        for item in _json(response, "file tree"):
            if item.get("type") != "blob":
                continue
            entries.append({"path": item["path"], "size": None, "location": item["path"]})
            if not is_blocked(item["path"]):
                usable += 1
        page = response.headers.get("x-next-page", "")

    return entries


async def gitlab_fetch_file(
    ref: RepoRef, branch: str, entry: dict, client: httpx.AsyncClient
) -> bytes:
    url = f"{_gitlab_project(ref)}/repository/files/{quote(entry['location'], safe='')}"
    response = await _get(client, url, entry["path"], params={"ref": branch}, headers=_gitlab_headers())
    _raise_for_status(response, entry["path"])
    return _decode_base64(_json(response, entry["path"]), entry["path"])


# --- Bitbucket ---


def _bitbucket_repo(ref: RepoRef) -> str:
    return f"{BITBUCKET_API_BASE}/repositories/{ref.full_name}"


async def bitbucket_default_branch(ref: RepoRef, client: httpx.AsyncClient) -> str:
    response = await _get(client, _bitbucket_repo(ref), "repository info")
    _raise_for_status(response, f"Repository {ref.full_name}")
    mainbranch = _json(response, "repository info").get("mainbranch") or {}
    if not mainbranch.get("name"):
        raise EmptyImportError(f"Repository {ref.full_name} has no main branch (is it empty?)")
    return mainbranch["name"]


async def bitbucket_list_files(
    ref: RepoRef, branch: str, client: httpx.AsyncClient, limit: int
) -> list[dict]:
    """Crawl the source tree directory by directory, at most BITBUCKET_MAX_DEPTH levels deep."""
    entries: list[dict] = []
    usable = 0

    async def crawl(directory: str, depth: int) -> None:
        nonlocal usable
        url: str | None = f"{_bitbucket_repo(ref)}/src/{branch}/{directory}"
        params: dict | None = {"pagelen": "100"}
        subdirs: list[str] = []

        while url and usable < limit:
            response = await _get(client, url, f"directory {directory or '/'}", params=params)
            _raise_for_status(response, f"Directory {directory or '/'}")
            data = _json(response, f"directory {directory or '/'}")
            for item in data.get("values", []):
                if item.get("type") == "commit_directory":
                    subdirs.append(item["path"])
                elif item.get("type") == "commit_file":
                    entries.append({"path": item["path"], "size": item.get("size"), "location": item["path"]})
                    if not is_blocked(item["path"]):
                        usable += 1
                        if usable >= limit:
                            return
            # the "next" link already carries the query string
            url = data.get("next")
            params = None

        if depth >= BITBUCKET_MAX_DEPTH:
            return
        for subdir in subdirs:
            if usable >= limit:
                return
            await crawl(f"{subdir}/", depth + 1)

    await crawl("", 1)
    return entries


async def bitbucket_fetch_file(
    ref: RepoRef, branch: str, entry: dict, client: httpx.AsyncClient
) -> bytes:
    url = f"{_bitbucket_repo(ref)}/src/{branch}/{quote(entry['location'])}"
    response = await _get(client, url, entry["path"], follow_redirects=True)
    _raise_for_status(response, entry["path"])
    return response.content
