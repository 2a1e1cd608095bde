import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from promptforge import repo_client
from promptforge.config import (
    BITBUCKET_MAX_FILES,
    FETCH_DELAY,
    GITHUB_MAX_FILES,
    GITLAB_MAX_FILES,
)
from promptforge.errors import EmptyImportError, PromptForgeError
from promptforge.file_filter import filter_candidates, is_oversize
from promptforge.repo_client import Provider, RepoRef, parse_repo_url
from promptforge.schemas import SourceFile

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class ProviderApi:
    default_branch: Callable[[RepoRef, httpx.AsyncClient], Awaitable[str]]
    list_files: Callable[[RepoRef, str, httpx.AsyncClient, int], Awaitable[list[dict]]]
    fetch_file: Callable[[RepoRef, str, dict, httpx.AsyncClient], Awaitable[bytes]]
    max_files: int


PROVIDERS: dict[Provider, ProviderApi] = {
    Provider.GITHUB: ProviderApi(
        repo_client.github_default_branch,
        repo_client.github_list_files,
        repo_client.github_fetch_file,
        GITHUB_MAX_FILES,
    ),
    Provider.GITLAB: ProviderApi(
        repo_client.gitlab_default_branch,
        repo_client.gitlab_list_files,
        repo_client.gitlab_fetch_file,
        GITLAB_MAX_FILES,
    ),
    Provider.BITBUCKET: ProviderApi(
        repo_client.bitbucket_default_branch,
        repo_client.bitbucket_list_files,
        repo_client.bitbucket_fetch_file,
        BITBUCKET_MAX_FILES,
    ),
}


async def import_repository(
    url: str,
    client: httpx.AsyncClient,
    on_progress: ProgressCallback | None = None,
    delay: float = FETCH_DELAY,
) -> list[SourceFile]:
    """Download the text files of a public repository.

    Files are fetched one at a time with ``delay`` seconds between requests so
    anonymous rate limits hold and progress can be reported per file. A file
    that is too large or fails to download is skipped; repository-level
    failures (bad URL, unknown host, 404, rate limit) abort the import.

    Raises EmptyImportError when no file could be retrieved.
    """

    def report(message: str) -> None:
        logger.info(message)
        if on_progress is not None:
            on_progress(message)

    report("Parsing repository URL...")
    ref = parse_repo_url(url)
    api = PROVIDERS[ref.provider]

    report(f"Fetching repository information for {ref.full_name}...")
    branch = await api.default_branch(ref, client)
    logger.info(f"Default branch: {branch}")

    report("Fetching file list...")
    entries = await api.list_files(ref, branch, client, api.max_files)
    candidates = filter_candidates(entries, api.max_files)
    logger.info(f"{len(entries)} entries listed, {len(candidates)} candidates after filtering")

    files: list[SourceFile] = []
    for index, entry in enumerate(candidates, start=1):
        path = entry["path"]
        if index > 1 and delay > 0:
            await asyncio.sleep(delay)
        report(f"Downloading file {index} of {len(candidates)}: {path}")

        try:
            raw = await api.fetch_file(ref, branch, entry, client)
        except PromptForgeError as exc:
            logger.warning(f"Could not fetch {path}, skipping: {exc}")
            continue

        if is_oversize(len(raw)):
            logger.warning(f"{path} exceeds the size limit, skipping")
        else:
            try:
                files.append(SourceFile(path=path, content=raw.decode("utf-8")))
            except UnicodeDecodeError:
                logger.warning(f"{path} is not UTF-8 text, skipping")

    if not files:
        raise EmptyImportError()

    report(f"{len(files)} file(s) loaded successfully")
    return files
