import asyncio
import logging
import os
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx
from fastapi import UploadFile

from promptforge.config import MAX_FILE_SIZE, RAW_FETCH_PROXY
from promptforge.errors import InvalidUrlError, ProviderError
from promptforge.file_filter import rejection_reason
from promptforge.schemas import SourceFile

logger = logging.getLogger(__name__)


@dataclass
class UploadOutcome:
    files: list[SourceFile] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)

    @property
    def warning(self) -> str | None:
        if not self.skipped:
            return None
        names = ", ".join(f'"{name}" ({reason})' for name, reason in self.skipped)
        return (
            f"Skipped files: {names}. Only text source files under "
            f"{MAX_FILE_SIZE // (1024 * 1024)}MB are supported."
        )

    def skip(self, name: str, reason: str) -> None:
        logger.info(f"Upload skipped: {name} ({reason})")
        self.skipped.append((os.path.basename(name) or name, reason))


@dataclass
class UrlFetchOutcome:
    files: list[SourceFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def error_message(self) -> str | None:
        if not self.errors:
            return None
        return "Some URLs failed: " + ". ".join(self.errors)


def collect_pasted(content: str, path: str = "pasted_code.txt") -> list[SourceFile]:
    if not content.strip():
        return []
    return [SourceFile(path=path or "pasted_code.txt", content=content)]


def collect_uploads(uploads: list[tuple[str, bytes]], outcome: UploadOutcome | None = None) -> UploadOutcome:
    """Turn uploaded (relative path, raw bytes) pairs into SourceFiles."""
    if outcome is None:
        outcome = UploadOutcome()
    for name, data in uploads:
        reason = rejection_reason(name, len(data))
        if reason is None:
            try:
                outcome.files.append(SourceFile(path=name, content=data.decode("utf-8")))
                continue
            except UnicodeDecodeError:
                reason = "not valid UTF-8 text"
        outcome.skip(name, reason)
    return outcome


async def read_uploads(uploads: list[UploadFile]) -> UploadOutcome:
    """Read multipart uploads, rejecting blocked or oversize parts before reading their bodies."""
    outcome = UploadOutcome()
    readable: list[tuple[str, bytes]] = []
    for upload in uploads:
        name = upload.filename or "untitled"
        reason = rejection_reason(name, upload.size)
        if reason is not None:
            outcome.skip(name, reason)
            continue
        readable.append((name, await upload.read()))
    return collect_uploads(readable, outcome)


def split_url_input(urls: str | list[str]) -> list[str]:
    if isinstance(urls, str):
        urls = urls.split("\n")
    return [u.strip() for u in urls if u.strip()]


def to_raw_url(url: str) -> str:
    """Rewrite GitHub file page URLs to their raw.githubusercontent.com form."""
    if "github.com" in url and "/blob/" in url:
        return url.replace("github.com", "raw.githubusercontent.com", 1).replace("/blob/", "/", 1)
    return url


def _proxied(url: str) -> str:
    if not RAW_FETCH_PROXY:
        return url
    return RAW_FETCH_PROXY.format(url=quote(url, safe=""))


async def _fetch_one(url: str, client: httpx.AsyncClient) -> SourceFile:
    target = _proxied(to_raw_url(url))
    logger.debug(f"GET {target}")
    try:
        response = await client.get(target, follow_redirects=True)
    except httpx.RequestError as exc:
        raise ProviderError(f"Failed to fetch {url[:50]}: {exc}") from exc
    if response.status_code != 200:
        raise ProviderError(f"Failed to fetch {url[:50]}: status {response.status_code}")
    return SourceFile(path=url, content=response.text)


async def fetch_urls(urls: str | list[str], client: httpx.AsyncClient) -> UrlFetchOutcome:
    """Fetch raw files concurrently; keep every success and collect every failure."""
    targets = split_url_input(urls)
    if not targets:
        raise InvalidUrlError("Enter one or more URLs")

    results = await asyncio.gather(
        *[_fetch_one(url, client) for url in targets],
        return_exceptions=True,
    )

    outcome = UrlFetchOutcome()
    for result in results:
        if isinstance(result, Exception):
            logger.warning(f"URL fetch failed: {result}")
            outcome.errors.append(str(result))
            continue
        outcome.files.append(result)

    logger.info(f"Fetched {len(outcome.files)}/{len(targets)} URLs")
    return outcome
