import logging
import os
import re

from promptforge.config import MAX_FILE_SIZE

logger = logging.getLogger(__name__)

# Extensions that never hold analysable source text (compared lowercased)
BLOCKED_EXTENSIONS = {
    # images
    "png", "jpg", "jpeg", "gif", "bmp", "svg", "webp", "ico", "tif", "tiff",
    # documents
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "odt", "ods", "odp",
    # archives
    "zip", "rar", "7z", "tar", "gz", "bz2", "xz",
    # audio
    "mp3", "wav", "ogg", "flac", "aac", "m4a",
    # video
    "mp4", "avi", "mov", "wmv", "mkv", "flv", "webm",
    # executables and binaries
    "exe", "dll", "so", "dmg", "bin", "o", "a",
    # fonts
    "woff", "woff2", "ttf", "eot", "otf",
    # other
    "lock", "log", "ds_store",
}

LOCK_FILE_PATTERN = re.compile(
    r"(^|[/\\])(package-lock\.json|yarn\.lock|pnpm-lock\.yaml)$", re.IGNORECASE
)


def extension_of(path: str) -> str:
    name = os.path.basename(path)
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def is_blocked(path: str) -> bool:
    """True for binary/media/archive types and well-known lockfiles."""
    if extension_of(path) in BLOCKED_EXTENSIONS:
        return True
    return bool(LOCK_FILE_PATTERN.search(path))


def is_oversize(size: int | None) -> bool:
    return size is not None and size > MAX_FILE_SIZE


def rejection_reason(path: str, size: int | None) -> str | None:
    """Return why a file must be skipped, or None if it is acceptable."""
    if is_blocked(path):
        return "binary or unsupported file type"
    if is_oversize(size):
        return f"larger than {MAX_FILE_SIZE // (1024 * 1024)}MB"
    return None


def filter_candidates(entries: list[dict], limit: int) -> list[dict]:
    """Drop blocked and oversize entries, keeping listing order, capped at ``limit``."""
    kept: list[dict] = []
    for entry in entries:
        path = entry["path"]
        reason = rejection_reason(path, entry.get("size"))
        if reason:
            logger.debug(f"Skipping {path}: {reason}")
            continue
        kept.append(entry)
        if len(kept) >= limit:
            break
    return kept
