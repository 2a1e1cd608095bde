import logging
import re

from promptforge.config import MAX_CODE_CHARS
from promptforge.schemas import SourceFile

logger = logging.getLogger(__name__)

FILE_MARKER = "// FILE: "
FILE_SEPARATOR = "\n\n---\n\n"
TRUNCATION_NOTICE = "\n\n[... content truncated ...]"

_SPLIT_PATTERN = re.compile(re.escape(FILE_SEPARATOR) + r"(?=" + re.escape(FILE_MARKER) + r")")

# A content line that would read as a file header gets one extra leading backslash
_MARKER_LINE = re.compile(r"^(\\*)" + re.escape(FILE_MARKER), re.MULTILINE)
_ESCAPED_MARKER_LINE = re.compile(r"^\\(\\*" + re.escape(FILE_MARKER) + r")", re.MULTILINE)


def _escape(content: str) -> str:
    return _MARKER_LINE.sub(lambda m: "\\" + m.group(0), content)


def _unescape(content: str) -> str:
    return _ESCAPED_MARKER_LINE.sub(lambda m: m.group(1), content)


def _format_file(file: SourceFile) -> str:
    return f"{FILE_MARKER}{file.path}\n\n{_escape(file.content)}"


def build_blob(files: list[SourceFile]) -> str:
    """Concatenate files, in order, into the delimited blob sent for analysis."""
    blob = FILE_SEPARATOR.join(_format_file(f) for f in files)
    logger.debug(f"Built blob: {len(files)} files, {len(blob)} chars")
    return blob


def split_blob(blob: str) -> list[SourceFile]:
    """Recover per-file boundaries from a blob produced by ``build_blob``."""
    if not blob.startswith(FILE_MARKER):
        return []

    files: list[SourceFile] = []
    for section in _SPLIT_PATTERN.split(blob):
        header, _, content = section[len(FILE_MARKER):].partition("\n\n")
        files.append(SourceFile(path=header, content=_unescape(content)))
    return files


def truncate_blob(blob: str, max_chars: int = MAX_CODE_CHARS) -> str:
    if len(blob) <= max_chars:
        return blob
    logger.warning(f"Blob of {len(blob)} chars exceeds budget, truncating to {max_chars}")
    return blob[:max_chars] + TRUNCATION_NOTICE
