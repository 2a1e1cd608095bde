"""Per-session state for the presentation layer.

A workspace owns the collected file list, an append-only history of
generation contexts (most recent first), the single "current" selection and
an optional refinement override. File collections take a ticket when they
start and only replace the file list if no newer collection (or clear) has
happened since, so a slow import never overwrites a newer paste. Analysis
needs no ticket: its guard allows one run at a time.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from promptforge.config import SESSION_IDLE_TIMEOUT
from promptforge.errors import (
    ActionInProgressError,
    ContextNotFoundError,
    InvalidRequestError,
    MediaAlreadyGeneratedError,
    SessionNotFoundError,
)
from promptforge.formatter import format_prompt
from promptforge.schemas import AnalysisResult, GenerationContext, PromptStyle, SourceFile

logger = logging.getLogger(__name__)

FILES_FLOW = "files"

MEDIA_FIELDS = {
    "logo": "generated_logo_url",
    "audio": "generated_audio_url",
    "video": "generated_video_url",
}


class Workspace:
    def __init__(self, session_id: str | None = None):
        self.id = session_id or uuid.uuid4().hex
        self.files: list[SourceFile] = []
        self.history: list[GenerationContext] = []
        self.current_id: str | None = None
        self.progress: list[str] = []
        self._refinement: tuple[str, str] | None = None  # (context id, text)
        self._tickets: dict[str, int] = {}
        self._running: set[str] = set()
        self.last_activity = time.monotonic()

    # --- flow bookkeeping ---

    def issue_ticket(self, flow: str) -> int:
        ticket = self._tickets.get(flow, 0) + 1
        self._tickets[flow] = ticket
        return ticket

    def is_latest(self, flow: str, ticket: int) -> bool:
        return self._tickets.get(flow, 0) == ticket

    @asynccontextmanager
    async def guard(self, action: str) -> AsyncIterator[None]:
        """Allow at most one in-flight run of ``action`` per workspace."""
        if action in self._running:
            raise ActionInProgressError(f"'{action}' is already running for this session")
        self._running.add(action)
        try:
            yield
        finally:
            self._running.discard(action)

    @property
    def busy(self) -> bool:
        return bool(self._running)

    # --- files ---

    def replace_files(self, files: list[SourceFile], ticket: int | None = None) -> bool:
        """Replace (never merge) the file list. Returns False for a stale completion."""
        if ticket is not None and not self.is_latest(FILES_FLOW, ticket):
            logger.info(f"Discarding stale file collection for session {self.id}")
            return False
        self.files = list(files)
        return True

    def clear_files(self) -> None:
        self.issue_ticket(FILES_FLOW)
        self.files = []

    # --- contexts ---

    @property
    def current(self) -> GenerationContext | None:
        if self.current_id is None:
            return None
        return self.get_context(self.current_id)

    def get_context(self, context_id: str) -> GenerationContext:
        for context in self.history:
            if context.id == context_id:
                return context
        raise ContextNotFoundError(f"Generation context {context_id} not found")

    def record_analysis(self, analysis: AnalysisResult, code: str, task: str) -> GenerationContext:
        """Store a finished analysis as the new current context."""
        context = GenerationContext(analysis=analysis, code=code, task=task)
        self.history.insert(0, context)
        self.current_id = context.id
        self._refinement = None
        return context

    def select(self, context_id: str) -> GenerationContext:
        context = self.get_context(context_id)
        self.current_id = context.id
        self._refinement = None
        return context

    # --- rendering and refinement ---

    @property
    def refined(self) -> bool:
        return self._refinement is not None and self._refinement[0] == self.current_id

    def render(self, style: PromptStyle) -> str:
        context = self.current
        if context is None:
            raise InvalidRequestError("Run an analysis first")
        if self.refined:
            return self._refinement[1]
        return format_prompt(style, context.analysis, context.code, context.task)

    def apply_refinement(self, context_id: str, text: str) -> bool:
        """Set the override for ``context_id``; ignored if that context is no longer current."""
        if context_id != self.current_id:
            logger.info(f"Discarding refinement for non-current context {context_id}")
            return False
        self._refinement = (context_id, text)
        return True

    def revert_refinement(self) -> None:
        self._refinement = None

    # --- creative media ---

    def ensure_media_unset(self, context: GenerationContext, kind: str) -> None:
        if getattr(context, MEDIA_FIELDS[kind]) is not None:
            raise MediaAlreadyGeneratedError(f"A {kind} was already generated for this context")

    def attach_media(
        self, context_id: str, kind: str, url: str, source_uri: str | None = None
    ) -> GenerationContext:
        """Store a media URL on the context. ``source_uri`` keeps the private video download link."""
        context = self.get_context(context_id)
        setattr(context, MEDIA_FIELDS[kind], url)
        if source_uri is not None:
            context.video_source_uri = source_uri
        return context


class WorkspaceStore:
    """In-memory registry of workspaces keyed by session id.

    Sessions unused for ``idle_timeout`` seconds are evicted, except while an
    action is still running for them.
    """

    def __init__(self, idle_timeout: float = SESSION_IDLE_TIMEOUT):
        self.idle_timeout = idle_timeout
        self._workspaces: dict[str, Workspace] = {}

    def create(self) -> Workspace:
        self.cleanup_idle_sessions()
        workspace = Workspace()
        self._workspaces[workspace.id] = workspace
        logger.info(f"Created session {workspace.id}")
        return workspace

    def get(self, session_id: str) -> Workspace:
        try:
            workspace = self._workspaces[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Session {session_id} not found") from None
        workspace.last_activity = time.monotonic()
        return workspace

    def delete(self, session_id: str) -> None:
        if self._workspaces.pop(session_id, None) is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        logger.info(f"Deleted session {session_id}")

    def cleanup_idle_sessions(self) -> int:
        threshold = time.monotonic() - self.idle_timeout
        idle = [
            sid
            for sid, workspace in self._workspaces.items()
            if workspace.last_activity < threshold and not workspace.busy
        ]
        for sid in idle:
            del self._workspaces[sid]

        if idle:
            logger.info(f"Cleaned up {len(idle)} idle sessions")
        return len(idle)
