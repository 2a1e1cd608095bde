import asyncio
import logging
import time
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from promptforge.collector import collect_pasted, fetch_urls, read_uploads
from promptforge.config import (
    ENDPOINT_TIMEOUT,
    PORT,
    REQUEST_TIMEOUT,
    VIDEO_TIMEOUT,
    configure_logging,
    require_api_key,
)
from promptforge.context_builder import build_blob, truncate_blob
from promptforge.errors import (
    InvalidRequestError,
    PromptForgeError,
    ProviderError,
)
from promptforge.gemini import create_genai_client
from promptforge.grounding import fetch_grounding_links
from promptforge.importer import import_repository
from promptforge.llm_client import analyze_code, create_openai_client, refine_prompt
from promptforge.media_client import (
    download_video,
    generate_audio_summary,
    generate_logo,
    generate_video_pitch,
)
from promptforge.repo_client import create_client
from promptforge.schemas import (
    AnalyzeRequest,
    FilesResponse,
    GenerationContext,
    HistoryEntry,
    MediaKind,
    PasteRequest,
    PromptResponse,
    PromptStyle,
    RefineRequest,
    RepositoryImportRequest,
    SessionResponse,
    UrlFetchRequest,
)
from promptforge.workspace import FILES_FLOW, Workspace, WorkspaceStore

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    require_api_key()
    logger.info("PromptForge starting up")
    yield
    logger.info("PromptForge shutting down")


app = FastAPI(
    title="PromptForge",
    description="Turns source code into reusable, styled prompts for AI assistants",
    version="1.0.0",
    lifespan=lifespan,
)

store = WorkspaceStore()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "status" in detail and "message" in detail:
        content = detail
    else:
        content = {"status": "error", "message": str(detail)}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    msg = "; ".join(f"{'.'.join(str(l) for l in e['loc'])}: {e['msg']}" for e in errors)
    return JSONResponse(
        status_code=422,
        content={"status": "error", "message": msg},
    )


@app.exception_handler(PromptForgeError)
async def promptforge_exception_handler(request: Request, exc: PromptForgeError) -> JSONResponse:
    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": exc.message},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal server error"},
    )


async def _with_timeout(awaitable, timeout: float, what: str):
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{what} timed out after {timeout}s")
        raise HTTPException(
            status_code=504,
            detail={"status": "error", "message": f"{what} timed out"},
        )


def _files_response(workspace: Workspace, warning: str | None = None) -> FilesResponse:
    return FilesResponse(
        files=[f.path for f in workspace.files],
        warning=warning,
        progress=workspace.progress,
    )


def _session_response(workspace: Workspace) -> SessionResponse:
    return SessionResponse(
        session_id=workspace.id,
        files=[f.path for f in workspace.files],
        current_context_id=workspace.current_id,
        history_size=len(workspace.history),
        refined=workspace.refined,
    )


def _prompt_response(workspace: Workspace, style: PromptStyle) -> PromptResponse:
    prompt = workspace.render(style)
    return PromptResponse(
        context_id=workspace.current_id,
        style=style,
        refined=workspace.refined,
        prompt=prompt,
    )


@app.get("/health")
async def health_check() -> dict:
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session() -> SessionResponse:
    return _session_response(store.create())


@app.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str) -> SessionResponse:
    return _session_response(store.get(session_id))


@app.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str) -> Response:
    store.delete(session_id)
    return Response(status_code=204)


# --- source collection ---


@app.put("/sessions/{session_id}/files/paste", response_model=FilesResponse)
async def paste_code(session_id: str, request: PasteRequest) -> FilesResponse:
    workspace = store.get(session_id)
    ticket = workspace.issue_ticket(FILES_FLOW)
    workspace.replace_files(collect_pasted(request.content, request.path), ticket)
    workspace.progress = []
    return _files_response(workspace)


@app.post("/sessions/{session_id}/files/upload", response_model=FilesResponse)
async def upload_files(session_id: str, files: list[UploadFile] = File(...)) -> FilesResponse:
    workspace = store.get(session_id)
    outcome = await read_uploads(files)
    logger.info(f"Upload: {len(outcome.files)} accepted, {len(outcome.skipped)} skipped")

    if outcome.files:
        workspace.replace_files(outcome.files, workspace.issue_ticket(FILES_FLOW))
        workspace.progress = []
    return _files_response(workspace, warning=outcome.warning)


@app.post("/sessions/{session_id}/files/urls", response_model=FilesResponse)
async def fetch_from_urls(session_id: str, request: UrlFetchRequest) -> FilesResponse:
    workspace = store.get(session_id)
    async with workspace.guard("urls"):
        ticket = workspace.issue_ticket(FILES_FLOW)
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            outcome = await _with_timeout(fetch_urls(request.urls, client), ENDPOINT_TIMEOUT, "URL fetch")

        if not outcome.files:
            raise ProviderError(outcome.error_message)
        workspace.replace_files(outcome.files, ticket)
        workspace.progress = []
    return _files_response(workspace, warning=outcome.error_message)


@app.post("/sessions/{session_id}/files/repository", response_model=FilesResponse)
async def import_from_repository(session_id: str, request: RepositoryImportRequest) -> FilesResponse:
    workspace = store.get(session_id)
    logger.info(f"Repository import request: {request.url}")

    async with workspace.guard("repository"):
        ticket = workspace.issue_ticket(FILES_FLOW)
        progress: list[str] = []
        start_time = time.monotonic()
        async with create_client() as client:
            files = await _with_timeout(
                import_repository(request.url, client, on_progress=progress.append),
                ENDPOINT_TIMEOUT,
                "Repository import",
            )
        if workspace.replace_files(files, ticket):
            workspace.progress = progress
        logger.info(f"Imported {len(files)} files in {time.monotonic() - start_time:.1f}s")
    return _files_response(workspace)


@app.delete("/sessions/{session_id}/files", response_model=FilesResponse)
async def clear_files(session_id: str) -> FilesResponse:
    workspace = store.get(session_id)
    workspace.clear_files()
    workspace.progress = []
    return _files_response(workspace)


# --- analysis, rendering and refinement ---


@app.post("/sessions/{session_id}/analyze", response_model=GenerationContext)
async def analyze(session_id: str, request: AnalyzeRequest) -> GenerationContext:
    workspace = store.get(session_id)
    if not workspace.files:
        raise InvalidRequestError("Upload, paste or import some code to analyse first")

    async with workspace.guard("analyze"):
        blob = build_blob(workspace.files)

        analysis = await _with_timeout(
            analyze_code(truncate_blob(blob), create_openai_client(), deep=request.deep),
            ENDPOINT_TIMEOUT,
            "Analysis",
        )
        if request.grounding:
            links = await fetch_grounding_links(analysis.dependencies, create_genai_client())
            if links:
                analysis.grounding_links = links

        context = workspace.record_analysis(analysis, blob, request.task)
    return context


@app.get("/sessions/{session_id}/prompt", response_model=PromptResponse)
async def get_prompt(session_id: str, style: PromptStyle = PromptStyle.TECHNICAL) -> PromptResponse:
    return _prompt_response(store.get(session_id), style)


@app.post("/sessions/{session_id}/refine", response_model=PromptResponse)
async def refine(session_id: str, request: RefineRequest) -> PromptResponse:
    workspace = store.get(session_id)
    async with workspace.guard("refine"):
        current_text = workspace.render(request.style)
        context_id = workspace.current_id
        refined = await _with_timeout(
            refine_prompt(current_text, request.instructions, create_openai_client()),
            ENDPOINT_TIMEOUT,
            "Refinement",
        )
        workspace.apply_refinement(context_id, refined)
    return _prompt_response(workspace, request.style)


@app.delete("/sessions/{session_id}/refine", response_model=PromptResponse)
async def revert_refinement(session_id: str, style: PromptStyle = PromptStyle.TECHNICAL) -> PromptResponse:
    workspace = store.get(session_id)
    workspace.revert_refinement()
    return _prompt_response(workspace, style)


# --- history ---


@app.get("/sessions/{session_id}/history", response_model=list[HistoryEntry])
async def get_history(session_id: str) -> list[HistoryEntry]:
    workspace = store.get(session_id)
    return [
        HistoryEntry(
            id=context.id,
            timestamp=context.timestamp,
            main_objective=context.analysis.main_objective,
            language_framework=context.analysis.language_framework,
            current=context.id == workspace.current_id,
        )
        for context in workspace.history
    ]


@app.post("/sessions/{session_id}/history/{context_id}/select", response_model=GenerationContext)
async def select_history_entry(session_id: str, context_id: str) -> GenerationContext:
    return store.get(session_id).select(context_id)


# --- creative media ---


@app.post("/sessions/{session_id}/contexts/{context_id}/{kind}", response_model=GenerationContext)
async def generate_media(session_id: str, context_id: str, kind: MediaKind) -> GenerationContext:
    workspace = store.get(session_id)
    context = workspace.get_context(context_id)

    async with workspace.guard(f"{kind.value}:{context_id}"):
        workspace.ensure_media_unset(context, kind.value)
        client = create_genai_client()
        source_uri = None
        if kind == MediaKind.LOGO:
            url = await _with_timeout(generate_logo(context.analysis, client), ENDPOINT_TIMEOUT, "Logo generation")
        elif kind == MediaKind.AUDIO:
            url = await _with_timeout(
                generate_audio_summary(context.analysis, client), ENDPOINT_TIMEOUT, "Audio generation"
            )
        else:
            source_uri = await _with_timeout(
                generate_video_pitch(context.analysis, client, require_api_key()),
                VIDEO_TIMEOUT,
                "Video generation",
            )
            # clients get a proxied path; the keyed URI stays on the server
            url = str(app.url_path_for("download_video_content", session_id=session_id, context_id=context_id))
        logger.info(f"{kind.value} generated for context {context_id}")
    return workspace.attach_media(context_id, kind.value, url, source_uri)


@app.get("/sessions/{session_id}/contexts/{context_id}/video/content")
async def download_video_content(session_id: str, context_id: str) -> Response:
    context = store.get(session_id).get_context(context_id)
    if context.video_source_uri is None:
        raise InvalidRequestError("No video has been generated for this context")

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        content, media_type = await _with_timeout(
            download_video(context.video_source_uri, client), VIDEO_TIMEOUT, "Video download"
        )
    return Response(content=content, media_type=media_type)


if __name__ == "__main__":
    uvicorn.run("promptforge.main:app", host="0.0.0.0", port=PORT)
