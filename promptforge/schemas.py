import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    content: str


class GroundingLink(BaseModel):
    title: str
    url: str


class AnalysisResult(CamelModel):
    role: str
    language_framework: str
    main_objective: str
    technical_purpose: str
    key_features: list[str]
    structure_classes: list[str]
    structure_functions: list[str]
    dependencies: list[str]
    grounding_links: list[GroundingLink] | None = None


class GenerationContext(CamelModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    analysis: AnalysisResult
    code: str
    task: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    generated_logo_url: str | None = None
    generated_audio_url: str | None = None
    generated_video_url: str | None = None
    # download URI carrying the server API key, never serialized
    video_source_uri: str | None = Field(default=None, exclude=True)


class PromptStyle(str, Enum):
    TECHNICAL = "technical"
    COMPACT = "compact"
    CONCISE = "concise"
    POPULAR = "popular"
    FRIENDLY = "friendly"
    DESCRIPTIVE = "descriptive"
    LOVABLE = "lovable"
    BASE44 = "base44"


# --- API requests ---


class PasteRequest(BaseModel):
    content: str
    path: str = "pasted_code.txt"


class UrlFetchRequest(BaseModel):
    urls: str | list[str]


class RepositoryImportRequest(BaseModel):
    url: str


class AnalyzeRequest(BaseModel):
    task: str = ""
    deep: bool = False
    grounding: bool = False


class RefineRequest(BaseModel):
    instructions: str
    style: PromptStyle = PromptStyle.TECHNICAL


# --- API responses ---


class FilesResponse(BaseModel):
    files: list[str]
    warning: str | None = None
    progress: list[str] = []


class SessionResponse(BaseModel):
    session_id: str
    files: list[str]
    current_context_id: str | None = None
    history_size: int = 0
    refined: bool = False


class PromptResponse(BaseModel):
    context_id: str
    style: PromptStyle
    refined: bool
    prompt: str


class HistoryEntry(CamelModel):
    id: str
    timestamp: datetime
    main_objective: str
    language_framework: str
    current: bool


class ErrorResponse(BaseModel):
    status: str
    message: str


class MediaKind(str, Enum):
    LOGO = "logo"
    AUDIO = "audio"
    VIDEO = "video"
