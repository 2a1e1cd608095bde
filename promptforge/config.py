import os
import logging

from dotenv import load_dotenv

load_dotenv()

# --- API keys ---
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
GITHUB_TOKEN: str = os.getenv("GITHUB_TOKEN", "")
GITLAB_TOKEN: str = os.getenv("GITLAB_TOKEN", "")

# --- Models ---
ANALYSIS_MODEL: str = os.getenv("ANALYSIS_MODEL", "gemini-2.5-flash")
DEEP_ANALYSIS_MODEL: str = os.getenv("DEEP_ANALYSIS_MODEL", "gemini-2.5-pro")
REFINE_MODEL: str = os.getenv("REFINE_MODEL", "gemini-2.5-flash")
GROUNDING_MODEL: str = os.getenv("GROUNDING_MODEL", "gemini-2.5-flash")
IMAGE_MODEL: str = os.getenv("IMAGE_MODEL", "imagen-4.0-generate-001")
TTS_MODEL: str = os.getenv("TTS_MODEL", "gemini-2.5-flash-preview-tts")
TTS_VOICE: str = os.getenv("TTS_VOICE", "Kore")
VIDEO_MODEL: str = os.getenv("VIDEO_MODEL", "veo-3.0-fast-generate-001")

# --- Server ---
PORT: int = int(os.getenv("PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info").upper()

# --- LLM parameters ---
LLM_TEMPERATURE: float = 0.2
MAX_CODE_CHARS: int = 400_000  # character budget for the analysis blob
MAX_GROUNDING_DEPENDENCIES: int = 5

# --- File collection ---
MAX_FILE_SIZE: int = 5 * 1024 * 1024  # bytes, applies to uploads and imports
GITHUB_MAX_FILES: int = 100
GITLAB_MAX_FILES: int = 60
BITBUCKET_MAX_FILES: int = 40
BITBUCKET_MAX_DEPTH: int = 4
FETCH_DELAY: float = 0.05  # seconds between sequential file fetches

# Optional wrapper for raw-URL fetches, e.g. "https://api.allorigins.win/raw?url={url}"
RAW_FETCH_PROXY: str = os.getenv("RAW_FETCH_PROXY", "")

# --- Media ---
VIDEO_POLL_INTERVAL: float = 5.0
TTS_SAMPLE_RATE: int = 24_000

# --- Timeouts ---
REQUEST_TIMEOUT: float = 30.0    # per HTTP request (seconds)
ENDPOINT_TIMEOUT: float = 180.0  # import / analysis endpoint timeout (seconds)
VIDEO_TIMEOUT: float = 600.0
SESSION_IDLE_TIMEOUT: float = float(os.getenv("SESSION_IDLE_TIMEOUT", "3600"))
GROUNDING_TIMEOUT: float = 30.0  # best-effort search, gives up with no links

# --- API endpoints ---
GEMINI_OPENAI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
GITHUB_API_BASE: str = "https://api.github.com"
GITLAB_API_BASE: str = "https://gitlab.com/api/v4"
BITBUCKET_API_BASE: str = "https://api.bitbucket.org/2.0"


def require_api_key() -> str:
    """Return the Gemini API key, failing hard when it is not configured."""
    if not GEMINI_API_KEY:
        raise RuntimeError("GEMINI_API_KEY environment variable is not set.")
    return GEMINI_API_KEY


def configure_logging() -> None:
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
