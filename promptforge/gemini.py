import logging

import httpx
from google import genai
from google.genai import errors

from promptforge.config import require_api_key
from promptforge.errors import ProviderError

logger = logging.getLogger(__name__)

# Failures the google-genai SDK raises for API and transport problems
GENAI_ERRORS = (errors.APIError, httpx.HTTPError)


def create_genai_client() -> genai.Client:
    return genai.Client(api_key=require_api_key())


def genai_provider_error(exc: Exception, what: str) -> ProviderError:
    """Translate a google-genai failure into a ProviderError naming the operation."""
    if isinstance(exc, errors.APIError):
        if exc.code in (401, 403) or "API key not valid" in str(exc.message):
            return ProviderError(f"{what} failed: the Gemini API key is not valid.", auth=True)
        return ProviderError(f"{what} failed: {exc.message or exc.status} (code {exc.code})")
    return ProviderError(f"{what} failed: could not reach the Gemini API ({exc})")
