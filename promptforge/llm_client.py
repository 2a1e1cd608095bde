import json
import logging
import re

import openai
from pydantic import ValidationError

from promptforge.config import (
    ANALYSIS_MODEL,
    DEEP_ANALYSIS_MODEL,
    GEMINI_OPENAI_BASE_URL,
    LLM_TEMPERATURE,
    REFINE_MODEL,
    require_api_key,
)
from promptforge.errors import (
    EmptyResponseError,
    InvalidModelOutputError,
    InvalidRequestError,
    ProviderError,
)
from promptforge.prompts import (
    ANALYSIS_SCHEMA,
    ANALYSIS_SYSTEM_PROMPT,
    ANALYSIS_USER_TEMPLATE,
    REFINE_SYSTEM_PROMPT,
    REFINE_USER_TEMPLATE,
)
from promptforge.schemas import AnalysisResult

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def create_openai_client() -> openai.AsyncOpenAI:
    """Create an AsyncOpenAI client pointed at Gemini's OpenAI-compatible endpoint."""
    return openai.AsyncOpenAI(
        api_key=require_api_key(),
        base_url=GEMINI_OPENAI_BASE_URL,
    )


def _provider_error(exc: openai.OpenAIError) -> ProviderError:
    """Translate an SDK error into a ProviderError with a user-facing message."""
    detail = str(exc)
    if isinstance(exc, openai.AuthenticationError) or "API key not valid" in detail:
        return ProviderError("The Gemini API key is not valid. Check your credentials.", auth=True)
    if isinstance(exc, (openai.APIConnectionError, openai.InternalServerError)):
        return ProviderError(
            "Could not communicate with the Gemini API. This may be a network problem "
            "or a temporary server error. Check your connection and try again shortly."
        )
    return ProviderError(f"The Gemini API request failed. Details: {detail}")


async def _complete(
    client: openai.AsyncOpenAI,
    model: str,
    system_prompt: str,
    prompt: str,
    **kwargs,
) -> str:
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompt},
    ]
    logger.debug(f"LLM call - model={model}")
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=LLM_TEMPERATURE,
            **kwargs,
        )
    except openai.OpenAIError as exc:
        logger.error(f"LLM API call failed: {exc}")
        raise _provider_error(exc) from exc

    usage = response.usage
    if usage:
        logger.debug(
            f"LLM token usage - model={model}, "
            f"prompt={usage.prompt_tokens}, completion={usage.completion_tokens}, "
            f"total={usage.total_tokens}"
        )

    if not response.choices:
        return ""
    return (response.choices[0].message.content or "").strip()


def parse_analysis(raw: str) -> AnalysisResult:
    """Validate model output against the analysis schema."""
    match = _FENCE.match(raw)
    if match:
        raw = match.group(1)
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning(f"LLM returned invalid JSON: {raw[:200]!r}")
        raise InvalidModelOutputError() from exc
    if not isinstance(payload, dict):
        raise InvalidModelOutputError()

    # Grounding links are only ever attached by the grounding step
    payload.pop("groundingLinks", None)
    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"LLM output does not match the analysis schema: {exc}")
        raise InvalidModelOutputError() from exc


async def analyze_code(
    code: str,
    client: openai.AsyncOpenAI,
    deep: bool = False,
) -> AnalysisResult:
    """Request a structured analysis of the concatenated code blob.

    ``deep`` switches to the larger model with high reasoning effort.
    """
    model = DEEP_ANALYSIS_MODEL if deep else ANALYSIS_MODEL
    logger.info(f"Analysis request - model={model}, {len(code)} chars")

    raw = await _complete(
        client,
        model,
        ANALYSIS_SYSTEM_PROMPT,
        ANALYSIS_USER_TEMPLATE.format(code=code),
        reasoning_effort="high" if deep else "low",
        response_format={
            "type": "json_schema",
            "json_schema": {"name": "code_analysis", "schema": ANALYSIS_SCHEMA},
        },
    )
    if not raw:
        raise EmptyResponseError()

    result = parse_analysis(raw)
    logger.info(f"Analysis complete: {result.language_framework}")
    return result


async def refine_prompt(
    prompt: str,
    instructions: str,
    client: openai.AsyncOpenAI,
) -> str:
    """Revise ``prompt`` according to the author's feedback."""
    if not instructions.strip():
        raise InvalidRequestError("Refinement instructions cannot be empty")

    raw = await _complete(
        client,
        REFINE_MODEL,
        REFINE_SYSTEM_PROMPT,
        REFINE_USER_TEMPLATE.format(prompt=prompt, instructions=instructions.strip()),
    )
    if not raw:
        raise EmptyResponseError()
    return raw
