import asyncio
import base64
import io
import logging
import wave

import httpx
from google import genai
from google.genai import types

from promptforge.config import (
    IMAGE_MODEL,
    TTS_MODEL,
    TTS_SAMPLE_RATE,
    TTS_VOICE,
    VIDEO_MODEL,
    VIDEO_POLL_INTERVAL,
)
from promptforge.errors import ProviderError
from promptforge.gemini import GENAI_ERRORS, genai_provider_error
from promptforge.prompts import AUDIO_TEMPLATE, LOGO_TEMPLATE, VIDEO_TEMPLATE
from promptforge.schemas import AnalysisResult

logger = logging.getLogger(__name__)


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def pcm_to_wav(pcm: bytes, sample_rate: int = TTS_SAMPLE_RATE) -> bytes:
    """Wrap raw 16-bit mono PCM in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


def _sample_rate(mime_type: str) -> int:
    # e.g. "audio/L16;codec=pcm;rate=24000"
    for param in mime_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key == "rate" and value.isdigit():
            return int(value)
    return TTS_SAMPLE_RATE


def with_access_key(uri: str, api_key: str) -> str:
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}key={api_key}"


async def generate_logo(analysis: AnalysisResult, client: genai.Client) -> str:
    """Generate a single logo image and return it as a PNG data URI."""
    prompt = LOGO_TEMPLATE.format(
        objective=analysis.main_objective, framework=analysis.language_framework
    )
    logger.info(f"Logo request - model={IMAGE_MODEL}")
    try:
        response = await client.aio.models.generate_images(
            model=IMAGE_MODEL,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/png",
                aspect_ratio="1:1",
            ),
        )
    except GENAI_ERRORS as exc:
        raise genai_provider_error(exc, "Logo generation") from exc

    images = response.generated_images or []
    if not images or not images[0].image or not images[0].image.image_bytes:
        raise ProviderError("Logo generation failed: the model returned no image")
    image = images[0].image
    return to_data_uri(image.image_bytes, image.mime_type or "image/png")


async def generate_audio_summary(analysis: AnalysisResult, client: genai.Client) -> str:
    """Narrate the project's objective and purpose; returns a WAV data URI."""
    text = AUDIO_TEMPLATE.format(
        objective=analysis.main_objective, purpose=analysis.technical_purpose
    )
    logger.info(f"Audio summary request - model={TTS_MODEL}")
    try:
        response = await client.aio.models.generate_content(
            model=TTS_MODEL,
            contents=text,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=TTS_VOICE),
                    ),
                ),
            ),
        )
    except GENAI_ERRORS as exc:
        raise genai_provider_error(exc, "Audio generation") from exc

    inline = None
    for candidate in response.candidates or []:
        for part in (candidate.content.parts if candidate.content else None) or []:
            if part.inline_data and part.inline_data.data:
                inline = part.inline_data
                break
        if inline:
            break
    if inline is None:
        raise ProviderError("Audio generation failed: the model returned no audio")

    mime_type = inline.mime_type or "audio/L16"
    if mime_type.startswith(("audio/L16", "audio/pcm")):
        return to_data_uri(pcm_to_wav(inline.data, _sample_rate(mime_type)), "audio/wav")
    return to_data_uri(inline.data, mime_type)


async def generate_video_pitch(
    analysis: AnalysisResult,
    client: genai.Client,
    api_key: str,
    poll_interval: float = VIDEO_POLL_INTERVAL,
) -> str:
    """Run a text-to-video job to completion and return its download URL.

    The job is polled every ``poll_interval`` seconds; the URL is only
    produced once the operation reports done, with the API key attached.
    """
    prompt = VIDEO_TEMPLATE.format(objective=analysis.main_objective)
    logger.info(f"Video request - model={VIDEO_MODEL}")
    try:
        operation = await client.aio.models.generate_videos(
            model=VIDEO_MODEL,
            prompt=prompt,
            config=types.GenerateVideosConfig(number_of_videos=1, aspect_ratio="16:9"),
        )
        polls = 0
        while not operation.done:
            await asyncio.sleep(poll_interval)
            operation = await client.aio.operations.get(operation)
            polls += 1
            logger.debug(f"Video job {operation.name} poll {polls}: done={operation.done}")
    except GENAI_ERRORS as exc:
        raise genai_provider_error(exc, "Video generation") from exc

    if operation.error:
        message = operation.error.get("message", operation.error)
        raise ProviderError(f"Video generation failed: {message}")

    videos = operation.response.generated_videos if operation.response else None
    uri = videos[0].video.uri if videos and videos[0].video else None
    if not uri:
        raise ProviderError("Video generation failed: the job finished without a video")

    logger.info(f"Video job {operation.name} complete after {polls} polls")
    return with_access_key(uri, api_key)


async def download_video(uri: str, client: httpx.AsyncClient) -> tuple[bytes, str]:
    """Fetch a finished video server-side; returns (bytes, content type)."""
    try:
        response = await client.get(uri, follow_redirects=True)
    except httpx.RequestError as exc:
        raise ProviderError(f"Video download failed: {exc}") from exc
    if response.status_code != 200:
        raise ProviderError(f"Video download failed. Status: {response.status_code}")
    return response.content, response.headers.get("content-type", "video/mp4")
