import asyncio
import logging

from google import genai
from google.genai import types

from promptforge.config import GROUNDING_MODEL, GROUNDING_TIMEOUT, MAX_GROUNDING_DEPENDENCIES
from promptforge.prompts import GROUNDING_TEMPLATE
from promptforge.schemas import GroundingLink

logger = logging.getLogger(__name__)


def extract_grounding_links(response) -> list[GroundingLink]:
    """Collect (title, url) pairs from the first candidate's grounding metadata."""
    links: list[GroundingLink] = []
    seen: set[str] = set()

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return links
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []

    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if not uri or uri in seen:
            continue
        seen.add(uri)
        links.append(GroundingLink(title=getattr(web, "title", None) or uri, url=uri))
    return links


async def fetch_grounding_links(
    dependencies: list[str],
    client: genai.Client,
    timeout: float = GROUNDING_TIMEOUT,
) -> list[GroundingLink]:
    """Best-effort web-search citations for the first few dependencies.

    Never raises: any failure, including the search taking longer than
    ``timeout`` seconds, is logged and yields an empty list.
    """
    selected = [d for d in dependencies if d.strip()][:MAX_GROUNDING_DEPENDENCIES]
    if not selected:
        return []

    prompt = GROUNDING_TEMPLATE.format(dependencies=", ".join(selected))
    logger.info(f"Grounding request for {len(selected)} dependencies")
    try:
        response = await asyncio.wait_for(
            client.aio.models.generate_content(
                model=GROUNDING_MODEL,
                contents=prompt,
                config=types.GenerateContentConfig(
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                ),
            ),
            timeout=timeout,
        )
        links = extract_grounding_links(response)
    except asyncio.TimeoutError:
        logger.warning(f"Grounding timed out after {timeout}s, continuing without links")
        return []
    except Exception as exc:
        logger.warning(f"Grounding failed, continuing without links: {exc}")
        return []

    logger.info(f"Grounding returned {len(links)} links")
    return links
