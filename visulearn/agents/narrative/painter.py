from typing import Optional

from visulearn.core.gemini_client import GeminiClient, get_gemini_client
from visulearn.core.graph.state import Asset
from visulearn.core.logger import log_agent_action

DEFAULT_ILLUSTRATION_PROMPT = "Generate a beautiful, whimsical illustration for a children's story."


async def generate_image(
    prompt: str,
    reference_image: Optional[str] = None,
    client: Optional[GeminiClient] = None,
) -> Asset:
    """
    Generates one illustration, using the character picture as reference
    when one is given. Raises ProviderError / RateLimited on failure.
    """
    client = client or get_gemini_client()
    result = await client.generate_image(prompt or DEFAULT_ILLUSTRATION_PROMPT, image=reference_image)
    log_agent_action("painter", "Image generated", f"{len(result['data'])} base64 chars")
    return Asset(kind="image", data=result["data"], mime_type=result["mime_type"])


def make_image_task(client: GeminiClient):
    """Bind a client into the (prompt, reference_image) callable the orchestrator expects."""
    async def image_task(prompt: str, reference_image: Optional[str]) -> Asset:
        return await generate_image(prompt, reference_image, client=client)
    return image_task
