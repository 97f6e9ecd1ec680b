import base64
from typing import Optional

import httpx
from elevenlabs.client import AsyncElevenLabs
from elevenlabs.core.api_error import ApiError

from visulearn.core.config import settings
from visulearn.core.errors import ProviderError, RateLimited
from visulearn.core.graph.state import Asset
from visulearn.core.logger import log_agent_action

PROVIDER = "ElevenLabs"
OUTPUT_FORMAT = "mp3_44100_128"
AUDIO_MIME_TYPE = "audio/mpeg"


def get_tts_client() -> AsyncElevenLabs:
    """Client built from settings. Raises ConfigurationError without a key."""
    return AsyncElevenLabs(api_key=settings.require("ELEVENLABS_API_KEY"))


async def synthesize_speech(text: str, client: Optional[AsyncElevenLabs] = None) -> bytes:
    """
    Converts text to MP3 bytes with ElevenLabs.

    429 is raised as RateLimited (retryable); 401 and every other failure
    as a terminal ProviderError.
    """
    client = client or get_tts_client()
    chunks = []
    try:
        async for chunk in client.text_to_speech.convert(
            text=text,
            voice_id=settings.ELEVENLABS_VOICE_ID,
            model_id=settings.ELEVENLABS_MODEL_ID,
            output_format=OUTPUT_FORMAT,
        ):
            chunks.append(chunk)
    except ApiError as e:
        if e.status_code == 429:
            raise RateLimited(PROVIDER) from e
        if e.status_code == 401:
            raise ProviderError(PROVIDER, "authentication failed. Please check your API key.", 401) from e
        raise ProviderError(PROVIDER, str(e.body), e.status_code) from e
    except httpx.HTTPError as e:
        raise ProviderError(PROVIDER, f"request failed: {e}") from e

    audio = b"".join(chunks)
    if not audio:
        raise ProviderError(PROVIDER, "empty audio response")
    return audio


async def generate_audio(text: str, client: Optional[AsyncElevenLabs] = None) -> Asset:
    """Narration for one story segment, as a base64 audio asset."""
    audio = await synthesize_speech(text, client)
    log_agent_action("narrator", "Audio generated", f"{len(audio)} bytes")
    return Asset(kind="audio", data=base64.b64encode(audio).decode("ascii"), mime_type=AUDIO_MIME_TYPE)


def make_audio_task(client: AsyncElevenLabs):
    async def audio_task(text: str) -> Asset:
        return await generate_audio(text, client)
    return audio_task
