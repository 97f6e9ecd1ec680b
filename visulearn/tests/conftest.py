import base64

import pytest
from fastapi.testclient import TestClient

from visulearn.core.errors import RateLimited
from visulearn.core.graph.state import Asset
from visulearn.core.retry import RetryingCaller, RetryPolicy
from visulearn.main import app
from visulearn.web import routes
from visulearn.web.jobs import JobRegistry


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FakeGemini:
    """Scriptable replacement for GeminiClient."""

    def __init__(self, text="[]", image_data="aW1hZ2U=", text_errors=(), image_errors=()):
        self.text = text
        self.image_data = image_data
        self.text_errors = list(text_errors)
        self.image_errors = list(image_errors)
        self.text_prompts = []
        self.image_calls = []

    async def generate_text(self, prompt, image=None, mime_type="image/jpeg", generation_config=None):
        self.text_prompts.append(prompt)
        if self.text_errors:
            raise self.text_errors.pop(0)
        return self.text

    async def generate_image(self, prompt, image=None, mime_type="image/jpeg"):
        self.image_calls.append((prompt, image))
        if self.image_errors:
            raise self.image_errors.pop(0)
        return {"data": self.image_data, "mime_type": "image/png"}


class FakeTextToSpeech:
    """Mimics AsyncElevenLabs.text_to_speech.convert (an async generator)."""

    def __init__(self, audio=b"mp3-bytes", errors=()):
        self.audio = audio
        self.errors = list(errors)
        self.texts = []

    async def convert(self, text, voice_id, model_id, output_format):
        self.texts.append(text)
        if self.errors:
            raise self.errors.pop(0)
        yield self.audio[:3]
        yield self.audio[3:]


class FakeElevenLabs:
    def __init__(self, **kwargs):
        self.text_to_speech = FakeTextToSpeech(**kwargs)


def image_asset(data="aW1n"):
    return Asset(kind="image", data=data, mime_type="image/png")


def audio_asset(data=None):
    return Asset(kind="audio", data=data or base64.b64encode(b"mp3").decode(), mime_type="audio/mpeg")


def rate_limited():
    return RateLimited("Test")


@pytest.fixture(name="sleep")
def sleep_fixture():
    return RecordingSleep()


@pytest.fixture(name="caller")
def caller_fixture(sleep):
    return RetryingCaller(RetryPolicy(max_retries=3, base_delay=2.0), sleep=sleep)


@pytest.fixture(name="gemini")
def gemini_fixture():
    return FakeGemini()


@pytest.fixture(name="elevenlabs")
def elevenlabs_fixture():
    return FakeElevenLabs()


@pytest.fixture(name="client")
def client_fixture(gemini, elevenlabs, caller):

    app.dependency_overrides[routes.gemini_client] = lambda: gemini
    app.dependency_overrides[routes.tts_client] = lambda: elevenlabs
    app.dependency_overrides[routes.get_caller] = lambda: caller
    app.dependency_overrides[routes.get_tts_caller] = lambda: caller
    app.state.jobs = JobRegistry()

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
