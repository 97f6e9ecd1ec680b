import os
from dotenv import load_dotenv

from visulearn.core.errors import ConfigurationError

# Load variables from .env file
load_dotenv()


class Settings:
    PROJECT_NAME: str = "VisuLearn"
    VERSION: str = "1.0.0"

    # AI Keys (checked per request, not at import)
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY")
    ELEVENLABS_API_KEY: str = os.getenv("ELEVENLABS_API_KEY")

    # Models
    GEMINI_TEXT_MODEL: str = os.getenv("GEMINI_TEXT_MODEL", "gemini-2.0-flash-exp")
    GEMINI_IMAGE_MODEL: str = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image-preview")
    GEMINI_TIMEOUT_SECONDS: float = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "120"))

    ELEVENLABS_VOICE_ID: str = os.getenv("ELEVENLABS_VOICE_ID", "JBFqnCBsd6RMkjVDRZzb")
    ELEVENLABS_MODEL_ID: str = os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2")

    # Retry policy for provider calls
    RETRY_MAX_RETRIES: int = int(os.getenv("RETRY_MAX_RETRIES", "3"))
    RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "2.0"))

    # Batch jobs kept in memory for polling
    JOB_MAX_RETAINED: int = int(os.getenv("JOB_MAX_RETAINED", "50"))
    JOB_TTL_SECONDS: float = float(os.getenv("JOB_TTL_SECONDS", "3600"))

    # Logging
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def require(self, name: str) -> str:
        """Return a setting value or raise ConfigurationError if it is unset."""
        value = getattr(self, name, None)
        if not value:
            raise ConfigurationError(name)
        return value


settings = Settings()
