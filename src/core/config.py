"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.models import Accelerator, EngineConfig, Precision, SessionPolicy


class Settings(BaseSettings):
    """LiveScribe settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        whisper_model: faster-whisper model size used by the recognition engine.
        whisper_precision: Precision hint for the engine ("fp32" or "fp16").
        whisper_accelerator: "preferred" tries CUDA first, "cpu-only" never does.
        capture_device: Audio source ("websocket" client stream or local "microphone").
        session_policy: "single_shot" or "chunked_interval" transcription cycles.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Whisper STT ---
    # Recognition engine configuration using faster-whisper
    whisper_provider: str = "local"
    whisper_model: str = "tiny.en"  # Model size: tiny(.en), base(.en), small, medium, large-v3
    whisper_precision: Precision = Precision.fp32
    whisper_accelerator: Accelerator = Accelerator.preferred
    whisper_default_language: str = ""  # Empty = auto-detect; ISO 639-1 code e.g. "en"
    whisper_beam_size: int = Field(default=5, ge=1)

    # --- Audio capture ---
    # PCM 16-bit signed little-endian is the fragment format of both devices
    capture_device: str = "websocket"  # "websocket" (client streams PCM) or "microphone"
    audio_sample_rate: int = 16000
    audio_channels: int = 1
    microphone_block_ms: int = 100  # Fragment size delivered by the microphone
    microphone_device: str | None = None  # sounddevice name or index; None = default input

    # --- Session policy ---
    session_policy: SessionPolicy = SessionPolicy.single_shot
    chunk_interval_seconds: float = Field(default=3.0, gt=0)

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level

    def engine_config(self) -> EngineConfig:
        """Build the engine load configuration from the Whisper settings."""
        return EngineConfig(
            model_size=self.whisper_model,
            precision=self.whisper_precision,
            accelerator=self.whisper_accelerator,
            language=self.whisper_default_language or None,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
