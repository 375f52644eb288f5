from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_REALTIME_MODEL: str = "gpt-realtime"
    OPENAI_VOICE: str = "verse"

    HOST: str = "0.0.0.0"
    PORT: int = 3000
    PUBLIC_DIR: str = "public"
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "info"

    CREDENTIAL_URL: str = "http://127.0.0.1:3000/session"
    HANDSHAKE_TIMEOUT_SECONDS: float = 10.0

    PENDING_QUEUE_WARN_THRESHOLD: int = 100
    EVENT_LOG_LIMIT: int = 500

    MICROPHONE_DEVICE: str = "default"
    MICROPHONE_FORMAT: str | None = "pulse"
    REMOTE_AUDIO_SINK: str | None = None
    REMOTE_AUDIO_FORMAT: str | None = None

    GOOGLE_MAPS_API_KEY: str = ""
    STATIC_MAP_URL: str = "https://maps.googleapis.com/maps/api/staticmap"
    STATIC_MAP_WIDTH: int = 480
    STATIC_MAP_HEIGHT: int = 640
    STATIC_MAP_SCALE: int = 2
    STATIC_MAP_TYPE: str = "roadmap"

    SNAPSHOT_STRATEGY: Literal["interval", "idle"] = "interval"
    SNAPSHOT_INTERVAL_SECONDS: float = 15.0
    SNAPSHOT_IDLE_DEBOUNCE_SECONDS: float = 0.35
    SNAPSHOT_HISTORY_SIZE: int = 12
    CAPTURE_TIMEOUT_SECONDS: float = 10.0

    DEFAULT_LAT: float = 40.758
    DEFAULT_LNG: float = -73.9855
    DEFAULT_ZOOM: int = 13

    @property
    def signaling_url(self) -> str:
        return f"{self.OPENAI_BASE_URL.rstrip('/')}/realtime/calls"

    @property
    def sessions_url(self) -> str:
        return f"{self.OPENAI_BASE_URL.rstrip('/')}/realtime/sessions"

    @property
    def snapshots_enabled(self) -> bool:
        return bool(self.GOOGLE_MAPS_API_KEY)

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
