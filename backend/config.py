from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings

ROOT_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    api_debug: bool = True
    cors_origins: List[AnyHttpUrl] | List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    bedrock_model_id: str = "anthropic.claude-3-haiku-20240307-v1:0"
    bedrock_max_tokens: int = 2048

    elevenlabs_api_key: str = ""
    elevenlabs_api_url: str = "https://api.elevenlabs.io/v1/speech-to-text"
    elevenlabs_model_id: str = "scribe_v1"
    elevenlabs_num_speakers: int = 2
    transcription_timeout_seconds: float = 30.0

    # Twilio media frames are 20ms of 8kHz mono mu-law.
    audio_batch_chunks: int = 50
    audio_encoding: str = "mulaw"
    audio_sample_rate: int = 8000
    audio_channels: int = 1

    agent_interval_seconds: float = 30.0
    # 10 seconds of 20ms frames waiting on transcription.
    stream_backlog_warning_frames: int = 500

    data_dir: Path = ROOT_DIR / "data"
    default_user_id: str = "00000000-0000-0000-0000-000000000000"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors(cls, value: str | list[str]) -> list[str] | list[AnyHttpUrl]:
        if isinstance(value, str):
            items = [item.strip() for item in value.split(",") if item.strip()]
            default_value = cls.model_fields["cors_origins"].default  # type: ignore[index]
            return items or default_value
        return value

    class Config:
        env_file = str(ROOT_DIR / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
