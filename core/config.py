from typing import List, Optional

from pydantic.v1 import BaseSettings


class Settings(BaseSettings):

    DATABASE_URL: str
    SECRET_KEY: str
    IDENTITY_PROVIDER_SECRET: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_BUCKET_NAME: str = "profiles"
    AWS_S3_ENDPOINT_URL: str = "http://localhost:9000"
    AWS_S3_REGION: str = "us-east-1"

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Nightly event, local wall-clock time
    EVENT_LOBBY_TIME: str = "18:50"
    EVENT_START_TIME: str = "19:02"
    MAX_DATES_PER_EVENT: int = 3

    CHAT_DURATION_SECONDS: int = 300
    PROFILE_REVEAL_AFTER_SECONDS: int = 150
    MESSAGE_POLL_INTERVAL_SECONDS: float = 3.0

    BLOCK_COOLDOWN_DAYS: int = 30
    NO_MATCH_DELAY_SECONDS: int = 2
    MIN_CANDIDATES_BEFORE_SUGGESTION: int = 2
    SUGGESTION_CITIES: List[str] = ["Oceanside", "Carlsbad", "Encinitas", "La Jolla", "Hillcrest"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
