from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "AIMedNet"
    PROJECT_VERSION: str = "1.0.0"
    DESCRIPTION: str = "Encrypted direct messaging and social counters for AIMedNet"

    DATABASE_URI: str = "sqlite:///./app.db"

    # Endpoints
    API_V1_STR: str = "/api/v1"
    API_BASE_URL: str = "https://localhost"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    SESSION_COOKIE_NAME: str = "sessionId"
    SESSION_TIMEOUT_MINUTES: int = 60 * 24
    SESSION_ID_LENGTH: int = 32
    REDIS_SESSION_PREFIX: str = "session:"

    # Realtime change feed and notification outbox
    REALTIME_CHANNEL_PREFIX: str = "realtime:"
    NOTIFICATION_OUTBOX_KEY: str = "notifications:outbox"

    # CORS Settings
    ALLOWED_ORIGINS: str = "https://localhost,https://127.0.0.1"
    ALLOW_CREDENTIALS: bool = True
    ALLOW_METHODS: list[str] = ["*"]
    ALLOW_HEADERS: list[str] = ["*"]

    # Crypto
    PBKDF2_ITERATIONS: int = 250000
    PBKDF2_KEY_LENGTH: int = 32
    AES_GCM_IV_SIZE: int = 12
    ENCRYPTION_SALT_BYTES: int = 16

    # Passwords
    MIN_PASSWORD_LENGTH: int = 8
    MAX_PASSWORD_LENGTH: int = 128

    # Shown in place of a message body that cannot be decrypted
    UNDECRYPTABLE_PLACEHOLDER: str = "[Unable to decrypt]"


settings = Settings()
