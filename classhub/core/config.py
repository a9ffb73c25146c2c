import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings


load_dotenv()


def _read_secret(env_var: str, default: str = "") -> str:
    """Read secret from environment variable or file path (for Cloud Run secrets)"""
    value = os.getenv(env_var, default)

    # Cloud Run --set-secrets mounts the secret as a file
    if value and os.path.exists(value):
        try:
            with open(value) as f:
                return f.read().strip()
        except OSError:
            return default

    return value


class Settings(BaseSettings):
    APP_TITLE: str = "classhub-api"
    APP_DESCRIPTION: str = "Live class scheduling, enrollment and progress tracking"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Default to localhost only - set proper origins in production
    ALLOW_ORIGINS: str = _read_secret(
        "ALLOW_ORIGINS", "http://localhost:3000,http://localhost:5173"
    )

    # Firebase - credentials file path or inline JSON
    GOOGLE_APPLICATION_CREDENTIALS: str = os.getenv(
        "GOOGLE_APPLICATION_CREDENTIALS", "firebase_key.json"
    )
    FIRESTORE_DATABASE_ID: str = "(default)"

    # Firebase session cookies
    SESSION_DURATION_DAYS: int = 2
    RECENT_SIGN_IN_SECONDS: int = 5 * 60

    # Scheduling rules
    JOIN_WINDOW_MINUTES: int = 15
    UPCOMING_CLASSES_LIMIT: int = 5

    # Store access
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_BASE_DELAY: float = 1.0
    STORE_RETRY_MAX_DELAY: float = 4.0
    CAS_MAX_ATTEMPTS: int = 5

    def __repr__(self):
        """Override __repr__ to prevent logging sensitive information"""
        return f"Settings(APP_TITLE='{self.APP_TITLE}', HOST='{self.HOST}', PORT={self.PORT})"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.ALLOW_ORIGINS.split(",")]

    class Config:
        case_sensitive = True


settings = Settings()
