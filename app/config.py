"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    FIREBASE_CREDENTIALS: str = ""
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    RATE_LIMIT: str = "100/minute"
    DEBUG: bool = False

    # Comma-separated UIDs granted admin rights in addition to the Firebase ``admin`` claim
    ADMIN_UIDS: str = ""

    PUZZLE_POINTS: int = 15
    QUIZ_STREAK_WINDOW_HOURS: int = 24
    PROGRESSION_SAVE_RETRIES: int = 3

    PROGRESSION_COLLECTION: str = "progressions"
    ACHIEVEMENTS_COLLECTION: str = "achievements"

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def admin_uids_set(self) -> set[str]:
        """Parse comma-separated admin UIDs into a set."""
        return {uid.strip() for uid in self.ADMIN_UIDS.split(",") if uid.strip()}

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
