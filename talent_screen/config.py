"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "talent_screen"

    # Application
    app_name: str = "Talent Screen Assessment"
    app_version: str = "1.0.0"
    debug: bool = True

    # CORS
    allowed_origins: str = "http://localhost:5173,http://localhost:3000"

    # AI scoring oracle
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_transcription_model: str = "whisper-1"
    scoring_timeout_seconds: float = 60.0

    # External collaborators
    results_webhook_url: Optional[str] = None
    session_validation_url: Optional[str] = None

    # Session lifetime
    session_ttl_hours: float = 3.0

    # Section time limits (seconds)
    typing_time_limit: int = 180
    reading_time_limit: int = 600
    grammar_time_limit: int = 600
    voice_time_limit: int = 420
    writing_time_limit: int = 900
    sjt_time_limit: int = 600

    # Pass thresholds
    typing_min_wpm: int = 35
    typing_min_accuracy: float = 85.0
    reading_pass_score: float = 70.0
    grammar_pass_score: float = 75.0
    voice_pass_score: float = 75.0
    writing_pass_score: float = 75.0
    sjt_pass_score: float = 70.0

    # Proctoring
    proctoring_poll_interval: float = 0.5
    proctoring_warning_threshold: int = 3
    watchdog_interval: float = 1.0

    # Media capture
    media_chunk_seconds: float = 1.0

    # Outcome policies
    force_completed_passes: bool = False
    optimistic_fallback_scores: bool = False

    @property
    def allowed_origins_list(self) -> List[str]:
        """Get allowed origins as a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def section_time_limits(self) -> Dict[str, int]:
        """Time limit in seconds keyed by section kind value."""
        return {
            "typing": self.typing_time_limit,
            "reading": self.reading_time_limit,
            "grammar": self.grammar_time_limit,
            "voice": self.voice_time_limit,
            "writing": self.writing_time_limit,
            "sjt": self.sjt_time_limit,
        }

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
