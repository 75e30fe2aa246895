from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://careloop:careloop@db:5432/careloop"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # IANA zone used to turn "HH:MM" reminder times into instants.
    LOCAL_TIMEZONE: str = "UTC"

    # --- Generators ---
    MEDICATION_LOOKAHEAD_HOURS: int = 48
    FEEDING_DEFAULT_LEAD_MINUTES: int = 10

    # --- Priority adjuster ---
    BEHAVIOR_WINDOW_DAYS: int = 30
    ESCALATE_MISSED_THRESHOLD: int = 3
    DEESCALATE_COMPLETED_THRESHOLD: int = 5

    # --- Rewards ---
    # Level n starts at LEVEL_BASE_EXPERIENCE * n * (n - 1) / 2 experience.
    LEVEL_BASE_EXPERIENCE: int = 1000

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
