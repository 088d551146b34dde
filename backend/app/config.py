from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10-19.v1"
    database_url: str = "sqlite:///./rentflow.db"

    # ---- Logging ----
    log_level: str = "INFO"
    log_format: str = "json"  # json|text
    sql_log_level: str = "WARNING"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Identity generator ----
    # keep ids inside the JS safe-integer range so clients never round them
    id_min: int = 1_000_000
    id_max: int = 2**53 - 1

    # ---- Auth ----
    auth_mode: str = "dev"  # dev|jwt
    dev_header_user_id: str = "X-User-Id"

    jwt_secret: str = "dev-change-me"
    jwt_exp_minutes: int = 60 * 24  # 1 day
    jwt_cookie_name: str = "sessiontoken"
    jwt_cookie_secure: int = 0
    jwt_cookie_samesite: str = "lax"

    # ---- Monthly rent reminders ----
    reminder_scheduler_enabled: bool = False
    reminder_day: int = 5
    reminder_hour: int = 9
    reminder_timezone: str = "Asia/Dhaka"
    # POST /api/ops/reminders/run; off unless an operator turns it on
    ops_manual_reminders_enabled: bool = False

    # ---- Rate limiting ----
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 120
    rate_limit_burst: int = 30
    rate_limit_idle_seconds: int = 600
    # peers allowed to set X-Forwarded-For; comma-separated or a JSON list
    rate_limit_trusted_proxies: list[str] | str = []

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    def model_post_init(self, __context) -> None:
        if not (1 <= self.reminder_day <= 28):
            # every month must contain the reminder day
            raise ValueError("reminder_day must be between 1 and 28")
        if not (0 <= self.reminder_hour <= 23):
            raise ValueError("reminder_hour must be between 0 and 23")
        if self.id_min < 1 or self.id_max <= self.id_min:
            raise ValueError("id_min/id_max must describe a non-empty positive range")

        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
