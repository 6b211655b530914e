# inspection_engine/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_name: str = "Inspection Engine"
    app_version: str = "0.1.0"
    database_url: str = "sqlite:///./inspections.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth ----
    auth_mode: str = "dev"  # dev|jwt
    jwt_secret: str = "dev-change-me"
    jwt_exp_minutes: int = 60 * 24 * 7

    dev_header_user_id: str = "X-User-Id"
    dev_header_user_role: str = "X-User-Role"
    dev_header_user_email: str = "X-User-Email"

    # ---- Outsourcing / access links ----
    access_token_ttl_hours: int = 48
    access_link_base_url: str = "https://inspect.example.com/a"

    # ---- Vision / judgment capability ----
    vision_enabled: bool = False
    vision_api_key: str | None = None
    vision_base_url: str = "https://api.anthropic.com/v1"
    vision_model: str = "claude-sonnet-4-20250514"
    vision_timeout_seconds: float = 60.0
    vision_max_tokens: int = 1024

    # ---- Comparison engine ----
    comparison_max_concurrency: int = 4
    comparison_no_image_confidence_factor: float = 0.6
    comparison_manual_review_threshold: float = 0.7
    comparison_stale_after_seconds: int = 15 * 60

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    def model_post_init(self, __context) -> None:
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

        factor = float(self.comparison_no_image_confidence_factor)
        if not (0.0 < factor < 1.0):
            raise ValueError("comparison_no_image_confidence_factor must be strictly between 0 and 1")


settings = Settings()
