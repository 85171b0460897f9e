from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT_ALIASES = {
    "prod": "production",
    "production": "production",
    "stage": "staging",
    "staging": "staging",
    "dev": "development",
    "development": "development",
    "test": "test",
}

# Settings a production deployment cannot run without.
_PRODUCTION_REQUIRED = {
    "cognito_user_pool_id": "COGNITO_USER_POOL_ID",
    "cognito_client_id": "COGNITO_CLIENT_ID",
    "assets_bucket_name": "ASSETS_BUCKET_NAME",
    "email_from_address": "EMAIL_FROM_ADDRESS",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    environment: str = Field(default="development", validation_alias="NODE_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    frontend_base_url: str = Field(default="http://localhost:3000", validation_alias="FRONTEND_BASE_URL")
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    mongodb_uri: str = Field(default="mongodb://localhost:27017", validation_alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="clinic", validation_alias="MONGODB_DB_NAME")
    mongodb_timeout_ms: int = Field(default=5000, ge=100, validation_alias="MONGODB_TIMEOUT_MS")

    default_page_limit: int = Field(default=10, ge=1, validation_alias="DEFAULT_PAGE_LIMIT")
    max_page_limit: int = Field(default=100, ge=1, validation_alias="MAX_PAGE_LIMIT")

    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    assets_bucket_name: str | None = Field(default=None, validation_alias="ASSETS_BUCKET_NAME")
    assets_public_base_url: str | None = Field(default=None, validation_alias="ASSETS_PUBLIC_BASE_URL")
    email_from_address: str | None = Field(default=None, validation_alias="EMAIL_FROM_ADDRESS")

    cognito_user_pool_id: str | None = Field(default=None, validation_alias="COGNITO_USER_POOL_ID")
    cognito_client_id: str | None = Field(default=None, validation_alias="COGNITO_CLIENT_ID")
    cognito_region: str = Field(default="us-east-1", validation_alias="COGNITO_REGION")

    toy_due_soon_days: int = Field(default=3, ge=0, validation_alias="TOY_DUE_SOON_DAYS")
    low_stock_threshold: int = Field(default=5, ge=1, validation_alias="LOW_STOCK_THRESHOLD")

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        key = (v or "").strip().lower()
        return _ENVIRONMENT_ALIASES.get(key, key or "development")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @model_validator(mode="after")
    def _page_limits_are_ordered(self) -> "Settings":
        if self.default_page_limit > self.max_page_limit:
            self.default_page_limit = self.max_page_limit
        return self

    @property
    def normalized_environment(self) -> str:
        return self.environment

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def missing_production_settings(self) -> list[str]:
        return [
            env_name
            for attr, env_name in _PRODUCTION_REQUIRED.items()
            if not str(getattr(self, attr) or "").strip()
        ]

    def require_in_production(self) -> None:
        """Refuse to boot a production process without auth, media and email config."""
        if not self.is_production:
            return
        missing = self.missing_production_settings()
        if missing:
            raise RuntimeError("Missing required production environment variables: " + ", ".join(missing))

    def to_log_safe_dict(self) -> dict[str, object]:
        # The Mongo URI may embed credentials; only report whether it is set.
        return {
            "environment": self.environment,
            "port": self.port,
            "log_level": self.log_level,
            "frontend_base_url": self.frontend_base_url,
            "extra_frontend_urls": bool(self.frontend_urls),
            "mongodb_db_name": self.mongodb_db_name,
            "mongodb_uri_configured": bool(self.mongodb_uri),
            "page_limits": [self.default_page_limit, self.max_page_limit],
            "aws_region": self.aws_region,
            "assets_bucket_name": self.assets_bucket_name,
            "email_configured": bool(self.email_from_address),
            "cognito_configured": bool(self.cognito_user_pool_id and self.cognito_client_id),
            "toy_due_soon_days": self.toy_due_soon_days,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


settings = get_settings()
