from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator
from typing import Annotated, Optional, List, Dict, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Finance API (billing + resource lists)
    finance_api_base_url: str = "http://localhost:3000/api"
    finance_api_timeout_seconds: float = 10.0

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_password: Optional[str] = None

    # Entitlements
    subscription_cache_ttl_minutes: int = 5
    loading_policy: str = "fail_open"  # 'fail_open' or 'pending'
    feature_tier_overrides: Dict[str, str] = {}  # feature key -> plan name
    usage_timezone: str = "UTC"  # IANA zone for the monthly transaction window, e.g. Asia/Jakarta

    # API
    api_v1_str: str = "/api/v1"

    # Environment
    debug: bool = True

    # CORS
    cors_origins: Annotated[List[str], NoDecode] = ["http://localhost:5173"]

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS origins from environment variable (comma-separated) or use default list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator('loading_policy')
    @classmethod
    def check_loading_policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ('fail_open', 'pending'):
            raise ValueError(f"Invalid loading policy: {v}")
        return v

    @field_validator('usage_timezone')
    @classmethod
    def check_usage_timezone(cls, v: str) -> str:
        v = v.strip()
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Invalid usage timezone: {v}") from e
        return v


settings = Settings()
