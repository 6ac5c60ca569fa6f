from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Network Earnings API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (Postgres in production, e.g. postgresql+psycopg2://...)
    DATABASE_URL: str = "sqlite:///./network_earnings.db"
    # Disputes and activities are not present in every deployment
    CREATE_OPTIONAL_TABLES: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["*"]
    CORS_HEADERS: List[str] = ["*"]

    # Identity provider: "local" or "supabase"
    AUTH_PROVIDER: str = "local"
    SUPABASE_URL: str = ""
    # Public key, safe to hand to browser clients
    SUPABASE_ANON_KEY: str = ""
    # Service role key, server side only
    SUPABASE_SERVICE_KEY: str = ""

    # Access tokens. With AUTH_PROVIDER=supabase this must be the project JWT secret.
    JWT_SECRET: str = "change-me-network-earnings-local-secret"
    ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080

    # Where OAuth and email links send the user back to
    SITE_URL: str = "http://localhost:5173"

    # Phone verification
    VERIFICATION_CODE_EXPIRY_MINUTES: int = 10
    MAX_VERIFICATION_ATTEMPTS: int = 3
    DEFAULT_PHONE_REGION: str = "GB"

    # Dashboards
    METRICS_WINDOW_MONTHS: int = 6
    REFERRAL_BASE_URL: str = "https://networkearnings.com/ref"

    # Fernet key for payout method details
    ENCRYPTION_KEY: Optional[str] = None

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()
