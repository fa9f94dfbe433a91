from decimal import Decimal
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Storefront Orders API"
    API_V1_STR: str = "/api/v1"
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "storefront"
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # JWT (admin tooling)
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    # Wompi
    WOMPI_PUBLIC_KEY: str = ""
    WOMPI_INTEGRITY_SECRET: str = ""
    WOMPI_EVENTS_SECRET: str = ""
    WOMPI_API_URL: str = "https://sandbox.wompi.co/v1"
    WOMPI_CHECKOUT_URL: str = "https://checkout.wompi.co/p/"
    WOMPI_REDIRECT_URL: Optional[str] = None
    WOMPI_TIMEOUT_SECONDS: int = 10

    CURRENCY: str = "COP"
    MIN_PURCHASE_AMOUNT: Decimal = Decimal("1000")  # Wompi minimum for COP; 0 disables the check

    # SendGrid
    SENDGRID_API_KEY: Optional[str] = None
    SENDGRID_FROM_EMAIL: str = "ventas@storefront.local"
    SENDGRID_FROM_NAME: str = "Storefront"

    # Background reconciler
    RECONCILER_ENABLED: bool = True
    RECONCILE_INTERVAL_SECONDS: int = 300
    PAYMENT_SESSION_RETRY_AFTER_MINUTES: int = 5
    PAYMENT_SESSION_EXPIRY_MINUTES: int = 120

settings = Settings()

def get_settings() -> Settings:
    return settings
