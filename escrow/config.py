from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ESCROW_",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///./escrow.db"
    DATABASE_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    CURRENCY: str = "BDT"

    # Seed values for the settings row when none is stored yet
    DEFAULT_WITHDRAW_FEE_PERCENTAGE: Decimal = Decimal("10")
    DEFAULT_MIN_WITHDRAW_AMOUNT: Decimal = Decimal("500")
    DEFAULT_MIN_FEE: Decimal = Decimal("10")


config = ServiceConfig()
