from decimal import Decimal
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    database_echo: bool = Field(False, alias="DATABASE_ECHO")
    # Seconds before a pooled connection is replaced
    database_pool_recycle: int = Field(300, alias="DATABASE_POOL_RECYCLE")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")

    # Portal links for students/teachers. Must be at least 32 characters when set.
    portal_jwt_secret: Optional[str] = Field(None, alias="PORTAL_JWT_SECRET")
    portal_token_expire_days: int = Field(30, alias="PORTAL_TOKEN_EXPIRE_DAYS")
    app_url: str = Field("", alias="APP_URL")

    # Regional defaults (South Africa)
    currency_code: str = Field("ZAR", alias="CURRENCY_CODE")
    currency_symbol: str = Field("R", alias="CURRENCY_SYMBOL")
    vat_rate: Decimal = Field(Decimal("0.15"), alias="VAT_RATE")
    phone_region_pattern: str = Field(r"^(\+?27|0)?[0-9]{9,10}$", alias="PHONE_REGION_PATTERN")
    # DMY or MDY; applies to slash/dash dates in CSV imports. ISO dates are unaffected.
    date_order_preference: str = Field("DMY", alias="DATE_ORDER_PREFERENCE")

    fee_due_day: int = Field(7, ge=1, le=28, alias="FEE_DUE_DAY")
    audit_page_size: int = Field(20, alias="AUDIT_PAGE_SIZE")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
