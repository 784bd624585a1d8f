from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(720, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    default_admin_name: str = Field("Super Admin", alias="DEFAULT_ADMIN_NAME")
    default_admin_email: Optional[str] = Field(None, alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: Optional[str] = Field(None, alias="DEFAULT_ADMIN_PASSWORD")

    # Login password for imported/created students that have no date of birth
    default_student_password: str = Field("password123", alias="DEFAULT_STUDENT_PASSWORD")
    # When true, a partially paid fee past its due date is reported as overdue
    fee_overdue_after_partial: bool = Field(False, alias="FEE_OVERDUE_AFTER_PARTIAL")

    cors_origins: str = Field("*", alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    default_page_size: int = Field(15, alias="DEFAULT_PAGE_SIZE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or ["*"]


settings = Settings()
