from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    # Core
    environment: str = Field(default="dev")
    app_name: str = Field(default="Backoffice API")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Document store
    data_dir: str = Field(default="var/data", alias="DATA_DIR")
    files_dir: str = Field(default="var/files", alias="FILES_DIR")
    store_lock_timeout_s: float = Field(default=10.0, alias="STORE_LOCK_TIMEOUT")
    employee_delete_cascade: bool = Field(default=False, alias="EMPLOYEE_DELETE_CASCADE")

    # JWT
    jwt_secret: str = Field(default="change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256")
    jwt_ttl_seconds: int = Field(default=60 * 60 * 24, alias="JWT_TTL")  # 1 day

    # Credentials
    password_rounds: int = Field(default=29000, alias="PASSWORD_ROUNDS")
    reset_token_ttl_hours: int = Field(default=24, alias="RESET_TOKEN_TTL_HOURS")

    # Storage
    storage_provider: str = Field(default="local", alias="STORAGE_PROVIDER")
    azure_blob_connection: Optional[str] = Field(default=None, alias="AZURE_BLOB_CONNECTION")
    azure_blob_container: Optional[str] = Field(default=None, alias="AZURE_BLOB_CONTAINER")

    # Exports
    font_dir: Optional[str] = Field(default=None, alias="FONT_DIR")

    # Mail / Public
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    smtp_host: Optional[str] = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: Optional[str] = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(default=None, alias="SMTP_PASSWORD")
    smtp_tls: bool = Field(default=True, alias="SMTP_TLS")
    mail_from: Optional[str] = Field(default=None, alias="MAIL_FROM")

    # Rate limit
    rate_limit: str = Field(default="100/minute")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


settings = Settings()
