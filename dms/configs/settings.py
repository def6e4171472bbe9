from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    APP_NAME: str = "DMS"
    APP_ENV: Literal["dev", "prod", "test"] = "dev"
    APP_DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_prefix="APP_")


class CORSSettings(BaseSettings):
    CORS_ORIGINS: list[str] = ["http://localhost:3001", "http://127.0.0.1:3001"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: list[str] = ["*"]
    CORS_HEADERS: list[str] = ["*"]
    CORS_EXPOSE_HEADERS: list[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CORS_")


class MongoSettings(BaseSettings):
    MONGO_HOST: str = ""
    MONGO_PORT: int = 27017
    MONGO_DB: str = "dms"
    MONGO_USER: str = ""
    MONGO_PWD: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MONGO_")

    @property
    def MONGO_URL(self) -> str:
        host = self.MONGO_HOST or "localhost"
        port = self.MONGO_PORT or 27017
        if self.MONGO_USER and self.MONGO_PWD:
            return f"mongodb://{self.MONGO_USER}:{self.MONGO_PWD}@{host}:{port}"
        return f"mongodb://{host}:{port}"


class SentrySettings(BaseSettings):
    SENTRY_DSN: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_PROFILES_SAMPLE_RATE: float = 0.0
    SENTRY_SEND_DEFAULT_PII: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SENTRY_")


class AuthSettings(BaseSettings):
    AUTH_JWKS_URL: str = ""
    AUTH_ISSUER: str = ""
    AUTH_AUDIENCE: str | None = None
    AUTH_ALGORITHMS: list[str] = ["RS256"]

    model_config = SettingsConfigDict(env_file=".env", env_prefix="AUTH_")


class MinioSettings(BaseSettings):
    MINIO_URL: str = ""
    MINIO_ACCESS_KEY: str = ""
    MINIO_SECRET_KEY: str = ""
    MINIO_BUCKET: str = "dms-documents"
    MINIO_REGION: str | None = None

    @property
    def MINIO_SSL(self) -> bool:
        return self.MINIO_URL.startswith("https://")

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MINIO_")


class UploadSettings(BaseSettings):
    UPLOAD_MAX_FILE_SIZE_MB: int = 100
    UPLOAD_ALLOWED_FILE_TYPES: list[str] = [
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt",
        "jpg", "jpeg", "png", "gif", "csv", "json", "xml",
    ]
    UPLOAD_URL_EXPIRES_IN: int = 3600

    model_config = SettingsConfigDict(env_file=".env", env_prefix="UPLOAD_")


class StorageQuotaSettings(BaseSettings):
    QUOTA_DEFAULT_STORAGE_LIMIT: int = 5 * 1024 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", env_prefix="QUOTA_")


class Settings(AppSettings, CORSSettings, MongoSettings, SentrySettings, AuthSettings, MinioSettings, UploadSettings, StorageQuotaSettings):
    RELEASE: str | None = None
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    model_config = SettingsConfigDict(env_file=".env", env_prefix="")


settings = Settings()
