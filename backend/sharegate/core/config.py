import os
from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Explicitly load .env file before defining Settings
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), ".env")
load_dotenv(env_path)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Sharegate"
    API_V1_STR: str = "/api/v1"

    # Database
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./sharegate.db"

    # Security
    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    ALGORITHM: str = "HS256"

    # Storage (objects live in the blob store; this service only signs URLs for them)
    STORAGE_ROOT: str = os.path.join(os.getcwd(), "secure_files")
    SIGNED_URL_BASE: str = "http://127.0.0.1:8899/storage/secure-files"
    SIGNED_URL_TTL_SECONDS: int = 3600

    # Share links
    TOKEN_INSERT_RETRIES: int = 5
    MAX_TOKEN_LENGTH: int = 128

    # Rate limiting, evaluated over the download_attempts ledger
    IP_RATE_LIMIT: int = 20
    TOKEN_FAILURE_LIMIT: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 3600

    LOG_LEVEL: str = "INFO"
    # Comma separated string in env, parsed to list.
    CORS_ORIGINS_STR: str = "*"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        # Handle potential quote wrapping from env file parsing
        raw_str = self.CORS_ORIGINS_STR.strip('"\'')
        return [o.strip() for o in raw_str.split(",") if o.strip()]

    class Config:
        case_sensitive = True

settings = Settings()
