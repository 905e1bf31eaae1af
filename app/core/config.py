from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API Settings
    PROJECT_NAME: str = "Tally API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Obligation tracking and partial payment settlement API"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB (transactions need a replica set)
    MONGODB_URL: str = "mongodb://localhost:27017/?replicaSet=rs0"
    DATABASE_NAME: str = "tally"

    # Payment recording
    TRANSACTION_RETRIES: int = 1

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # JWT
    SECRET_KEY: str = "change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # File Upload
    MAX_FILE_SIZE: int = 10485760
    UPLOAD_DIR: str = "uploads"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
