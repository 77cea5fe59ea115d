from pydantic_settings import BaseSettings
from typing import List
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Mongo connection. MongoClient is lazy, so a wrong URL only fails on first query.
    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "livestockmart"

    JWT_SECRET: str = "change-this-secret-key-123"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    COOKIE_NAME: str = "token"
    ENVIRONMENT: str = "development"

    # Comma-separated list of emails that get the admin role.
    ADMIN_EMAILS: str = ""

    # Unpaid orders older than this are cancelled by the expiry sweep.
    PENDING_ORDER_EXPIRY_MINUTES: int = 60
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 300
    EXPIRY_SWEEP_ENABLED: bool = True

    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    UPI_ID: str = "sai.kambala@ybl"
    UPI_PAYEE_NAME: str = "LivestockMart"

    ALLOWED_ORIGINS: str = "*"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    @property
    def admin_emails(self) -> List[str]:
        return [e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()]

    @property
    def cookie_secure(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
