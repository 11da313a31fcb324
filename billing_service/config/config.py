from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class BillplzConfig(BaseModel):
    """Billplz connection settings needed by the gateway client"""

    api_key: str
    collection_id: str
    base_url: str
    callback_url: str
    redirect_url: str
    timeout: float = 10.0


class SmtpConfig(BaseModel):
    """SMTP settings needed by the email client"""

    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str


class Config(BaseSettings):
    """Config settings for billing service"""

    # Billplz
    BILLPLZ_API_KEY: str
    BILLPLZ_COLLECTION_ID: str
    BILLPLZ_BASE_URL: str = "https://www.billplz-sandbox.com/api/v3"
    BILLPLZ_CALLBACK_URL: str = "http://localhost:8000/payments/callback"
    BILLPLZ_REDIRECT_URL: str = "http://localhost:8000/payment-success"
    BILLPLZ_X_SIGNATURE_KEY: Optional[str] = None
    BILLPLZ_VERIFY_SIGNATURE: bool = True
    BILLPLZ_TIMEOUT: float = 10.0
    BILL_DUE_DAYS: int = 7

    # Postgres
    POSTGRES_HOST: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "billing"
    DATABASE_URL_OVERRIDE: Optional[str] = None

    # Email (SMTP)
    EMAIL_HOST: Optional[str] = None
    EMAIL_PORT: Optional[int] = None
    EMAIL_USERNAME: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    EMAIL_FROM: str = "noreply@autoanywhere.com"

    # HTTP
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    @property
    def DATABASE_URL(self) -> str:
        """Method to return Database URL"""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}/{self.POSTGRES_DB}"

    @property
    def billplz_config(self) -> BillplzConfig:
        """Method to return Billplz Config"""
        return BillplzConfig(
            api_key=self.BILLPLZ_API_KEY,
            collection_id=self.BILLPLZ_COLLECTION_ID,
            base_url=self.BILLPLZ_BASE_URL,
            callback_url=self.BILLPLZ_CALLBACK_URL,
            redirect_url=self.BILLPLZ_REDIRECT_URL,
            timeout=self.BILLPLZ_TIMEOUT,
        )

    @property
    def smtp_config(self) -> SmtpConfig:
        """Method to return SMTP Config"""
        return SmtpConfig(
            host=self.EMAIL_HOST,
            port=self.EMAIL_PORT,
            username=self.EMAIL_USERNAME,
            password=self.EMAIL_PASSWORD,
            sender=self.EMAIL_FROM,
        )

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent.parent / ".env.billing",
        env_file_encoding="utf-8",
        extra="ignore",
    )


config = Config()
