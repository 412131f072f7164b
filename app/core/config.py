import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME: str = "Loan Management System"
    MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "loan-management")
    MONGODB_TLS: bool = _env_bool("MONGODB_TLS", False)
    # Multi-document transactions need a replica set; standalone servers must leave this off
    MONGODB_USE_TRANSACTIONS: bool = _env_bool("MONGODB_USE_TRANSACTIONS", False)
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))
    CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:3000")

    # Annual percentage rate applied to every loan. Never returned to customers.
    FIXED_INTEREST_RATE: float = float(os.getenv("FIXED_INTEREST_RATE", "96"))
    DISPLAYED_INTEREST_RATE: str = os.getenv("DISPLAYED_INTEREST_RATE", "competitive")
    LATE_FEE_PERCENT_PER_DAY: float = float(os.getenv("LATE_FEE_PERCENT_PER_DAY", "1"))
    LATE_FEE_CAP_PERCENT: float = float(os.getenv("LATE_FEE_CAP_PERCENT", "20"))
    # Promote a borrower to verified when they apply and when their loan is approved
    AUTO_VERIFY_ON_LOAN: bool = _env_bool("AUTO_VERIFY_ON_LOAN", True)

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", os.path.join("uploads", "documents"))
    MAX_UPLOAD_SIZE: int = int(os.getenv("MAX_UPLOAD_SIZE", str(5 * 1024 * 1024)))

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()

if not settings.JWT_SECRET_KEY:
    logger.warning("JWT_SECRET_KEY is missing or empty; token issuance will fail")
