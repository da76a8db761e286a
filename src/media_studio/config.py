"""
Central configuration module for AI Media Studio
Reads and validates environment variables with strict checks for production
"""
import os
import sys
from typing import Optional, List, Dict

# Load environment variables from .env file if it exists (dev only)
try:
    from dotenv import load_dotenv
    if os.getenv("ENV", "dev").lower() == "dev":
        load_dotenv()
except ImportError:
    pass


def _parse_bank_accounts(raw: str) -> List[Dict[str, str]]:
    """
    Parse BANK_ACCOUNTS ("name|account|owner;name|account|owner")

    Malformed entries are skipped.
    """
    accounts = []
    for entry in raw.split(";"):
        parts = [p.strip() for p in entry.split("|")]
        if len(parts) != 3 or not all(parts):
            continue
        accounts.append({"name": parts[0], "account": parts[1], "owner": parts[2]})
    return accounts


class Config:
    """Central configuration class with environment variable validation"""

    # Environment
    ENV: str = os.getenv("ENV", "dev").lower()

    # Required for all environments
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    PORT: int = int(os.getenv("PORT", "8000"))
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000")
    # Base URL prepended to locally stored artifacts so vendors can fetch them
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

    CORS_ORIGINS: List[str] = []

    # Vendor APIs
    FAL_API_KEY: Optional[str] = os.getenv("FAL_API_KEY")
    FAL_QUEUE_URL: str = os.getenv("FAL_QUEUE_URL", "https://queue.fal.run")
    AIVIDEO_API_KEY: Optional[str] = os.getenv("AIVIDEO_API_KEY")
    AIVIDEO_API_URL: str = os.getenv("AIVIDEO_API_URL", "https://api.aivideoapi.com")
    AZURE_SPEECH_KEY: Optional[str] = os.getenv("AZURE_SPEECH_KEY")
    AZURE_SPEECH_REGION: str = os.getenv("AZURE_SPEECH_REGION", "eastus")
    VENDOR_REQUEST_TIMEOUT: float = float(os.getenv("VENDOR_REQUEST_TIMEOUT", "30"))

    # Job polling policy (seconds)
    POLL_INITIAL_INTERVAL: float = float(os.getenv("POLL_INITIAL_INTERVAL", "2"))
    POLL_MAX_INTERVAL: float = float(os.getenv("POLL_MAX_INTERVAL", "15"))
    POLL_BACKOFF_FACTOR: float = float(os.getenv("POLL_BACKOFF_FACTOR", "1.5"))
    POLL_TIMEOUT: float = float(os.getenv("POLL_TIMEOUT", "600"))

    # Storage
    STORAGE_PROVIDER: str = os.getenv("STORAGE_PROVIDER", "local").lower()
    STORAGE_PATH: str = os.getenv("STORAGE_PATH", "./storage")
    # Outside the public /storage mount; payment screenshots live here
    PRIVATE_STORAGE_PATH: str = os.getenv("PRIVATE_STORAGE_PATH", STORAGE_PATH.rstrip("/") + "_private")
    S3_BUCKET_NAME: Optional[str] = os.getenv("S3_BUCKET_NAME")
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))

    # Credits granted to new accounts
    DEFAULT_IMAGE_CREDITS: int = int(os.getenv("DEFAULT_IMAGE_CREDITS", "100"))
    DEFAULT_VIDEO_CREDITS: int = int(os.getenv("DEFAULT_VIDEO_CREDITS", "50"))

    # Offline payment accounts shown to users
    BANK_ACCOUNTS: List[Dict[str, str]] = _parse_bank_accounts(os.getenv("BANK_ACCOUNTS", ""))

    # Build version (set during build/deploy)
    BUILD_VERSION: str = os.getenv("BUILD_VERSION", "dev")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __init__(self):
        """Initialize configuration and validate required variables"""
        self._load_cors_origins()
        self._validate()

    def _load_cors_origins(self):
        """Load CORS origins from environment variable"""
        default_origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
        ]

        cors_env = os.getenv("CORS_ORIGINS", "")
        if cors_env:
            env_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
            self.CORS_ORIGINS = default_origins + env_origins
        else:
            self.CORS_ORIGINS = default_origins

    def _validate(self):
        """Validate required configuration based on environment"""
        errors = []

        if self.ENV not in ["dev", "test", "staging", "prod"]:
            errors.append(f"Invalid ENV value: {self.ENV}. Must be 'dev', 'test', 'staging', or 'prod'")

        if not self.SECRET_KEY:
            errors.append("SECRET_KEY is required but not set")
        elif len(self.SECRET_KEY) < 32:
            errors.append(f"SECRET_KEY must be at least 32 characters (current: {len(self.SECRET_KEY)})")

        if not self.DATABASE_URL:
            errors.append("DATABASE_URL is required but not set")
        elif self.ENV in ["staging", "prod"] and not self.DATABASE_URL.startswith("postgresql"):
            errors.append("DATABASE_URL must be a PostgreSQL connection string in staging/production")

        if self.STORAGE_PROVIDER not in ["local", "s3"]:
            errors.append(f"STORAGE_PROVIDER must be 'local' or 's3' (got: {self.STORAGE_PROVIDER})")
        elif self.STORAGE_PROVIDER == "s3" and not self.S3_BUCKET_NAME:
            errors.append("S3_BUCKET_NAME is required when STORAGE_PROVIDER=s3")

        if self.POLL_INITIAL_INTERVAL <= 0 or self.POLL_MAX_INTERVAL < self.POLL_INITIAL_INTERVAL:
            errors.append("POLL_MAX_INTERVAL must be >= POLL_INITIAL_INTERVAL > 0")
        if self.POLL_BACKOFF_FACTOR < 1:
            errors.append("POLL_BACKOFF_FACTOR must be >= 1")

        if self.ENV in ["staging", "prod"]:
            if not self.PUBLIC_BASE_URL.startswith("https://"):
                errors.append("PUBLIC_BASE_URL must use HTTPS in staging/production")
            if not self.FAL_API_KEY:
                errors.append("FAL_API_KEY is required in staging/production")

        # Fail fast in staging/prod
        if errors and self.ENV in ["staging", "prod"]:
            print("=" * 60, file=sys.stderr)
            print("CONFIGURATION VALIDATION FAILED", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            sys.exit(1)

        if errors and self.ENV == "dev":
            print("=" * 60, file=sys.stderr)
            print("CONFIGURATION WARNINGS (dev mode - continuing)", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode"""
        return self.ENV == "dev"

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode"""
        return self.ENV == "prod"

    def get_database_url(self) -> str:
        """Get database URL, falling back to a local SQLite file in dev/test"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return "sqlite:///./media_studio.db"


# Create global config instance
config = Config()
