import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

ENVIRONMENT = os.getenv("HACKHUB_ENV", "development")
IS_PRODUCTION = ENVIRONMENT == "production"

# DEV ONLY default. Always set HACKHUB_SECRET_KEY outside development.
SECRET_KEY = os.getenv("HACKHUB_SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE = timedelta(minutes=int(os.getenv("HACKHUB_TOKEN_MINUTES", str(60 * 24 * 7))))
BCRYPT_ROUNDS = int(os.getenv("HACKHUB_BCRYPT_ROUNDS", "12"))

# Relational store
DATABASE_URL = os.getenv("HACKHUB_DATABASE_URL", f"sqlite:///{BASE_DIR}/hackhub.db")
DB_POOL_SIZE = int(os.getenv("HACKHUB_DB_POOL_SIZE", "10"))
DB_POOL_TIMEOUT = int(os.getenv("HACKHUB_DB_POOL_TIMEOUT", "60"))

# Document store
MONGO_URI = os.getenv("HACKHUB_MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("HACKHUB_MONGO_DB", "hackhub")

# Startup connection retry (skipped in production)
STARTUP_RETRY_ATTEMPTS = int(os.getenv("HACKHUB_STARTUP_RETRIES", "5"))
STARTUP_RETRY_DELAY = float(os.getenv("HACKHUB_STARTUP_RETRY_DELAY", "5.0"))

CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]
if os.getenv("HACKHUB_FRONTEND_ORIGIN"):
    CORS_ORIGINS.append(os.environ["HACKHUB_FRONTEND_ORIGIN"])

LOG_LEVEL = os.getenv("HACKHUB_LOG_LEVEL", "INFO")

# Team policy
TEAM_NAME_MIN_LENGTH = 2
TEAM_NAME_MAX_LENGTH = 50
MAX_TEAM_SIZE_CAP = 10

# Paging
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
CHAT_PAGE_SIZE = 20
ENROLLMENT_PAGE_SIZE = 20
BULK_CERTIFICATE_LIMIT = 100
