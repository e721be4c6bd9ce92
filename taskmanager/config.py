from pathlib import Path
import os

from dotenv import load_dotenv

# Load environment variables from the repo root and the package directory (if present).
REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskmanager.db")
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "10"))

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
CORS_ORIGINS = [origin.strip() for origin in _cors_origins.split(",") if origin.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR") or None

# Mail transport (SendGrid). Without an API key emails are only logged.
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY") or None
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@taskmanager.com")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL") or None
MAIL_TIMEOUT_SECONDS = float(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

# Deadline scheduler
DEADLINE_CHECK_INTERVAL_SECONDS = float(os.getenv("DEADLINE_CHECK_INTERVAL_SECONDS", str(60 * 60)))
DEADLINE_WINDOW_HOURS = float(os.getenv("DEADLINE_WINDOW_HOURS", "24"))
DEADLINE_SCAN_BATCH_LIMIT = int(os.getenv("DEADLINE_SCAN_BATCH_LIMIT", "1000"))
DEADLINE_RENOTIFY_EVERY_SCAN = _env_bool("DEADLINE_RENOTIFY_EVERY_SCAN")

# Notification retention
NOTIFICATION_RETENTION_DAYS = float(os.getenv("NOTIFICATION_RETENTION_DAYS", "7"))
NOTIFICATION_CLEANUP_INTERVAL_SECONDS = float(
    os.getenv("NOTIFICATION_CLEANUP_INTERVAL_SECONDS", str(24 * 60 * 60))
)
