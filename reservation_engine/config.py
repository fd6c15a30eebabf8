import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

# Empty DB_SCHEMA disables schema qualification (SQLite has no schemas)
SCHEMA: str | None = os.getenv("DB_SCHEMA", "reservations") or None

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
]

# Bounded wait for the per-(resource, date) lock before answering Busy
LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))

REFUND_SERVICE_URL = os.getenv("REFUND_SERVICE_URL")
NOTIFICATION_SERVICE_URL = os.getenv("NOTIFICATION_SERVICE_URL")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "5"))

REFUND_MAX_RETRIES = int(os.getenv("REFUND_MAX_RETRIES", "3"))
NOTIFY_MAX_RETRIES = int(os.getenv("NOTIFY_MAX_RETRIES", "0"))
SIDE_EFFECT_BACKOFF_SECONDS = float(os.getenv("SIDE_EFFECT_BACKOFF_SECONDS", "1"))
SIDE_EFFECT_ACK_SECONDS = float(os.getenv("SIDE_EFFECT_ACK_SECONDS", "0.5"))
SIDE_EFFECT_WORKERS = int(os.getenv("SIDE_EFFECT_WORKERS", "4"))
