import os


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/rooms_booking.db")

# JWT configuration
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-meeting-room-secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# One-time links
RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60"))
ACTIVATION_TOKEN_EXPIRE_HOURS = int(os.getenv("ACTIVATION_TOKEN_EXPIRE_HOURS", "72"))
BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:8000")

# Attachments
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
ALLOWED_UPLOAD_EXTENSIONS = (".pdf", ".docx", ".ppt", ".pptx", ".jpg", ".jpeg", ".png")

# Recurrence
MAX_OCCURRENCES = int(os.getenv("MAX_OCCURRENCES", "366"))

# Reminders
REMINDERS_ENABLED = _env_bool("REMINDERS_ENABLED", True)
REMINDER_INTERVAL_SECONDS = int(os.getenv("REMINDER_INTERVAL_SECONDS", "120"))
REMINDER_LOOKAHEAD_DAYS = 7
DEFAULT_REMINDER_MINUTES = 15

# Working day used for slot search
DAY_START_HOUR = 8
DAY_END_HOUR = 18

# Seeded on first start
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@company.com")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
