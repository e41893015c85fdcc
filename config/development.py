import os

from config import env_flag

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classroom_attendance"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "1")
# Optional: also seed demo roster on startup
AUTO_SEED_DB = env_flag("AUTO_SEED_DB", "0")

# Swipe batches are teacher-curated; set to check every student against the class roster.
SWIPE_REQUIRE_ENROLLMENT = env_flag("SWIPE_REQUIRE_ENROLLMENT", "0")
ALLOW_CANCEL_TERMINAL_SESSIONS = env_flag("ALLOW_CANCEL_TERMINAL_SESSIONS", "0")
