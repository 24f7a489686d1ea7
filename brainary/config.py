"""
Brainary — Configuration
All environment variables and constants. Single source of truth.
No other file reads os.environ directly.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ─── Paths ───────────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file if present (real environment wins)
load_dotenv(BASE_DIR / ".env", override=False)

# ─── API Keys ────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

# ─── Provider Selection ──────────────────────────────────────────────────────
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
# Options: openai

# ─── Database ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{BASE_DIR / 'brainary.db'}"
)
# Hosted Postgres often hands out "postgres://", which SQLAlchemy rejects
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Set RESET_DATABASE=true to drop all tables and recreate
RESET_DATABASE = os.getenv("RESET_DATABASE", "false").lower() == "true"

# ─── JWT / Auth ──────────────────────────────────────────────────────────────
JWT_SECRET = os.getenv("JWT_SECRET", "brainary-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "24"))
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit

# ─── LLM Settings ────────────────────────────────────────────────────────────
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4.1-mini")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1500"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.4"))

# ─── Exam Settings ───────────────────────────────────────────────────────────
EXAM_QUESTION_COUNT = int(os.getenv("EXAM_QUESTION_COUNT", "5"))
EXAM_DURATION_SECONDS = int(os.getenv("EXAM_DURATION_SECONDS", "300"))  # 5 minutes
OPTIONS_PER_QUESTION = 4
TICK_INTERVAL_SECONDS = 1.0

# Placeholder for unanswered questions at forced submission
NOT_ANSWERED = "Not Answered"

# ─── Difficulty Progression ──────────────────────────────────────────────────
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 43
PASS_MARK_PERCENT = 80
DEMOTION_FAIL_THRESHOLD = 3  # consecutive fails at current level

# ─── Subjects ────────────────────────────────────────────────────────────────
SUBJECTS = (
    # Primary
    "Reading & Writing",
    "Basic Math",
    # Core / Secondary
    "History",
    "Science",
    "Geography",
    "Literature",
    "Biology",
    "Chemistry",
    "Physics",
    # Languages
    "English Language",
    # TVET (Vocational)
    "Automotive Tech",
    "Electrical Wiring",
    # Advanced
    "Programming",
    "Calculus",
    "Economics",
    "Philosophy",
)

# ─── CORS ────────────────────────────────────────────────────────────────────
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# ─── Logging ─────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ─── Version ─────────────────────────────────────────────────────────────────
APP_NAME = "Brainary"
APP_VERSION = "1.0.0"
