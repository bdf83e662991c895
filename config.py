import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent
# Always load this project's root .env and let it override inherited shell vars.
load_dotenv(BASE_DIR / ".env", override=True)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _path_env(name: str, default_relative: str) -> Path:
    raw = os.getenv(name)
    path = Path(raw) if raw and raw.strip() else Path(default_relative)
    if not path.is_absolute():
        path = BASE_DIR / path
    return path.resolve()


# ── Paths ─────────────────────────────────────────────────
DB_PATH         = _path_env("DB_PATH", "database/classroomhq.db")
SCHEMA_PATH     = BASE_DIR / "database" / "schema.sql"
UPLOAD_DIR      = _path_env("UPLOAD_DIR", "uploads")
LOCAL_STORE_DIR = _path_env("LOCAL_STORE_DIR", "database/local_store")

# ── Web ───────────────────────────────────────────────────
DEV_SECRET_KEY = "classroomhq-dev-secret"
SECRET_KEY = os.getenv("SECRET_KEY") or DEV_SECRET_KEY
DASH_HOST  = os.getenv("DASH_HOST", "127.0.0.1")
DASH_PORT  = _int_env("DASH_PORT", 8787)
DASH_DEBUG = _bool_env("DASH_DEBUG", False)
LOG_LEVEL  = os.getenv("LOG_LEVEL", "INFO").upper()

# ── Ollama ────────────────────────────────────────────────
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "gpt-oss:20b")
OLLAMA_KEEP_ALIVE = os.getenv("OLLAMA_KEEP_ALIVE", "30m")
OLLAMA_NUM_CTX = _int_env("OLLAMA_NUM_CTX", 4096)
OLLAMA_TEMPERATURE = _float_env("OLLAMA_TEMPERATURE", 0.4)
OLLAMA_TOP_P = _float_env("OLLAMA_TOP_P", 0.9)
AI_TIMEOUT_SEC = _int_env("AI_TIMEOUT_SEC", 90)
AI_MAX_LESSON_CHARS = _int_env("AI_MAX_LESSON_CHARS", 12000)

# ── Uploads ───────────────────────────────────────────────
MAX_UPLOAD_MB     = _int_env("MAX_UPLOAD_MB", 10)
UPLOAD_CHUNK_SIZE = _int_env("UPLOAD_CHUNK_SIZE", 256 * 1024)

# ── App ───────────────────────────────────────────────────
APP_NAME = "ClassroomHQ"
STORAGE_KEY_PREFIX = "classroomhq"
RECENT_ITEMS_MAX = 20
RECENT_ITEMS_CLEANUP_DAYS = 30
QUIZ_MIN_QUESTIONS = 1
QUIZ_MAX_QUESTIONS = 10
QUIZ_DEFAULT_QUESTIONS = 5
DEFAULT_QUIZ_POINTS = 10
NOTIFICATION_PREVIEW_LIMIT = 10
FAVORITES_QUICK_ACCESS = 5
WORDS_PER_MINUTE = 200
