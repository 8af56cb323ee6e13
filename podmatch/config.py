"""
Centralized configuration — env vars, pipeline constants, upstream timeouts.
"""
import os

from dotenv import load_dotenv

load_dotenv()


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI (embeddings) ───────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
EMBEDDING_MODEL = 'text-embedding-3-small'
EMBEDDING_DIMENSIONS = 1536

# ── Anthropic (quality filter, compatibility scoring) ───────────────────────
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY')
LLM_MODEL = 'claude-haiku-4-5-20251001'

# ── Podscan ───────────────────────────────────────────────────────────────────
PODSCAN_API_KEY = os.getenv('PODSCAN_API_KEY')
PODSCAN_API_URL = os.getenv('PODSCAN_API_URL', 'https://podscan.fm/api/v1')

# ── Google Sheets ─────────────────────────────────────────────────────────────
GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv('GOOGLE_SERVICE_ACCOUNT_JSON')
GOOGLE_WORKSPACE_USER_EMAIL = os.getenv('GOOGLE_WORKSPACE_USER_EMAIL')
GOOGLE_SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive',
]

# ── Matching pipeline ─────────────────────────────────────────────────────────
BIO_MAX_CHARS = 1000
PODCAST_DESCRIPTION_MAX_CHARS = 500
MIN_EMBEDDING_TEXT_CHARS = 10
MATCH_THRESHOLD = 0.2
MATCH_COUNT = 100
LLM_CANDIDATE_POOL = 50
LLM_DESCRIPTION_MAX_CHARS = 200
TARGET_RESULTS = 15

# ── Spreadsheet layout ────────────────────────────────────────────────────────
# Row 1 is a header; the podcast identifier lives in column E.
SHEET_ID_COLUMN = 5
SHEET_HEADER_ROWS = 1

# ── Cache ─────────────────────────────────────────────────────────────────────
STALE_AFTER_DAYS = 7
CLEANUP_AFTER_DAYS = 30
CREDITS_PER_PODCAST_FETCH = 2
COST_PER_API_CALL = 0.01

# ── Upstream timeouts (seconds) ───────────────────────────────────────────────
EMBEDDING_TIMEOUT = float(os.getenv('EMBEDDING_TIMEOUT', '30'))
LLM_TIMEOUT = float(os.getenv('LLM_TIMEOUT', '45'))
SHEETS_TIMEOUT = float(os.getenv('SHEETS_TIMEOUT', '20'))
PODSCAN_TIMEOUT = float(os.getenv('PODSCAN_TIMEOUT', '15'))

# ── Ingest ────────────────────────────────────────────────────────────────────
INGEST_UPSERT_BATCH = 100
INGEST_MAX_RETRIES = 3


def require_config(*names):
    """Raise ConfigurationError naming every listed setting that is empty.

    Values are read from this module at call time so tests can patch them.
    """
    from podmatch.errors import ConfigurationError

    module = globals()
    missing = [name for name in names if not module.get(name)]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")
