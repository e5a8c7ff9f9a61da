"""
Centralized configuration: all env vars, run tuning constants, lead statuses.
"""
import os


def _csv(name, default=''):
    """Comma-separated env var → list of lowercased, non-empty items."""
    raw = os.getenv(name, default) or ''
    return [item.strip().lower() for item in raw.split(',') if item.strip()]


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Escalated intent classifier (any OpenAI-compatible endpoint) ─────────────
LLM_API_KEY = os.getenv('LLM_API_KEY')
LLM_BASE_URL = os.getenv('LLM_BASE_URL', 'https://api.groq.com/openai/v1')
LLM_MODEL_FAST = os.getenv('LLM_MODEL_FAST', 'llama-3.1-8b-instant')
LLM_MODEL_SMART = os.getenv('LLM_MODEL_SMART', 'llama-3.3-70b-versatile')
LLM_TIMEOUT = float(os.getenv('LLM_TIMEOUT', '20'))

# ── Search providers ─────────────────────────────────────────────────────────
SEARCH_PROVIDER = os.getenv('SEARCH_PROVIDER', 'mock').strip().lower()
SEARCH_FALLBACK = (os.getenv('SEARCH_FALLBACK') or '').strip().lower() or None

# ── Page enrichment ──────────────────────────────────────────────────────────
PAGE_FETCH_TIMEOUT = float(os.getenv('PAGE_FETCH_TIMEOUT', '10'))
PAGE_TEXT_MAX_CHARS = 20000

# ── Run tuning ───────────────────────────────────────────────────────────────
MAX_RUN_QUERIES = int(os.getenv('MAX_RUN_QUERIES', '5'))
MAX_RESULTS_PER_QUERY = int(os.getenv('MAX_RESULTS_PER_QUERY', '10'))
MIN_SCORE_QUALIFIED = int(os.getenv('MIN_SCORE_QUALIFIED', '50'))
RUN_CONCURRENCY = int(os.getenv('RUN_CONCURRENCY', '1'))
RUN_JOB_TIMEOUT = int(os.getenv('RUN_JOB_TIMEOUT', '3600'))
OUTREACH_PRINT_LIMIT = int(os.getenv('OUTREACH_PRINT_LIMIT', '20'))

# A query is switched off once it has this many runs and a win rate below the cap
QUERY_AUTO_DISABLE_MIN_RUNS = int(os.getenv('QUERY_AUTO_DISABLE_MIN_RUNS', '20'))
QUERY_AUTO_DISABLE_MAX_WIN_RATE = float(os.getenv('QUERY_AUTO_DISABLE_MAX_WIN_RATE', '0.05'))

# ── Outreach / UTM ───────────────────────────────────────────────────────────
ORDER_PAGE_URL = os.getenv('ORDER_PAGE_URL')
UTM_SOURCE_DEFAULT = os.getenv('UTM_SOURCE_DEFAULT', 'leadloop')
UTM_MEDIUM_DEFAULT = os.getenv('UTM_MEDIUM_DEFAULT', 'outreach')
UTM_CAMPAIGN_DEFAULT = os.getenv('UTM_CAMPAIGN_DEFAULT', 'buyer_intent')

# ── Blocklists ───────────────────────────────────────────────────────────────
BLOCKLIST_DOMAINS = _csv('BLOCKLIST_DOMAINS')
BLOCKLIST_KEYWORDS = _csv('BLOCKLIST_KEYWORDS')

# ── Auth ─────────────────────────────────────────────────────────────────────
WEBHOOK_SECRET = os.getenv('WEBHOOK_SECRET')

# ── Lead lifecycle ───────────────────────────────────────────────────────────
LEAD_STATUSES = [
    'NEW',
    'OUTREACH_READY',
    'REVIEW',
    'REJECTED',
    'WON',
    'LOST',
]

# ── Search run status values ─────────────────────────────────────────────────
RUN_STATUSES = [
    'RUNNING',
    'FINISHED',
    'FAILED',
]

OUTCOMES = ('WON', 'LOST')


def validate_config():
    """
    Fail fast on missing settings before a run does any work.

    The search provider checks its own credentials; this covers the settings
    every run needs regardless of provider.
    """
    from leadloop.errors import ConfigurationError

    if not DATABASE_URL:
        raise ConfigurationError('DATABASE_URL is not set')
    if not SEARCH_PROVIDER:
        raise ConfigurationError('SEARCH_PROVIDER is not set')
    if MAX_RUN_QUERIES < 1:
        raise ConfigurationError(f'MAX_RUN_QUERIES must be >= 1 (got {MAX_RUN_QUERIES})')
    if RUN_CONCURRENCY < 1:
        raise ConfigurationError(f'RUN_CONCURRENCY must be >= 1 (got {RUN_CONCURRENCY})')
