"""
Shared client instances: Redis and the OpenAI-compatible LLM client.

Importing this module is always safe (even when env vars are missing during
tests): redis.from_url() does not connect until first use and the LLM client
is only built when LLM_API_KEY is set.
"""
import logging
import redis

from leadloop.config import REDIS_URL, LLM_API_KEY, LLM_BASE_URL, LLM_TIMEOUT

logger = logging.getLogger('leadloop.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── LLM (OpenAI SDK pointed at an OpenAI-compatible endpoint) ───────────────
llm_client = None
if LLM_API_KEY:
    try:
        from openai import OpenAI
        llm_client = OpenAI(
            api_key=LLM_API_KEY,
            base_url=LLM_BASE_URL,
            timeout=LLM_TIMEOUT,
            max_retries=0,
        )
        logger.info("LLM client initialized (base_url=%s)", LLM_BASE_URL)
    except Exception as e:
        logger.error("Error initializing LLM client: %s", e)
else:
    logger.warning("LLM_API_KEY not set, intent escalation disabled")
