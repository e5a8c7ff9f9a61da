"""
Escalated intent classifier: OpenAI-compatible chat completion.

Called only when the heuristic verdict is weak or the lead scores high. The
response is treated as untrusted: anything missing or out of range is
defaulted or clamped in parse_llm_verdict() before it becomes an IntentVerdict.
"""
import json
import logging

from leadloop.config import LLM_MODEL_FAST, LLM_MODEL_SMART
from leadloop.extensions import llm_client as client
from leadloop.pipeline.intent import IntentVerdict, INTENT_CLASSES

logger = logging.getLogger('services.intent_llm')

MAX_INPUT_CHARS = 12000
MAX_PROOF_LINES = 5
MAX_REASONS = 12

SYSTEM_PROMPT = (
    'You are a lead qualification classifier. Return only valid JSON.\n'
    'Task: classify whether the text represents a BUYER looking to hire video editing help, '
    'a SELLER offering services, or AMBIGUOUS.\n'
    'Also extract 1-5 proofLines that justify the classification, and evaluate proofOk '
    '(buyer ask + editing role) and roleMismatch (hiring for non-editing roles).\n'
    'Return schema:\n'
    '{"intentClass":"BUYER|SELLER|AMBIGUOUS","confidence":0-1,"proofLines":string[],'
    '"proofOk":boolean,"roleMatch":boolean,"roleMismatch":boolean,'
    '"buyerScore":0-10,"sellerScore":0-10,"reasons":string[]}'
)


def _chat_completion(**kwargs):
    """Route chat completion through the LLM circuit breaker."""
    from leadloop.services.circuit_breaker import get_breaker
    if client is None:
        raise RuntimeError('LLM client not configured (LLM_API_KEY missing)')
    cb = get_breaker('llm')
    return cb.call(client.chat.completions.create, **kwargs)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _clamp(value, lo, hi, default):
    if not _is_number(value):
        return default
    return max(lo, min(hi, value))


def _string_list(value, limit):
    if not isinstance(value, list):
        return []
    return [str(item) for item in value][:limit]


def parse_llm_verdict(content) -> IntentVerdict:
    """Turn raw model output into an IntentVerdict, defaulting every bad field."""
    try:
        parsed = json.loads(content or '')
    except (TypeError, ValueError):
        logger.warning("LLM verdict was not valid JSON, using empty payload")
        parsed = {}
    if not isinstance(parsed, dict):
        parsed = {}

    intent_class = parsed.get('intentClass')
    if intent_class not in INTENT_CLASSES:
        intent_class = 'AMBIGUOUS'

    return IntentVerdict(
        intent_class=intent_class,
        confidence=_clamp(parsed.get('confidence'), 0.0, 1.0, 0.5),
        buyer_score=_clamp(parsed.get('buyerScore'), 0, 10, 0),
        seller_score=_clamp(parsed.get('sellerScore'), 0, 10, 0),
        reasons=_string_list(parsed.get('reasons'), MAX_REASONS),
        proof_lines=_string_list(parsed.get('proofLines'), MAX_PROOF_LINES),
        proof_ok=bool(parsed.get('proofOk')),
        role_match=bool(parsed.get('roleMatch')),
        role_mismatch=bool(parsed.get('roleMismatch')),
    )


def classify_with_llm(text: str, cost_tier: str = 'fast') -> IntentVerdict:
    """
    One escalated classification call.

    cost_tier 'smart' uses the larger model, anything else the fast one.
    Errors (transport, timeout, open circuit) propagate; the caller keeps the
    heuristic verdict.
    """
    model = LLM_MODEL_SMART if cost_tier == 'smart' else LLM_MODEL_FAST
    response = _chat_completion(
        model=model,
        messages=[
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': f"TEXT:\n{(text or '')[:MAX_INPUT_CHARS]}"},
        ],
        temperature=0,
        max_tokens=600,
        response_format={'type': 'json_object'},
    )
    content = response.choices[0].message.content
    logger.debug("LLM verdict (%s/%s): %s", cost_tier, model, (content or '')[:200])
    return parse_llm_verdict(content)
