"""
Enrichment: page text, contact signals and the two-tier intent verdict.

For each surviving search result:
  1. fetch the landing page (skipped for social hosts, where the page is a
     login wall); failures fall back to title + snippet only
  2. pull emails and social profile links out of the combined text
  3. run the heuristic classifier, then escalate to the LLM tier when the
     cheap verdict is weak or the lead scores high

Neither network call is allowed to fail the pass.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit

import requests
from bs4 import BeautifulSoup

from leadloop.config import LLM_API_KEY, PAGE_FETCH_TIMEOUT, PAGE_TEXT_MAX_CHARS
from leadloop.pipeline.entity_resolution import PLATFORM_HOSTS
from leadloop.pipeline.intent import IntentVerdict, classify_intent

logger = logging.getLogger('pipeline.enrichment')

SOCIAL_HOST_HINTS = PLATFORM_HOSTS

SOCIAL_PLATFORMS = [
    ('INSTAGRAM', ('instagram.com',)),
    ('TIKTOK', ('tiktok.com',)),
    ('YOUTUBE', ('youtube.com', 'youtu.be')),
    ('LINKEDIN', ('linkedin.com',)),
    ('X', ('twitter.com', 'x.com')),
]

MAX_EMAILS = 10
MAX_SOCIALS = 10

# Escalation policy
MIN_HEURISTIC_CHARS = 40
MIN_ESCALATION_CHARS = 80
HIGH_SCORE_ESCALATION = 75
STRONG_CONFIDENCE = 0.6

_EMAIL_RE = re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE)
_URL_RE = re.compile(r'https?://[^\s"\'<>]+', re.IGNORECASE)

_session = requests.Session()
_session.headers.update({'User-Agent': 'Mozilla/5.0 (compatible; leadloop/1.0)'})


@dataclass
class Enrichment:
    page_text: Optional[str] = None
    emails: List[str] = field(default_factory=list)
    socials: List[Dict[str, str]] = field(default_factory=list)
    verdict: Optional[IntentVerdict] = None


def _unique(items):
    return list(dict.fromkeys(items))


def should_fetch_page(url: str) -> bool:
    try:
        host = (urlsplit(url).hostname or '').lower()
    except ValueError:
        return False
    if not host:
        return False
    return not any(h in host for h in SOCIAL_HOST_HINTS)


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html or '', 'html.parser')
    for tag in soup(['script', 'style']):
        tag.decompose()
    return ' '.join(soup.get_text(' ').split())


def _get_page(url):
    resp = _session.get(url, timeout=PAGE_FETCH_TIMEOUT, allow_redirects=True)
    resp.raise_for_status()
    return resp.text


def fetch_page_text(url: str) -> str:
    """GET a page through the page_fetch breaker and return its visible text."""
    from leadloop.services.circuit_breaker import get_breaker
    html = get_breaker('page_fetch').call(_get_page, url)
    return html_to_text(html)[:PAGE_TEXT_MAX_CHARS]


def extract_emails(text: str) -> List[str]:
    return _unique(m.lower() for m in _EMAIL_RE.findall(text or ''))[:MAX_EMAILS]


def extract_socials(text: str) -> List[Dict[str, str]]:
    out = []
    for url in _unique(_URL_RE.findall(text or '')):
        lower = url.lower()
        for platform, hosts in SOCIAL_PLATFORMS:
            if any(h in lower for h in hosts):
                out.append({'platform': platform, 'url': url})
                break
    return out[:MAX_SOCIALS]


# ── Two-tier intent ──────────────────────────────────────────────────────────

def is_weak_verdict(verdict: Optional[IntentVerdict]) -> bool:
    return (
        verdict is None
        or verdict.intent_class == 'AMBIGUOUS'
        or verdict.confidence < STRONG_CONFIDENCE
        or not verdict.proof_ok
        or verdict.role_mismatch
    )


def escalation_tier(verdict: Optional[IntentVerdict], score_hint: Optional[int]) -> str:
    if score_hint is not None and score_hint >= HIGH_SCORE_ESCALATION:
        return 'smart'
    if verdict is not None and (verdict.intent_class == 'AMBIGUOUS' or not verdict.proof_ok):
        return 'smart'
    return 'fast'


def classify_intent_with_escalation(text: str, score_hint: Optional[int] = None,
                                    escalate: Optional[Callable[[str, str], IntentVerdict]] = None
                                    ) -> Optional[IntentVerdict]:
    """
    Heuristic verdict, replaced by the escalated one when escalation fires.

    escalate(text, cost_tier) defaults to the LLM classifier when an API key is
    configured; without one the heuristic verdict is final. Returns None for
    text too short to classify.
    """
    text = text or ''
    verdict = classify_intent(text) if len(text) >= MIN_HEURISTIC_CHARS else None

    if escalate is None and LLM_API_KEY:
        from leadloop.services.intent_llm import classify_with_llm
        escalate = classify_with_llm
    if escalate is None or len(text) < MIN_ESCALATION_CHARS:
        return verdict

    high_score = score_hint is not None and score_hint >= HIGH_SCORE_ESCALATION
    if not (is_weak_verdict(verdict) or high_score):
        return verdict

    tier = escalation_tier(verdict, score_hint)
    try:
        escalated = escalate(text, tier)
    except Exception as e:
        logger.warning("Intent escalation (%s) failed, keeping heuristic verdict: %s", tier, e)
        return verdict

    escalated.reasons = (verdict.reasons if verdict else []) + ['LLM'] + list(escalated.reasons)
    return escalated


def enrich_lead(url: str, title: Optional[str] = None, snippet: Optional[str] = None,
                lead_score: Optional[int] = None,
                fetch: Optional[Callable[[str], str]] = None,
                escalate: Optional[Callable[[str, str], IntentVerdict]] = None) -> Enrichment:
    base_text = f"{title or ''}\n{snippet or ''}".strip()
    page_text = None

    if should_fetch_page(url):
        try:
            page_text = (fetch or fetch_page_text)(url)
        except Exception as e:
            logger.info("Page fetch failed for %s, using snippet only: %s", url, e)

    combined = f"{base_text}\n{page_text or ''}".strip()
    return Enrichment(
        page_text=page_text,
        emails=extract_emails(combined),
        socials=extract_socials(combined),
        verdict=classify_intent_with_escalation(combined, lead_score, escalate),
    )
