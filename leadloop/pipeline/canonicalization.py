"""
URL canonicalization: one stable string (and its SHA-256) per lead.

Different URLs for the same post (tracking params, twitter.com vs x.com,
reddit slugs, fragments) collapse to the same canonical form, and the hash of
that form is the dedup key for leads. Marketplace and job-board URLs come back
rejected. Unparsable input is also rejected rather than raised.

canonicalize() is idempotent: feeding its canonical_url back in returns the
same canonical_url.
"""
import hashlib
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit, parse_qsl, urlencode

JOB_BOARD_HOSTS = {
    'upwork.com', 'www.upwork.com',
    'fiverr.com', 'www.fiverr.com',
    'freelancer.com', 'www.freelancer.com',
}

# Matched against the lowercased param name
TRACKING_PREFIXES = ('utm_', 'ref', 'trk', 'igshid', 'fbclid')
TRACKING_EXACT = {'s', 't'}

_REDDIT_POST = re.compile(r'/comments/([a-z0-9]+)', re.IGNORECASE)
_X_STATUS = re.compile(r'/(\w+)/status/(\d+)')


@dataclass
class CanonicalizationResult:
    canonical_url: str
    canonical_hash: str
    rejected: bool = False
    rejected_reason: Optional[str] = None


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def _result(canonical: str, reason: Optional[str] = None) -> CanonicalizationResult:
    return CanonicalizationResult(
        canonical_url=canonical,
        canonical_hash=sha256_hex(canonical),
        rejected=reason is not None,
        rejected_reason=reason,
    )


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith(TRACKING_PREFIXES) or lowered in TRACKING_EXACT


def _is_linkedin(host: str) -> bool:
    return host == 'linkedin.com' or host.endswith('.linkedin.com')


def _is_x(host: str) -> bool:
    return any(host == h or host.endswith('.' + h) for h in ('x.com', 'twitter.com'))


def canonicalize(url: str) -> CanonicalizationResult:
    """Normalize a raw result URL into its canonical identity."""
    raw = (url or '').strip()
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return _result(raw, 'INVALID_URL')

    host = (parts.hostname or '').lower()
    if not parts.scheme or not host:
        return _result(raw, 'INVALID_URL')

    scheme = parts.scheme.lower()
    path = parts.path or '/'
    origin = f'{scheme}://{host}'
    if port:
        origin = f'{origin}:{port}'

    if host in JOB_BOARD_HOSTS:
        return _result(f'{origin}{path}', 'JOB_BOARD')
    if _is_linkedin(host) and path.lower().startswith('/jobs'):
        return _result(f'{origin}{path}', 'JOB_BOARD')

    query = urlencode(
        [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not _is_tracking_param(k)]
    )

    if 'reddit.com' in host:
        m = _REDDIT_POST.search(path)
        if m:
            return _result(f'https://reddit.com/comments/{m.group(1)}')

    if _is_x(host):
        m = _X_STATUS.search(path)
        if m:
            return _result(f'https://x.com/{m.group(1)}/status/{m.group(2)}')
        origin = f'{scheme}://x.com'

    if _is_linkedin(host):
        return _result(f'{origin}{path}')

    canonical = f'{origin}{path}'
    if query:
        canonical = f'{canonical}?{query}'
    return _result(canonical)
