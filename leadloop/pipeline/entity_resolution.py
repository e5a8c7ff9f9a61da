"""
Entity resolution: map a lead's identity signals onto a known entity.

Precedence (each tier only consulted when the previous found nothing):
  1. exact email (case-insensitive)   → confidence 1.0
  2. exact domain (case-insensitive)  → confidence 0.9
  3. best fuzzy handle, similarity ≥ 0.8 → confidence 0.8

Handle matching is greedy nearest-neighbour over every candidate handle, not a
global assignment. When two entities tie on similarity the first candidate in
the list wins.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from rapidfuzz.distance import Levenshtein

HANDLE_MATCH_THRESHOLD = 0.8

# Shared platforms; their host is never a lead's own domain
PLATFORM_HOSTS = [
    'facebook.com', 'reddit.com', 'x.com', 'twitter.com',
    'youtube.com', 'youtu.be', 'tiktok.com', 'instagram.com',
]

_X_HANDLE = re.compile(r'^/(\w+)(?:/|$)')


@dataclass
class LeadIdentity:
    email: Optional[str] = None
    domain: Optional[str] = None
    handle: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class EntityCandidate:
    id: str
    emails: List[str] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    handles: Dict[str, str] = field(default_factory=dict)


@dataclass
class EntityMatch:
    entity_id: Optional[str]
    confidence: float
    reason: str  # EMAIL / DOMAIN / HANDLE / NONE


def normalize_handle(handle: Optional[str]) -> str:
    value = (handle or '').strip()
    if value.startswith('@'):
        value = value[1:]
    return value.lower()


def handle_similarity(a: str, b: str) -> float:
    """1 - edit distance / longer length; identical empty strings count as 1."""
    return Levenshtein.normalized_similarity(a, b)


def resolve_entity(identity: LeadIdentity, candidates: List[EntityCandidate]) -> EntityMatch:
    email = (identity.email or '').strip().lower()
    if email:
        for c in candidates:
            if any(email == (e or '').strip().lower() for e in c.emails):
                return EntityMatch(c.id, 1.0, 'EMAIL')

    domain = (identity.domain or '').strip().lower()
    if domain:
        for c in candidates:
            if any(domain == (d or '').strip().lower() for d in c.domains):
                return EntityMatch(c.id, 0.9, 'DOMAIN')

    handle = normalize_handle(identity.handle)
    if handle:
        best_id, best_score = None, 0.0
        for c in candidates:
            for value in c.handles.values():
                other = normalize_handle(value)
                if not other:
                    continue
                score = handle_similarity(handle, other)
                if score > best_score:
                    best_id, best_score = c.id, score
        if best_id is not None and best_score >= HANDLE_MATCH_THRESHOLD:
            return EntityMatch(best_id, 0.8, 'HANDLE')

    return EntityMatch(None, 0.0, 'NONE')


def is_platform_host(host: str, platforms=None) -> bool:
    """True when host is one of the platforms or a subdomain of one."""
    host = (host or '').lower()
    return any(host == p or host.endswith('.' + p) for p in (platforms or PLATFORM_HOSTS))


def identity_from_url(url: str, emails: Optional[List[str]] = None) -> LeadIdentity:
    """
    Derive identity signals for a lead from its source URL and any scraped
    emails. Platform hosts (reddit, x.com, ...) give no domain; only the
    author handle when the URL carries one.
    """
    try:
        parts = urlsplit(url or '')
        host = (parts.hostname or '').lower()
    except ValueError:
        return LeadIdentity(email=(emails or [None])[0])

    domain = host[4:] if host.startswith('www.') else host
    handle = None
    if is_platform_host(domain):
        m = _X_HANDLE.match(parts.path or '') if is_platform_host(domain, ('x.com', 'twitter.com')) else None
        if m:
            handle = m.group(1)
        domain = None

    return LeadIdentity(
        email=(emails or [None])[0],
        domain=domain or None,
        handle=handle,
    )


# Path prefixes that precede the handle on some profile URLs
_PROFILE_PREFIXES = {'in', 'company', 'c', 'channel', 'user'}


def handles_from_socials(socials: List[Dict[str, str]]) -> Dict[str, str]:
    """{'platform': 'X', 'url': 'https://x.com/foo'} entries → {'x': 'foo'}; first per platform wins."""
    handles = {}
    for social in socials or []:
        try:
            path = urlsplit(social.get('url') or '').path
        except ValueError:
            continue
        segments = [p for p in path.split('/') if p]
        if segments and segments[0].lower() in _PROFILE_PREFIXES:
            segments = segments[1:]
        handle = normalize_handle(segments[0]) if segments else ''
        if handle:
            handles.setdefault((social.get('platform') or '').lower(), handle)
    return handles
