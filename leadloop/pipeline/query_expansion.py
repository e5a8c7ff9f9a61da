"""
Query expansion: propose new search queries from what has worked.

Suggestions come from three places: fixed seed intents (0.5), the best
conversion patterns by win rate (0.8) and recently seen entity domains as
site: searches (0.9). They are deduplicated by query text and stored as
disabled queries for a human to switch on.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

DEFAULT_INTENTS = [
    'need an editor',
    'hiring editor',
    'outsource editing',
    'urgent editor asap',
    'podcast repurpose editor',
    'shorts editor captions',
]

MAX_PATTERNS = 10
MAX_PATTERN_TOKENS = 6
MAX_DOMAINS = 15
MAX_PROPOSALS = 30

_NON_TOKEN = re.compile(r'[^a-z0-9_\s-]')


@dataclass
class QuerySuggestion:
    name: str
    query: str
    score: float
    source_pack: str = 'WIDE_WEB'


def _source_pack_for(pattern: str) -> str:
    if 'agency' in pattern:
        return 'PROFESSIONAL'
    if 'podcast' in pattern:
        return 'FORUMS'
    return 'WIDE_WEB'


def generate_query_suggestions(top_domains: List[str],
                               top_patterns: List[Tuple[str, float]],
                               seed_intents: Optional[List[str]] = None) -> List[QuerySuggestion]:
    """top_patterns is a list of (key, win_rate)."""
    intents = seed_intents or DEFAULT_INTENTS
    patterns = [key.lower() for key, _ in sorted(top_patterns, key=lambda p: p[1], reverse=True)[:MAX_PATTERNS]]
    domains = [re.sub(r'^www\.', '', d).lower() for d in top_domains[:MAX_DOMAINS]]

    suggestions = []
    for intent in intents:
        suggestions.append(QuerySuggestion(
            name=f'Expansion: {intent}',
            query=f'{intent} budget -upwork -fiverr',
            score=0.5,
        ))

    for p in patterns:
        phrase = ' '.join(_NON_TOKEN.sub(' ', p).split()[:MAX_PATTERN_TOKENS])
        suggestions.append(QuerySuggestion(
            name=f'Pattern: {p}',
            query=f'{phrase} need editor budget -upwork -fiverr',
            score=0.8,
            source_pack=_source_pack_for(p),
        ))

    for d in domains:
        suggestions.append(QuerySuggestion(
            name=f'Entity domain: {d}',
            query=f'site:{d} (need editor OR hiring editor OR outsource editing OR podcast repurpose)',
            score=0.9,
        ))

    seen = set()
    unique = []
    for s in suggestions:
        key = s.query.lower().strip()
        if key in seen:
            continue
        seen.add(key)
        s.score = max(0.0, min(1.0, s.score))
        unique.append(s)

    # Highest score first; equal scores stay in insertion order
    return sorted(unique, key=lambda s: s.score, reverse=True)
