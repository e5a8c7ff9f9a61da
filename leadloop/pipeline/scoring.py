"""
Signal scorer: keyword-tier qualification score for one candidate.

Four independent sub-scores (intent depth, urgency velocity, budget signals,
fit precision) are each taken from the first matching tier in
scoring_config.yaml, multiplied by the current ScoringWeights and summed.
Seller self-promotion costs a flat penalty, and the total is clamped to 0..100.

score_lead() is pure: identical text and weights always give the identical
breakdown. It is the unit the counterfactual learner tunes.
"""
import math
import os
import re
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional

import yaml

logger = logging.getLogger('pipeline.scoring')

MIN_WEIGHT = 0.5
MAX_WEIGHT = 2.0


@dataclass(frozen=True)
class ScoringWeights:
    intent_weight: float = 1.0
    urgency_weight: float = 1.0
    budget_weight: float = 1.0
    fit_weight: float = 1.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class ScoreBreakdown:
    score: int
    intent_depth: int
    urgency_velocity: int
    budget_signals: int
    fit_precision: int
    rush_12_hour_eligible: bool
    buyer_type: Optional[str] = None
    pain_tags: List[str] = field(default_factory=list)
    service_tags: List[str] = field(default_factory=list)

    def feature_vector(self) -> Dict[str, int]:
        return {
            'intent_depth': self.intent_depth,
            'urgency_velocity': self.urgency_velocity,
            'budget_signals': self.budget_signals,
            'fit_precision': self.fit_precision,
        }


# ── Scoring config (YAML with hardcoded fallback) ────────────────────────────

_scoring_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'intent': [
            {'name': 'competitive', 'points': 50,
             'phrases': ['vs', 'versus', 'which is better', 'compare', 'alternative']},
            {'name': 'urgent_hire', 'points': 40,
             'phrases': ['hiring', 'hire', 'need an editor', 'looking for an editor']},
            {'name': 'active', 'points': 25,
             'phrases': ['need editor', 'need a video editor', 'need someone to edit']},
            {'name': 'passive', 'points': 10,
             'phrases': ['struggle', 'hard to edit', 'editing takes']},
        ],
        'urgency': [
            {'name': 'critical', 'points': 25, 'phrases': ['asap', 'today', 'urgent', 'immediately']},
            {'name': 'high', 'points': 18, 'phrases': ['this week', 'deadline', 'by friday', 'by monday']},
            {'name': 'moderate', 'points': 10, 'phrases': ['soon', 'next week', 'this month']},
        ],
        'budget': [
            {'name': 'negative', 'points': -10, 'phrases': ['free', 'volunteer', 'student']},
            {'name': 'strong', 'points': 15, 'phrases': ['$', 'budget', 'paid', 'rate', 'retainer']},
            {'name': 'moderate', 'points': 8, 'phrases': ['hire', 'outsource', 'contractor', 'pay']},
        ],
        'fit': [
            {'name': 'perfect', 'points': 10,
             'phrases': ['podcast repurpose', 'repurpose podcast', 'short form repurpose',
                         'turn long form into shorts']},
            {'name': 'good', 'points': 6,
             'phrases': ['video editor shorts', 'shorts editor', 'tiktok editor', 'reels editor', 'captions']},
            {'name': 'moderate', 'points': 3,
             'phrases': ['video editor', 'content creator', 'edit videos']},
        ],
        'seller': {
            'penalty': 30,
            'phrases': ['for hire', 'available for work', 'my services'],
        },
        'rush_urgency_threshold': 18,
    }


def load_scoring_config():
    """Load scoring config from YAML, with in-memory cache and hardcoded fallback."""
    global _scoring_config
    if _scoring_config is not None:
        return _scoring_config

    config_path = os.path.join(os.path.dirname(__file__), 'scoring_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _scoring_config = yaml.safe_load(f)
        logger.info("Config loaded from YAML (version=%s)", _scoring_config.get('version', '?'))
    except Exception as e:
        logger.warning("YAML config not found (%s), using defaults", e)
        _scoring_config = _default_config()

    return _scoring_config


# ── Tag patterns ─────────────────────────────────────────────────────────────

_RUSH = re.compile(r'12\s*hour|same\s*day|overnight')
_AGENCY = re.compile(r'agency|clients|white\s*label')
_PODCASTER = re.compile(r'podcast|episode')

PAIN_PATTERNS = [
    ('PAIN_SWAMPED', re.compile(r'swamped|overwhelmed|too\s*much\s*work')),
    ('PAIN_DEADLINE', re.compile(r'deadline|asap|urgent')),
    ('PAIN_NO_VIEWS', re.compile(r'no\s*views|zero\s*views|low\s*views')),
]

SERVICE_PATTERNS = [
    ('SHORT_FORM', re.compile(r'(shorts|tiktok|reels)')),
    ('CAPTIONS', re.compile(r'captions|subtitles')),
]


def _includes_any(text: str, phrases: List[str]) -> bool:
    return any(p in text for p in phrases)


def tier_points(text: str, tiers: List[Dict[str, Any]]) -> int:
    """Points of the first tier with a phrase present in text, else 0."""
    for tier in tiers:
        if _includes_any(text, tier.get('phrases') or []):
            return int(tier.get('points', 0))
    return 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def combined_text(title: Optional[str], snippet: Optional[str]) -> str:
    return f"{title or ''}\n{snippet or ''}".lower()


def score_lead(title: Optional[str], snippet: Optional[str],
               weights: Optional[ScoringWeights] = None) -> ScoreBreakdown:
    """Score one candidate's title + snippet under the given weights."""
    cfg = load_scoring_config()
    w = weights or ScoringWeights()
    raw = combined_text(title, snippet)

    intent = tier_points(raw, cfg['intent'])
    urgency = tier_points(raw, cfg['urgency'])
    budget = tier_points(raw, cfg['budget'])
    fit = tier_points(raw, cfg['fit'])

    total = _round_half_up(
        intent * w.intent_weight
        + urgency * w.urgency_weight
        + budget * w.budget_weight
        + fit * w.fit_weight
    )

    seller = cfg.get('seller') or {}
    if _includes_any(raw, seller.get('phrases') or []):
        total -= int(seller.get('penalty', 30))

    score = max(0, min(100, total))

    rush = bool(_RUSH.search(raw)) or urgency >= cfg.get('rush_urgency_threshold', 18)

    buyer_type = None
    if _AGENCY.search(raw):
        buyer_type = 'AGENCY'
    elif _PODCASTER.search(raw):
        buyer_type = 'PODCASTER'

    pain_tags = [tag for tag, pattern in PAIN_PATTERNS if pattern.search(raw)]

    service_tags = []
    perfect = next((t for t in cfg['fit'] if t.get('name') == 'perfect'), None)
    if perfect and _includes_any(raw, perfect.get('phrases') or []):
        service_tags.append('PODCAST_REPURPOSE')
    service_tags.extend(tag for tag, pattern in SERVICE_PATTERNS if pattern.search(raw))

    return ScoreBreakdown(
        score=score,
        intent_depth=intent,
        urgency_velocity=urgency,
        budget_signals=budget,
        fit_precision=fit,
        rush_12_hour_eligible=rush,
        buyer_type=buyer_type,
        pain_tags=pain_tags,
        service_tags=service_tags,
    )
