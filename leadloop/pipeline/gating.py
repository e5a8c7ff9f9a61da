"""
Gating: score + intent verdict → lead status.

OUTREACH_READY  confident buyer, valid proof, no role mismatch, score ≥ min
REVIEW          not a confident seller, and the score clears max(70, min + 10)
REJECTED        everything else, with LOW_SCORE / ROLE_MISMATCH / INTENT_NOT_BUYER
"""
from dataclasses import dataclass
from typing import Optional

from leadloop.pipeline.intent import IntentVerdict

INTENT_CONFIDENCE_MIN = 0.45
HIGH_SCORE_FLOOR = 70
HIGH_SCORE_MARGIN = 10


@dataclass
class GateDecision:
    status: str
    rejected_reason: Optional[str] = None
    # Score was good enough but the verdict held it back
    intent_blocked: bool = False


def is_confident_buyer(intent_class: Optional[str], confidence: Optional[float]) -> bool:
    return intent_class == 'BUYER' and (confidence or 0) >= INTENT_CONFIDENCE_MIN


def gate_lead(score: int, verdict: Optional[IntentVerdict], min_score: int) -> GateDecision:
    intent_class = verdict.intent_class if verdict else None
    confidence = verdict.confidence if verdict else 0
    proof_ok = bool(verdict and verdict.proof_ok)
    role_mismatch = bool(verdict and verdict.role_mismatch)

    intent_ok = is_confident_buyer(intent_class, confidence)
    is_seller = intent_class == 'SELLER' and confidence >= INTENT_CONFIDENCE_MIN
    high_score = score >= max(HIGH_SCORE_FLOOR, min_score + HIGH_SCORE_MARGIN)

    if intent_ok and proof_ok and not role_mismatch and score >= min_score:
        return GateDecision('OUTREACH_READY')
    if not is_seller and high_score:
        return GateDecision('REVIEW')

    if score < min_score:
        return GateDecision('REJECTED', 'LOW_SCORE')
    reason = 'ROLE_MISMATCH' if role_mismatch else 'INTENT_NOT_BUYER'
    return GateDecision('REJECTED', reason, intent_blocked=True)
