"""
Counterfactual learner: IPS rewards and the online weight update.

Outcomes only exist for leads we chose to contact, and we chose them with
non-uniform probability. Each outcome is therefore weighted by 1 / propensity
(floored and capped), and an allocation target's mean reward is
sum(reward * weight) / sum(weight), never wins / trials.
"""
from dataclasses import dataclass
from typing import Dict

from leadloop.pipeline.scoring import ScoringWeights, MIN_WEIGHT, MAX_WEIGHT

PROPENSITY_FLOOR = 1e-6
MAX_IPS_WEIGHT = 50.0
LEARNING_RATE = 0.02
# Raw sub-scores fall roughly in -10..50
FEATURE_SCALE = 50.0


@dataclass
class IpsUpdate:
    reward: float
    weight: float


def compute_ips(outcome: str, overall_prob: float) -> IpsUpdate:
    reward = 1.0 if outcome == 'WON' else 0.0
    p = max(PROPENSITY_FLOOR, overall_prob)
    return IpsUpdate(reward=reward, weight=min(MAX_IPS_WEIGHT, 1.0 / p))


def ips_mean(reward_sum: float, weight_sum: float) -> float:
    if weight_sum <= 0:
        return 0.0
    return reward_sum / weight_sum


def _clamp(v, lo, hi):
    return max(lo, min(hi, v))


def _normalize(value: float) -> float:
    return _clamp(value / FEATURE_SCALE, -1.0, 1.0)


def next_weights(current: ScoringWeights, features: Dict[str, float], outcome: str) -> ScoringWeights:
    """One bounded online step toward features present in wins, away from losses."""
    y = 1 if outcome == 'WON' else -1

    def step(weight, feature):
        delta = LEARNING_RATE * y * _normalize(features.get(feature, 0) or 0)
        return _clamp(weight + delta, MIN_WEIGHT, MAX_WEIGHT)

    return ScoringWeights(
        intent_weight=step(current.intent_weight, 'intent_depth'),
        urgency_weight=step(current.urgency_weight, 'urgency_velocity'),
        budget_weight=step(current.budget_weight, 'budget_signals'),
        fit_weight=step(current.fit_weight, 'fit_precision'),
    )
