"""
Bandit allocator: UCB1 scores, softmax probabilities, sampled choice.

Used for both query selection (k without replacement) and template selection
(one). Every choice comes back with the exact probability it was drawn with.
That propensity is what the counterfactual learner later divides by, so it is
returned here and stored, never recomputed.

The random source is injectable: anything with a random() method returning a
float in [0, 1).
"""
import math
import random as _random
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from leadloop.errors import NoEligibleItemsError

# Softmax denominator floor
_SUM_FLOOR = 1e-12


@dataclass
class Arm:
    """One allocation target as the policy sees it."""
    item: Any
    trials: int = 0
    wins: int = 0


@dataclass
class Selection:
    item: Any
    probability: float


def ucb1(wins: float, trials: float, total_trials: float) -> float:
    """Mean reward plus exploration bonus. Unseen arms score 1."""
    if trials <= 0:
        return 1.0
    mean = wins / max(1, trials)
    bonus = math.sqrt(2 * math.log(max(2, total_trials)) / trials)
    return mean + bonus


def softmax(scores: Sequence[float]) -> List[float]:
    """Numerically stable softmax."""
    if not scores:
        return []
    top = max(scores)
    exps = [math.exp(s - top) for s in scores]
    total = max(_SUM_FLOOR, sum(exps))
    return [e / total for e in exps]


def sample_index(probabilities: Sequence[float], rng=None) -> int:
    """Walk the cumulative distribution with one uniform draw."""
    r = (rng or _random).random()
    acc = 0.0
    for i, p in enumerate(probabilities):
        acc += p
        if r <= acc:
            return i
    return len(probabilities) - 1


def select_one(arms: List[Arm], rng=None,
               scorer: Optional[Callable[[Arm, float], float]] = None,
               kind: str = 'items') -> Selection:
    """
    Pick one arm.

    scorer(arm, total_trials) replaces the plain UCB1 score when given, e.g.
    the template path adds context match on top of UCB1.
    """
    if not arms:
        raise NoEligibleItemsError(kind)

    total = sum(a.trials for a in arms)
    if scorer is None:
        scores = [ucb1(a.wins, a.trials, total) for a in arms]
    else:
        scores = [scorer(a, total) for a in arms]

    probs = softmax(scores)
    idx = sample_index(probs, rng)
    return Selection(item=arms[idx].item, probability=probs[idx])


def select_k(arms: List[Arm], k: int, rng=None, kind: str = 'items') -> List[Selection]:
    """
    Pick up to k distinct arms without replacement.

    Total trials is fixed at the start of the round; each pick's probability is
    relative to the pool that remained when it was drawn.
    """
    if not arms:
        raise NoEligibleItemsError(kind)

    total = max(1, sum(a.trials for a in arms))
    pool = list(arms)
    chosen = []
    while pool and len(chosen) < k:
        scores = [ucb1(a.wins, a.trials, total) for a in pool]
        probs = softmax(scores)
        idx = sample_index(probs, rng)
        chosen.append(Selection(item=pool[idx].item, probability=probs[idx]))
        pool.pop(idx)
    return chosen
