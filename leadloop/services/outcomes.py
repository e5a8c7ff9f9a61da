"""
Outcome recording: apply a WON / LOST result to an outreach attempt.

Everything happens in one transaction:
  1. set the attempt's outcome (only if it has none yet)
  2. move the lead to WON / LOST and log the event
  3. add the IPS-weighted reward to the query and the template
  4. tally conversion patterns for query expansion
  5. append the next scoring-weights row

Replaying an outcome for an attempt that already has one changes nothing and
comes back with applied=False.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from leadloop.config import OUTCOMES
from leadloop.errors import AttemptNotFoundError, InvalidOutcomeError
from leadloop.models.lead import Lead
from leadloop.services import db
from leadloop.services.counterfactual import compute_ips, next_weights

logger = logging.getLogger('services.outcomes')

# Lead tag → search phrase used as a conversion pattern key
PATTERN_PHRASES = {
    'AGENCY': 'agency white label',
    'PODCASTER': 'podcast',
    'PODCAST_REPURPOSE': 'podcast repurpose',
    'SHORT_FORM': 'shorts',
    'CAPTIONS': 'captions',
    'PAIN_SWAMPED': 'swamped',
    'PAIN_DEADLINE': 'deadline',
    'PAIN_NO_VIEWS': 'no views',
}


@dataclass
class OutcomeResult:
    attempt_id: str
    lead_id: str
    outcome: str
    applied: bool
    reward: float = 0.0
    weight: float = 0.0
    weights_id: Optional[int] = None

    def to_dict(self):
        return {
            'attempt_id': self.attempt_id,
            'lead_id': self.lead_id,
            'outcome': self.outcome,
            'applied': self.applied,
            'reward': self.reward,
            'weight': self.weight,
            'weights_id': self.weights_id,
        }


def pattern_keys(lead) -> list:
    tags = [lead.buyer_type] + list(lead.service_tags or []) + list(lead.pain_tags or [])
    return list(dict.fromkeys(PATTERN_PHRASES[t] for t in tags if t in PATTERN_PHRASES))


def record_outcome(outcome: str, attempt_id: Optional[str] = None,
                   lead_id: Optional[str] = None) -> OutcomeResult:
    """
    Record the result of an outreach attempt, looked up by id or, failing
    that, as the lead's most recent attempt.
    """
    normalized = outcome.strip().upper() if isinstance(outcome, str) else ''
    if normalized not in OUTCOMES:
        raise InvalidOutcomeError(f"Outcome must be one of {OUTCOMES}, got {outcome!r}")
    outcome = normalized

    with db.session_scope() as session:
        attempt = db.find_attempt(session, attempt_id=attempt_id, lead_id=lead_id)
        if attempt is None:
            raise AttemptNotFoundError(f"No outreach attempt for attempt_id={attempt_id} lead_id={lead_id}")

        if not db.mark_attempt_outcome(session, attempt.id, outcome):
            logger.info("Attempt %s already has an outcome, ignoring replayed %s", attempt.id, outcome)
            return OutcomeResult(attempt.id, attempt.lead_id, outcome, applied=False)

        lead = session.get(Lead, attempt.lead_id)
        if lead is None:
            raise AttemptNotFoundError(f"Lead {attempt.lead_id} for attempt {attempt.id} is missing")

        lead.status = outcome
        db.add_lead_event(lead.id, outcome, {'attempt_id': attempt.id}, session=session)

        ips = compute_ips(outcome, attempt.overall_prob)
        if attempt.query_id:
            db.add_query_reward(session, attempt.query_id, ips.reward, ips.weight, outcome)
        if attempt.template_id:
            db.add_template_reward(session, attempt.template_id, ips.reward, ips.weight, outcome)

        db.bump_conversion_patterns(session, pattern_keys(lead), outcome)

        current = db.latest_weights(session, for_update=True)
        updated = next_weights(current, lead.feature_vector(), outcome)
        weights_id = db.append_weights(updated, source_attempt_id=attempt.id, session=session)

        overall_prob = attempt.overall_prob
        result = OutcomeResult(
            attempt_id=attempt.id,
            lead_id=lead.id,
            outcome=outcome,
            applied=True,
            reward=ips.reward,
            weight=ips.weight,
            weights_id=weights_id,
        )

    logger.info(
        "Recorded %s for lead %s (attempt %s, p=%.4f, ips_weight=%.2f)",
        outcome, result.lead_id, result.attempt_id, overall_prob, result.weight,
        extra={'lead_id': result.lead_id, 'attempt_id': result.attempt_id},
    )
    return result
