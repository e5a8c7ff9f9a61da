"""
Run manager: one batch of query passes, then outreach allocation.

  1. snapshot current weights, enabled queries and templates
  2. draw up to MAX_RUN_QUERIES queries with the bandit (propensity recorded)
  3. per query, independently:
       search → lead safety → score → enrich/intent → canonicalize →
       blocklists → gate → entity upsert → lead upsert → event
     a provider failure marks only that query's search run FAILED
  4. write back query counters as atomic increments
  5. re-check every OUTREACH_READY lead against the safety and intent rules
  6. for this batch's ready leads, draw a template with the bandit and record
     an outreach attempt with overall_prob = query_prob × template_prob

run_batch() is what the RQ worker executes; launch_run() enqueues it.
"""
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from leadloop.config import (
    MAX_RUN_QUERIES, MIN_SCORE_QUALIFIED, RUN_CONCURRENCY, RUN_JOB_TIMEOUT,
    OUTREACH_PRINT_LIMIT, BLOCKLIST_DOMAINS, BLOCKLIST_KEYWORDS, validate_config,
)
from leadloop.errors import ConfigurationError
from leadloop.pipeline.canonicalization import canonicalize
from leadloop.pipeline.enrichment import enrich_lead
from leadloop.pipeline.entity_resolution import handles_from_socials, identity_from_url
from leadloop.pipeline.gating import gate_lead, is_confident_buyer
from leadloop.pipeline.lead_safety import reject_job_lead
from leadloop.pipeline.outreach import TemplateContext, pick_template, render_template
from leadloop.pipeline.query_expansion import generate_query_suggestions, MAX_PROPOSALS
from leadloop.pipeline.scoring import ScoringWeights, score_lead
from leadloop.services import db
from leadloop.services import search as search_service
from leadloop.services.bandit import Arm, select_k

logger = logging.getLogger('pipeline.manager')


# ── Lazy RQ queue (no Redis connection until a run is launched) ───────────

QUEUE_NAME = 'leadloop'

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from leadloop.extensions import redis_client
        from rq import Queue
        _queue = Queue(QUEUE_NAME, connection=redis_client)
    return _queue


# ── Stats ─────────────────────────────────────────────────────────────────────

@dataclass
class QueryPassStats:
    query_id: str
    run_id: Optional[str] = None
    provider: str = ''
    status: str = 'RUNNING'
    error: Optional[str] = None
    fetched: int = 0
    rejected_job: int = 0
    rejected_canonical: int = 0
    blocked_domain: int = 0
    blocked_keyword: int = 0
    rejected_intent: int = 0
    upserted: int = 0
    qualified: int = 0
    review: int = 0


@dataclass
class BatchSummary:
    batch_id: str
    queries_run: int = 0
    queries_failed: int = 0
    passes: List[QueryPassStats] = field(default_factory=list)
    sanitized: int = 0
    outreach: List[Dict] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


# ── Public API ────────────────────────────────────────────────────────────────

def _check_run_params(limit_queries, min_score) -> None:
    if limit_queries is not None and limit_queries < 1:
        raise ConfigurationError(f"limit_queries must be >= 1, got {limit_queries}")
    if min_score is not None and min_score < 0:
        raise ConfigurationError(f"min_score must be >= 0, got {min_score}")


def launch_run(limit_queries: Optional[int] = None, min_score: Optional[int] = None) -> str:
    """Validate settings, then enqueue run_batch on RQ. Returns the batch id."""
    _check_run_params(limit_queries, min_score)
    validate_config()
    search_service.check_config()

    batch_id = str(uuid.uuid4())
    _get_queue().enqueue(
        run_batch,
        limit_queries=limit_queries,
        min_score=min_score,
        batch_id=batch_id,
        job_id=f'batch-{batch_id}',
        job_timeout=RUN_JOB_TIMEOUT,
    )
    logger.info("Batch %s enqueued (limit_queries=%s, min_score=%s)", batch_id, limit_queries, min_score)
    return batch_id


def run_batch(limit_queries: Optional[int] = None, min_score: Optional[int] = None,
              batch_id: Optional[str] = None, rng=None) -> Dict:
    """
    Execute one batch. Raises ConfigurationError before any work, and
    NoEligibleItemsError when there is nothing enabled to allocate across.
    """
    _check_run_params(limit_queries, min_score)
    validate_config()
    search_service.check_config()

    limit_queries = MAX_RUN_QUERIES if limit_queries is None else limit_queries
    min_score = MIN_SCORE_QUALIFIED if min_score is None else min_score
    summary = BatchSummary(batch_id=batch_id or str(uuid.uuid4()))

    weights = db.latest_weights()
    queries = db.enabled_queries()
    picks = select_k(
        [Arm(item=q, trials=max(0, q.runs_count or 0), wins=max(0, q.won_count or 0)) for q in queries],
        limit_queries,
        rng=rng,
        kind='queries',
    )
    query_probs = {p.item.id: p.probability for p in picks}
    logger.info("Batch %s: %d/%d queries picked, weights=%s",
                summary.batch_id, len(picks), len(queries), weights.as_dict())

    def _pass(selection):
        return run_query_pass(summary.batch_id, selection.item, weights, min_score)

    if RUN_CONCURRENCY > 1 and len(picks) > 1:
        with ThreadPoolExecutor(max_workers=min(RUN_CONCURRENCY, len(picks))) as pool:
            summary.passes = list(pool.map(_pass, picks))
    else:
        summary.passes = [_pass(p) for p in picks]

    for stats in summary.passes:
        if stats.status != 'FINISHED':
            summary.queries_failed += 1
            continue
        summary.queries_run += 1
        db.record_query_pass(stats.query_id, stats.upserted, stats.qualified)

    summary.sanitized = sanitize_outreach_ready_leads()

    run_ids = [s.run_id for s in summary.passes if s.run_id]
    summary.outreach = allocate_outreach(run_ids, query_probs, rng=rng)

    logger.info(
        "Batch %s done: queries_run=%d failed=%d upserted=%d qualified=%d review=%d sanitized=%d attempts=%d",
        summary.batch_id, summary.queries_run, summary.queries_failed,
        sum(s.upserted for s in summary.passes),
        sum(s.qualified for s in summary.passes),
        sum(s.review for s in summary.passes),
        summary.sanitized,
        sum(1 for o in summary.outreach if o.get('attempt_id')),
        extra={'batch_id': summary.batch_id},
    )
    return summary.to_dict()


# ── Per-query pass ────────────────────────────────────────────────────────────

def _domain_of(url: str) -> Optional[str]:
    try:
        host = (urlsplit(url).hostname or '').lower()
    except ValueError:
        return None
    if host.startswith('www.'):
        host = host[4:]
    return host or None


def _blocked_domain(domain: Optional[str]) -> bool:
    return bool(domain) and domain in BLOCKLIST_DOMAINS


def _blocked_keyword(text: str) -> bool:
    return any(k in text for k in BLOCKLIST_KEYWORDS)


def run_query_pass(batch_id: str, query, weights: ScoringWeights, min_score: int) -> QueryPassStats:
    """Search one query and process its results. Never raises for provider errors."""
    stats = QueryPassStats(query_id=query.id)
    stats.run_id = db.create_search_run(batch_id, query.id)

    try:
        results, provider = search_service.unified_search(query.query)
        stats.provider = provider
        stats.fetched = len(results)

        for result in results:
            process_result(result, query.id, stats, weights, min_score)

        db.finish_search_run(stats.run_id, provider, stats.fetched, stats.upserted, stats.qualified)
        stats.status = 'FINISHED'
        logger.info(
            "query_summary id=%s fetched=%d rejected_job=%d rejected_canonical=%d blocked_domain=%d "
            "blocked_keyword=%d rejected_intent=%d upserted=%d qualified=%d review=%d",
            query.id, stats.fetched, stats.rejected_job, stats.rejected_canonical, stats.blocked_domain,
            stats.blocked_keyword, stats.rejected_intent, stats.upserted, stats.qualified, stats.review,
        )
    except Exception as e:
        stats.status = 'FAILED'
        stats.error = str(e)
        logger.error("Query %s failed: %s", query.id, e, exc_info=True)
        db.fail_search_run(stats.run_id, stats.error)

    return stats


def process_result(result, query_id: str, stats: QueryPassStats,
                   weights: ScoringWeights, min_score: int) -> Optional[str]:
    """Run one search result through the pipeline. Returns the lead status, or None if dropped."""
    rejection = reject_job_lead(result.link, result.title, result.snippet)
    if rejection.rejected:
        stats.rejected_job += 1
        return None

    breakdown = score_lead(result.title, result.snippet, weights)
    enrichment = enrich_lead(result.link, result.title, result.snippet, breakdown.score)

    canonical = canonicalize(result.link)
    if canonical.rejected:
        stats.rejected_canonical += 1
        return None

    domain = _domain_of(canonical.canonical_url)
    if _blocked_domain(domain):
        stats.blocked_domain += 1
        return None
    if _blocked_keyword(f"{result.title or ''}\n{result.snippet or ''}".lower()):
        stats.blocked_keyword += 1
        return None

    verdict = enrichment.verdict
    decision = gate_lead(breakdown.score, verdict, min_score)
    if decision.intent_blocked:
        stats.rejected_intent += 1

    identity = identity_from_url(canonical.canonical_url, enrichment.emails)
    handles = handles_from_socials(enrichment.socials)
    entity_id = db.resolve_or_create_entity(identity, handles)

    lead_id, status = db.upsert_lead(canonical.canonical_hash, {
        'source': result.source or 'SEARCH',
        'source_url': result.link,
        'canonical_url': canonical.canonical_url,
        'title': result.title,
        'snippet': result.snippet,
        'published_at': result.date,
        'score': breakdown.score,
        'intent_depth': breakdown.intent_depth,
        'urgency_velocity': breakdown.urgency_velocity,
        'budget_signals': breakdown.budget_signals,
        'fit_precision': breakdown.fit_precision,
        'buyer_type': breakdown.buyer_type,
        'pain_tags': breakdown.pain_tags,
        'service_tags': breakdown.service_tags,
        'rush_12_hour_eligible': breakdown.rush_12_hour_eligible,
        'intent_class': verdict.intent_class if verdict else None,
        'intent_confidence': verdict.confidence if verdict else None,
        'status': decision.status,
        'rejected_reason': decision.rejected_reason,
        'meta': {
            'proof': verdict.proof_lines if verdict else [],
            'buyer_score': verdict.buyer_score if verdict else None,
            'seller_score': verdict.seller_score if verdict else None,
            'intent_reasons': verdict.reasons if verdict else [],
            'emails': enrichment.emails,
            'socials': enrichment.socials,
        },
        'entity_id': entity_id,
        'query_id': query_id,
        'run_id': stats.run_id,
    })

    stats.upserted += 1
    if status == 'OUTREACH_READY':
        stats.qualified += 1
        event_type = 'QUALIFIED'
    elif status == 'REVIEW':
        stats.review += 1
        event_type = 'UPDATED'
    else:
        event_type = 'REJECTED'

    db.add_lead_event(lead_id, event_type, {
        'weights': weights.as_dict(),
        'breakdown': {
            'score': breakdown.score,
            **breakdown.feature_vector(),
            'rush_12_hour_eligible': breakdown.rush_12_hour_eligible,
        },
        'rejected_reason': decision.rejected_reason,
    })
    return status


# ── Post-batch ────────────────────────────────────────────────────────────────

def sanitize_outreach_ready_leads() -> int:
    """Demote OUTREACH_READY leads that no longer pass the safety or intent rules."""
    demoted = 0
    for lead in db.leads_with_status(['OUTREACH_READY']):
        rejection = reject_job_lead(lead.canonical_url, lead.title, lead.snippet)
        if rejection.rejected:
            db.reject_lead(lead.id, rejection.reason)
            demoted += 1
            continue
        if not is_confident_buyer(lead.intent_class, lead.intent_confidence):
            db.reject_lead(lead.id, 'INTENT_NOT_BUYER')
            demoted += 1
    if demoted:
        logger.info("Sanitize demoted %d outreach-ready leads", demoted)
    return demoted


def allocate_outreach(run_ids: List[str], query_probs: Dict[str, float],
                      templates=None, rng=None, limit: int = OUTREACH_PRINT_LIMIT) -> List[Dict]:
    """
    Draft a message for this batch's READY / REVIEW leads.

    Only OUTREACH_READY leads without an earlier attempt get an attempt row;
    REVIEW leads get a draft for a human to look at.
    """
    if not run_ids:
        return []
    leads = db.leads_with_status(['OUTREACH_READY', 'REVIEW'], run_ids=run_ids, limit=limit)
    if not leads:
        return []

    if templates is None:
        templates = db.enabled_templates()
    contacted = db.leads_with_attempts([lead.id for lead in leads])

    drafts = []
    for lead in leads:
        ctx = TemplateContext.for_lead(lead)
        choice = pick_template(templates, ctx, rng=rng)
        message = render_template(choice.item.body, ctx)
        draft = {
            'lead_id': lead.id,
            'status': lead.status,
            'score': lead.score,
            'url': lead.canonical_url,
            'template_id': choice.item.id,
            'template_prob': choice.probability,
            'message': message,
            'attempt_id': None,
        }

        if lead.status == 'OUTREACH_READY' and lead.id not in contacted:
            query_prob = query_probs.get(lead.query_id, 1.0)
            db.increment_template_sent(choice.item.id)
            draft['attempt_id'] = db.create_attempt(
                lead_id=lead.id,
                query_id=lead.query_id,
                template_id=choice.item.id,
                query_prob=query_prob,
                template_prob=choice.probability,
                message=message,
                meta={
                    'lead_score': lead.score,
                    'buyer_type': lead.buyer_type,
                    'pain_tags': lead.pain_tags,
                    'service_tags': lead.service_tags,
                },
            )
            draft['query_prob'] = query_prob
        drafts.append(draft)
    return drafts


# ── Query expansion ──────────────────────────────────────────────────────────

def propose_queries(limit: int = MAX_PROPOSALS) -> int:
    """Store up to `limit` new disabled candidate queries. Returns how many were new."""
    suggestions = generate_query_suggestions(
        top_domains=db.top_entity_domains(),
        top_patterns=db.top_conversion_patterns(),
    )
    created = 0
    for s in suggestions[:limit]:
        if db.create_candidate_query(f'CANDIDATE:{s.name}', s.name, s.query, s.source_pack):
            created += 1
    logger.info("proposed_queries_created=%d suggestions_considered=%d",
                created, min(limit, len(suggestions)))
    return created
