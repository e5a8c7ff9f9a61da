"""
Persistence helpers: the only module that talks to the database.

Guarantees the engine relies on:
  - leads are upserted by canonical_hash, entities by primary domain
  - scoring weights are append-only; current = highest id, and writers
    take a lock before reading the head they build on
  - query / template counters only move through SQL increments
    (col = col + n), never read-modify-write on a stale copy
  - an attempt's outcome is written once (UPDATE ... WHERE outcome IS NULL)

Every helper opens its own session, so per-query passes can run on separate
threads. Errors are logged and re-raised; the caller decides what fails.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update, select, text
from sqlalchemy.exc import IntegrityError

from leadloop.database import get_session
from leadloop.config import QUERY_AUTO_DISABLE_MIN_RUNS, QUERY_AUTO_DISABLE_MAX_WIN_RATE
from leadloop.models.query import Query
from leadloop.models.template import Template
from leadloop.models.entity import Entity
from leadloop.models.lead import Lead
from leadloop.models.lead_event import LeadEvent
from leadloop.models.search_run import SearchRun
from leadloop.models.outreach_attempt import OutreachAttempt
from leadloop.models.scoring_weights import ScoringWeightsRecord
from leadloop.models.conversion_pattern import ConversionPattern
from leadloop.pipeline.entity_resolution import EntityCandidate, LeadIdentity, resolve_entity
from leadloop.pipeline.scoring import ScoringWeights

logger = logging.getLogger('services.db')

# Fuzzy handle matching looks at this many recently touched entities
ENTITY_CANDIDATE_LIMIT = 500

# pg_advisory_xact_lock key guarding the scoring-weights head
WEIGHTS_LOCK_KEY = 7_204_311


def _now():
    return datetime.now(timezone.utc)


@contextmanager
def session_scope():
    """Session that commits on success and rolls back on error."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ── Weights ───────────────────────────────────────────────────────────────────

def _weights_from_row(row) -> ScoringWeights:
    if row is None:
        return ScoringWeights()
    return ScoringWeights(
        intent_weight=row.intent_weight,
        urgency_weight=row.urgency_weight,
        budget_weight=row.budget_weight,
        fit_weight=row.fit_weight,
    )


def _lock_weights_head(session) -> None:
    """Hold the weights-writer lock until the session's transaction ends."""
    if session.get_bind().dialect.name == 'postgresql':
        session.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': WEIGHTS_LOCK_KEY})


def latest_weights(session=None, for_update=False) -> ScoringWeights:
    """
    Current scoring weights; all 1.0 before the first row exists.

    for_update=True serialises read-then-append writers: the head is read only
    after the writer lock is held, so the next row always builds on the last
    committed one. Needs the caller's session, since the lock lives as long as
    its transaction.
    """
    if session is not None:
        q = session.query(ScoringWeightsRecord).order_by(ScoringWeightsRecord.id.desc())
        if for_update:
            _lock_weights_head(session)
            q = q.with_for_update()
        return _weights_from_row(q.first())
    if for_update:
        raise ValueError("for_update needs the caller's session")
    with session_scope() as s:
        return latest_weights(s)


def append_weights(weights: ScoringWeights, source_attempt_id=None, session=None) -> int:
    row = ScoringWeightsRecord(source_attempt_id=source_attempt_id, **weights.as_dict())
    if session is not None:
        session.add(row)
        session.flush()
        return row.id
    with session_scope() as s:
        return append_weights(weights, source_attempt_id, s)


# ── Queries & templates ───────────────────────────────────────────────────────

def enabled_queries() -> List[Query]:
    """Snapshot of enabled queries (detached; counters as of now)."""
    session = get_session()
    try:
        return session.query(Query).filter(Query.enabled.is_(True)).order_by(Query.created_at, Query.id).all()
    finally:
        session.close()


def enabled_templates() -> List[Template]:
    session = get_session()
    try:
        return session.query(Template).filter(Template.enabled.is_(True)).order_by(Template.created_at, Template.id).all()
    finally:
        session.close()


def learning_stats() -> Dict[str, List[Dict]]:
    """Every query and template with its counters and IPS mean reward, best first."""
    session = get_session()
    try:
        queries = [q.to_stats() for q in session.query(Query).all()]
        templates = [t.to_stats() for t in session.query(Template).all()]
    finally:
        session.close()
    for rows in (queries, templates):
        rows.sort(key=lambda r: (-r['ips_mean'], r['id']))
    return {'queries': queries, 'templates': templates}


def record_query_pass(query_id: str, lead_count: int, qualified_count: int) -> bool:
    """
    Count one finished pass for a query, then switch it off if it has had
    enough runs and still wins too rarely. Returns True when disabled.
    """
    with session_scope() as s:
        s.execute(
            update(Query)
            .where(Query.id == query_id)
            .values(
                runs_count=Query.runs_count + 1,
                leads_count=Query.leads_count + lead_count,
                qualified_count=Query.qualified_count + qualified_count,
                last_run_at=_now(),
            )
        )
        result = s.execute(
            update(Query)
            .where(
                Query.id == query_id,
                Query.enabled.is_(True),
                Query.runs_count >= QUERY_AUTO_DISABLE_MIN_RUNS,
                Query.won_count < QUERY_AUTO_DISABLE_MAX_WIN_RATE * Query.runs_count,
            )
            .values(enabled=False)
        )
        disabled = result.rowcount > 0
    if disabled:
        logger.info("Query %s auto-disabled (low win rate)", query_id)
    return disabled


def increment_template_sent(template_id: str) -> None:
    with session_scope() as s:
        s.execute(
            update(Template)
            .where(Template.id == template_id)
            .values(times_sent=Template.times_sent + 1)
        )


def create_candidate_query(query_id: str, name: str, query: str, source_pack: str) -> bool:
    """Insert a disabled proposed query; False when the id already exists."""
    session = get_session()
    try:
        if session.get(Query, query_id) is not None:
            return False
        session.add(Query(id=query_id, name=name, query=query, enabled=False, source_pack=source_pack))
        session.commit()
        return True
    except IntegrityError:
        session.rollback()
        return False
    finally:
        session.close()


# ── Search runs ───────────────────────────────────────────────────────────────

def create_search_run(batch_id: str, query_id: str, provider: str = '') -> str:
    with session_scope() as s:
        run = SearchRun(batch_id=batch_id, query_id=query_id, provider=provider, status='RUNNING')
        s.add(run)
        s.flush()
        return run.id


def finish_search_run(run_id: str, provider: str, result_count: int,
                      lead_count: int, qualified_count: int) -> None:
    with session_scope() as s:
        s.execute(
            update(SearchRun)
            .where(SearchRun.id == run_id)
            .values(
                status='FINISHED',
                provider=provider,
                result_count=result_count,
                lead_count=lead_count,
                qualified_count=qualified_count,
                finished_at=_now(),
            )
        )


def fail_search_run(run_id: str, error: str) -> None:
    """Best effort: a failure to record the failure must not hide the original error."""
    try:
        with session_scope() as s:
            s.execute(
                update(SearchRun)
                .where(SearchRun.id == run_id)
                .values(status='FAILED', error=str(error)[:2000], finished_at=_now())
            )
    except Exception:
        logger.error("Failed to mark search run %s FAILED", run_id, exc_info=True)


def search_runs_for_batch(batch_id: str) -> List[Dict]:
    session = get_session()
    try:
        runs = (
            session.query(SearchRun)
            .filter(SearchRun.batch_id == batch_id)
            .order_by(SearchRun.started_at, SearchRun.id)
            .all()
        )
        return [
            {
                'id': r.id,
                'query_id': r.query_id,
                'status': r.status,
                'provider': r.provider,
                'result_count': r.result_count,
                'lead_count': r.lead_count,
                'qualified_count': r.qualified_count,
                'error': r.error,
                'started_at': r.started_at.isoformat() if r.started_at else None,
                'finished_at': r.finished_at.isoformat() if r.finished_at else None,
            }
            for r in runs
        ]
    finally:
        session.close()


# ── Entities ──────────────────────────────────────────────────────────────────

def _candidate(entity: Entity) -> EntityCandidate:
    return EntityCandidate(
        id=entity.id,
        emails=list(entity.emails or []),
        domains=list(entity.domains or []),
        handles=dict(entity.handles or {}),
    )


def _merge_identity(entity: Entity, identity: LeadIdentity, handles: Dict[str, str]) -> None:
    if identity.domain and identity.domain not in (entity.domains or []):
        entity.domains = list(entity.domains or []) + [identity.domain]
    if identity.email and identity.email not in (entity.emails or []):
        entity.emails = list(entity.emails or []) + [identity.email]
    merged = dict(entity.handles or {})
    for platform, handle in handles.items():
        merged.setdefault(platform, handle)
    entity.handles = merged
    if not entity.primary_domain and identity.domain:
        entity.primary_domain = identity.domain


def resolve_or_create_entity(identity: LeadIdentity, handles: Optional[Dict[str, str]] = None) -> Optional[str]:
    """
    Match the identity against known entities and merge new signals in, or
    create a new one (COMPANY with a domain, PERSON on a handle alone).
    Returns the entity id, or None when the identity carries nothing to key on.
    """
    handles = dict(handles or {})
    if identity.handle:
        handles.setdefault('x', identity.handle)
    if not (identity.domain or identity.email or handles):
        return None

    for attempt in range(2):
        session = get_session()
        try:
            pool = session.query(Entity).order_by(Entity.updated_at.desc()).limit(ENTITY_CANDIDATE_LIMIT).all()
            if identity.domain:
                exact = session.query(Entity).filter(Entity.primary_domain == identity.domain).first()
                if exact is not None and exact not in pool:
                    pool.insert(0, exact)

            match = resolve_entity(identity, [_candidate(e) for e in pool])
            if match.entity_id:
                entity = next(e for e in pool if e.id == match.entity_id)
                logger.debug("Entity %s matched by %s (%.2f)", entity.id, match.reason, match.confidence)
            else:
                entity = Entity(
                    type='COMPANY' if identity.domain else 'PERSON',
                    primary_domain=identity.domain,
                    display_name=identity.display_name,
                    domains=[identity.domain] if identity.domain else [],
                    emails=[identity.email] if identity.email else [],
                    handles={},
                )
                session.add(entity)

            _merge_identity(entity, identity, handles)
            session.commit()
            return entity.id
        except IntegrityError:
            # Another pass created the same primary domain first
            session.rollback()
            if attempt:
                raise
        except Exception:
            session.rollback()
            logger.error("Entity upsert failed for %s", identity.domain, exc_info=True)
            raise
        finally:
            session.close()
    return None


# ── Leads ─────────────────────────────────────────────────────────────────────

TERMINAL_LEAD_STATUSES = ('WON', 'LOST')


def upsert_lead(canonical_hash: str, fields: Dict) -> Tuple[str, str]:
    """
    Insert or refresh the lead for a canonical hash. Returns (lead_id, status).

    A lead that already reached WON / LOST keeps its status; everything else
    takes the freshly computed values.
    """
    for attempt in range(2):
        session = get_session()
        try:
            lead = session.query(Lead).filter(Lead.canonical_hash == canonical_hash).first()
            if lead is None:
                lead = Lead(canonical_hash=canonical_hash, **fields)
                session.add(lead)
            else:
                keep_status = lead.status in TERMINAL_LEAD_STATUSES
                for key, value in fields.items():
                    if keep_status and key in ('status', 'rejected_reason'):
                        continue
                    setattr(lead, key, value)
            session.commit()
            return lead.id, lead.status
        except IntegrityError:
            session.rollback()
            if attempt:
                raise
        except Exception:
            session.rollback()
            logger.error("Lead upsert failed for %s", canonical_hash, exc_info=True)
            raise
        finally:
            session.close()


def add_lead_event(lead_id: str, event_type: str, meta: Optional[Dict] = None, session=None) -> None:
    event = LeadEvent(lead_id=lead_id, type=event_type, meta=meta or {})
    if session is not None:
        session.add(event)
        return
    with session_scope() as s:
        s.add(event)


def leads_with_status(statuses, run_ids: Optional[List[str]] = None, limit: Optional[int] = None) -> List[Lead]:
    """Leads in the given statuses, best score first."""
    session = get_session()
    try:
        q = session.query(Lead).filter(Lead.status.in_(list(statuses)))
        if run_ids is not None:
            q = q.filter(Lead.run_id.in_(list(run_ids)))
        q = q.order_by(Lead.score.desc(), Lead.created_at.desc())
        if limit:
            q = q.limit(limit)
        return q.all()
    finally:
        session.close()


def reject_lead(lead_id: str, reason: str, source: str = 'SANITIZE') -> None:
    with session_scope() as s:
        s.execute(
            update(Lead)
            .where(Lead.id == lead_id)
            .values(status='REJECTED', rejected_reason=reason)
        )
        add_lead_event(lead_id, 'REJECTED', {'reason': reason, 'source': source}, session=s)


def leads_with_attempts(lead_ids: List[str]) -> set:
    if not lead_ids:
        return set()
    session = get_session()
    try:
        rows = session.execute(
            select(OutreachAttempt.lead_id).where(OutreachAttempt.lead_id.in_(lead_ids))
        ).all()
        return {r[0] for r in rows}
    finally:
        session.close()


# ── Outreach attempts ─────────────────────────────────────────────────────────

def create_attempt(lead_id: str, query_id: Optional[str], template_id: str,
                   query_prob: float, template_prob: float,
                   message: Optional[str] = None, meta: Optional[Dict] = None) -> str:
    """Record one allocation decision; overall_prob is frozen here."""
    with session_scope() as s:
        attempt = OutreachAttempt(
            lead_id=lead_id,
            query_id=query_id,
            template_id=template_id,
            query_prob=query_prob,
            template_prob=template_prob,
            overall_prob=query_prob * template_prob,
            message=message,
            meta=meta or {},
        )
        s.add(attempt)
        s.flush()
        add_lead_event(lead_id, 'TEMPLATE_SENT', {'template_id': template_id, 'attempt_id': attempt.id}, session=s)
        return attempt.id


def find_attempt(session, attempt_id: Optional[str] = None, lead_id: Optional[str] = None):
    """By id, else the most recent attempt for the lead."""
    if attempt_id:
        return session.get(OutreachAttempt, attempt_id)
    if lead_id:
        return (
            session.query(OutreachAttempt)
            .filter(OutreachAttempt.lead_id == lead_id)
            .order_by(OutreachAttempt.created_at.desc(), OutreachAttempt.id.desc())
            .first()
        )
    return None


def mark_attempt_outcome(session, attempt_id: str, outcome: str) -> bool:
    """Set the outcome once. False when it was already set (replay)."""
    result = session.execute(
        update(OutreachAttempt)
        .where(OutreachAttempt.id == attempt_id, OutreachAttempt.outcome.is_(None))
        .values(outcome=outcome, outcome_at=_now())
    )
    return result.rowcount > 0


def add_query_reward(session, query_id: str, reward: float, weight: float, outcome: str) -> None:
    values = {
        'ips_reward_sum': Query.ips_reward_sum + reward * weight,
        'ips_weight_sum': Query.ips_weight_sum + weight,
    }
    if outcome == 'WON':
        values['won_count'] = Query.won_count + 1
        values['last_win_at'] = _now()
    else:
        values['lost_count'] = Query.lost_count + 1
    session.execute(update(Query).where(Query.id == query_id).values(**values))


def add_template_reward(session, template_id: str, reward: float, weight: float, outcome: str) -> None:
    values = {
        'ips_reward_sum': Template.ips_reward_sum + reward * weight,
        'ips_weight_sum': Template.ips_weight_sum + weight,
    }
    if outcome == 'WON':
        values['won_count'] = Template.won_count + 1
    session.execute(update(Template).where(Template.id == template_id).values(**values))


# ── Conversion patterns & expansion inputs ────────────────────────────────────

def bump_conversion_patterns(session, keys: List[str], outcome: str) -> None:
    for key in keys:
        pattern = session.query(ConversionPattern).filter(ConversionPattern.key == key).first()
        if pattern is None:
            pattern = ConversionPattern(key=key, wins=0, losses=0)
            session.add(pattern)
            session.flush()
        column = ConversionPattern.wins if outcome == 'WON' else ConversionPattern.losses
        session.execute(
            update(ConversionPattern)
            .where(ConversionPattern.id == pattern.id)
            .values({column: column + 1, ConversionPattern.updated_at: _now()})
        )


def top_entity_domains(limit: int = 50) -> List[str]:
    session = get_session()
    try:
        rows = session.execute(
            select(Entity.primary_domain)
            .where(Entity.type == 'COMPANY', Entity.primary_domain.isnot(None))
            .order_by(Entity.updated_at.desc())
            .limit(limit)
        ).all()
        return [r[0] for r in rows if r[0]]
    finally:
        session.close()


def top_conversion_patterns(limit: int = 100, keep: int = 25) -> List[Tuple[str, float]]:
    """(key, win_rate) for recently updated patterns, best win rate first."""
    session = get_session()
    try:
        rows = (
            session.query(ConversionPattern)
            .order_by(ConversionPattern.updated_at.desc(), ConversionPattern.id.desc())
            .limit(limit)
            .all()
        )
        ranked = sorted(((p.key, p.win_rate) for p in rows), key=lambda kv: kv[1], reverse=True)
        return ranked[:keep]
    finally:
        session.close()
