"""Tests for leadloop.services.db: upserts, counters and weights history."""
from unittest.mock import MagicMock

import pytest

from leadloop.models.conversion_pattern import ConversionPattern
from leadloop.models.entity import Entity
from leadloop.models.lead import Lead
from leadloop.models.lead_event import LeadEvent
from leadloop.models.query import Query
from leadloop.models.template import Template
from leadloop.pipeline.entity_resolution import LeadIdentity, identity_from_url
from leadloop.pipeline.scoring import ScoringWeights
from leadloop.services import db


# ── Leads ────────────────────────────────────────────────────────────────────

class TestUpsertLead:

    def test_insert_then_refresh(self, db_session):
        lead_id, status = db.upsert_lead('h1', {'canonical_url': 'https://a.com/1', 'score': 60,
                                                'status': 'OUTREACH_READY'})
        again_id, again_status = db.upsert_lead('h1', {'canonical_url': 'https://a.com/1', 'score': 75,
                                                       'status': 'REVIEW'})
        assert again_id == lead_id
        assert again_status == 'REVIEW'
        assert db_session.query(Lead).count() == 1
        assert db_session.get(Lead, lead_id).score == 75

    def test_terminal_status_kept(self, make_lead, db_session):
        lead = make_lead(canonical_hash='h-won', status='WON')
        lead_id, status = db.upsert_lead('h-won', {'canonical_url': 'https://a.com/2', 'score': 10,
                                                   'status': 'REJECTED', 'rejected_reason': 'LOW_SCORE'})
        assert (lead_id, status) == (lead.id, 'WON')
        db_session.expire_all()
        row = db_session.get(Lead, lead.id)
        assert row.score == 10
        assert row.rejected_reason is None

    def test_reject_lead_logs_event(self, make_lead, db_session):
        lead = make_lead()
        db.reject_lead(lead.id, 'JOB_BOARD')
        db_session.expire_all()
        assert db_session.get(Lead, lead.id).status == 'REJECTED'
        event = db_session.query(LeadEvent).filter_by(lead_id=lead.id).one()
        assert event.type == 'REJECTED'
        assert event.meta == {'reason': 'JOB_BOARD', 'source': 'SANITIZE'}

    def test_leads_with_status_best_first(self, make_lead):
        make_lead(score=55)
        make_lead(score=90)
        make_lead(score=70, status='REVIEW')
        leads = db.leads_with_status(['OUTREACH_READY'])
        assert [l.score for l in leads] == [90, 55]
        assert len(db.leads_with_status(['OUTREACH_READY', 'REVIEW'], limit=2)) == 2


# ── Queries & templates ──────────────────────────────────────────────────────

class TestQueryCounters:

    def test_pass_increments(self, make_query, db_session):
        make_query(id='q1')
        assert db.record_query_pass('q1', lead_count=4, qualified_count=2) is False
        db_session.expire_all()
        q = db_session.get(Query, 'q1')
        assert (q.runs_count, q.leads_count, q.qualified_count) == (1, 4, 2)

    def test_auto_disable_after_twenty_runs_without_wins(self, make_query, db_session):
        make_query(id='q1', runs_count=19)
        assert db.record_query_pass('q1', 0, 0) is True
        db_session.expire_all()
        assert db_session.get(Query, 'q1').enabled is False

    def test_one_win_in_twenty_keeps_query(self, make_query, db_session):
        make_query(id='q1', runs_count=19, won_count=1)
        assert db.record_query_pass('q1', 0, 0) is False
        db_session.expire_all()
        assert db_session.get(Query, 'q1').enabled is True

    def test_too_few_runs_not_disabled(self, make_query):
        make_query(id='q1', runs_count=5)
        assert db.record_query_pass('q1', 0, 0) is False

    def test_enabled_snapshots(self, make_query, make_template):
        make_query(id='on')
        make_query(id='off', enabled=False)
        make_template(id='t-on')
        make_template(id='t-off', enabled=False)
        assert [q.id for q in db.enabled_queries()] == ['on']
        assert [t.id for t in db.enabled_templates()] == ['t-on']

    def test_increment_template_sent(self, make_template, db_session):
        make_template(id='t1')
        db.increment_template_sent('t1')
        db.increment_template_sent('t1')
        db_session.expire_all()
        assert db_session.get(Template, 't1').times_sent == 2

    def test_learning_stats_best_first(self, make_query, make_template):
        make_query(id='q-new')
        make_query(id='q-good', ips_reward_sum=10.0, ips_weight_sum=20.0, won_count=1, lost_count=1, runs_count=3)
        make_query(id='q-bad', ips_reward_sum=0.0, ips_weight_sum=12.0, lost_count=1)
        make_template(id='t1', ips_reward_sum=4.0, ips_weight_sum=4.0, won_count=1, times_sent=1)

        stats = db.learning_stats()
        assert [q['id'] for q in stats['queries']] == ['q-good', 'q-bad', 'q-new']
        assert stats['queries'][0]['ips_mean'] == 0.5
        assert stats['queries'][0]['runs_count'] == 3
        assert stats['queries'][2]['ips_mean'] == 0.0
        assert stats['templates'] == [{
            'id': 't1', 'name': stats['templates'][0]['name'], 'enabled': True,
            'times_sent': 1, 'won_count': 1, 'ips_mean': 1.0,
        }]

    def test_candidate_query_inserted_once(self, db_session):
        assert db.create_candidate_query('CANDIDATE:x', 'x', 'x need editor', 'WIDE_WEB') is True
        assert db.create_candidate_query('CANDIDATE:x', 'x', 'x need editor', 'WIDE_WEB') is False
        assert db_session.get(Query, 'CANDIDATE:x').enabled is False


# ── Weights ──────────────────────────────────────────────────────────────────

class TestWeights:

    def test_defaults_before_first_row(self):
        assert db.latest_weights() == ScoringWeights()

    def test_latest_is_highest_id(self):
        db.append_weights(ScoringWeights(intent_weight=1.2))
        second = db.append_weights(ScoringWeights(intent_weight=0.8), source_attempt_id='a1')
        assert second == 2
        assert db.latest_weights().intent_weight == 0.8

    def test_locked_read_on_sqlite(self, db_session):
        db.append_weights(ScoringWeights(budget_weight=1.5))
        assert db.latest_weights(db_session, for_update=True).budget_weight == 1.5

    def test_locked_read_takes_advisory_lock_on_postgres(self):
        session = MagicMock()
        session.get_bind.return_value.dialect.name = 'postgresql'
        ordered = session.query.return_value.order_by.return_value
        ordered.with_for_update.return_value.first.return_value = None

        assert db.latest_weights(session, for_update=True) == ScoringWeights()
        statement, params = session.execute.call_args.args
        assert 'pg_advisory_xact_lock' in str(statement)
        assert params == {'key': db.WEIGHTS_LOCK_KEY}
        ordered.with_for_update.assert_called_once_with()

    def test_locked_read_needs_caller_session(self):
        with pytest.raises(ValueError):
            db.latest_weights(for_update=True)


# ── Search runs ──────────────────────────────────────────────────────────────

class TestSearchRuns:

    def test_lifecycle(self, make_query):
        make_query(id='q1')
        make_query(id='q2')
        ok = db.create_search_run('b1', 'q1', 'mock')
        bad = db.create_search_run('b1', 'q2', 'mock')
        db.finish_search_run(ok, 'mock', 8, 4, 2)
        db.fail_search_run(bad, 'serp: HTTP 500')

        runs = {r['id']: r for r in db.search_runs_for_batch('b1')}
        assert runs[ok]['status'] == 'FINISHED'
        assert (runs[ok]['result_count'], runs[ok]['lead_count'], runs[ok]['qualified_count']) == (8, 4, 2)
        assert runs[ok]['finished_at'] is not None
        assert runs[bad]['status'] == 'FAILED'
        assert runs[bad]['error'] == 'serp: HTTP 500'

    def test_unknown_batch(self):
        assert db.search_runs_for_batch('nope') == []


# ── Entities ─────────────────────────────────────────────────────────────────

class TestEntities:

    def test_domain_creates_then_merges(self, db_session):
        first = db.resolve_or_create_entity(LeadIdentity(domain='acme.io'))
        second = db.resolve_or_create_entity(LeadIdentity(domain='acme.io', email='ops@acme.io'))
        assert first == second
        entity = db_session.get(Entity, first)
        assert entity.primary_domain == 'acme.io'
        assert entity.emails == ['ops@acme.io']

    def test_fuzzy_handle_match(self, db_session):
        entity_id = db.resolve_or_create_entity(LeadIdentity(domain='mayaclips.com'),
                                                handles={'instagram': 'mayaclips'})
        matched = db.resolve_or_create_entity(LeadIdentity(handle='mayaclip'))
        assert matched == entity_id
        entity = db_session.get(Entity, entity_id)
        assert entity.handles == {'instagram': 'mayaclips', 'x': 'mayaclip'}

    def test_distinct_domains_distinct_entities(self, db_session):
        a = db.resolve_or_create_entity(LeadIdentity(domain='a.com'))
        b = db.resolve_or_create_entity(LeadIdentity(domain='b.com'))
        assert a != b
        assert db_session.query(Entity).count() == 2
        assert sorted(db.top_entity_domains()) == ['a.com', 'b.com']

    def test_nothing_to_key_on(self):
        assert db.resolve_or_create_entity(LeadIdentity()) is None

    def test_platform_posts_do_not_collapse(self, db_session):
        a = db.resolve_or_create_entity(identity_from_url('https://www.reddit.com/r/podcasting/comments/aaa111/'))
        b = db.resolve_or_create_entity(identity_from_url('https://www.reddit.com/r/NewTubers/comments/bbb222/'))
        assert a is None and b is None

        maya = db.resolve_or_create_entity(identity_from_url('https://x.com/creatormaya/status/1'))
        jon = db.resolve_or_create_entity(identity_from_url('https://x.com/jonbuilds/status/2'))
        again = db.resolve_or_create_entity(identity_from_url('https://twitter.com/creatormaya/status/3'))
        assert maya != jon
        assert again == maya
        assert db_session.query(Entity).count() == 2
        entity = db_session.get(Entity, maya)
        assert entity.primary_domain is None
        assert entity.type == 'PERSON'
        assert db.top_entity_domains() == []


# ── Conversion patterns ──────────────────────────────────────────────────────

class TestConversionPatterns:

    def test_bump_and_rank(self, db_session):
        db.bump_conversion_patterns(db_session, ['podcast', 'deadline'], 'WON')
        db.bump_conversion_patterns(db_session, ['deadline'], 'LOST')
        db_session.commit()
        db_session.expire_all()
        assert db_session.query(ConversionPattern).filter_by(key='deadline').one().losses == 1
        assert db.top_conversion_patterns() == [('podcast', 1.0), ('deadline', 0.5)]
