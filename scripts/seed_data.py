#!/usr/bin/env python3
"""
Seed starter queries, outreach templates and the first scoring-weights row.

Curated queries are upserted and enabled by id (their name). Any other query
that is not a CANDIDATE: proposal is switched off, so the curated list is the
whole live set after a seed.

Usage:
    python scripts/seed_data.py          # seed / refresh everything
    python scripts/seed_data.py --clear  # wipe queries, templates and weights first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadloop.database import get_session, init_db
from leadloop.models.query import Query
from leadloop.models.template import Template
from leadloop.models.scoring_weights import ScoringWeightsRecord

NEGATIVES = '-job -jobs -portfolio -"for hire" -upwork -fiverr -ziprecruiter -indeed'

QUERIES = [
    {
        'name': 'Master Query (balanced)',
        'query': '("looking for" OR "need" OR "hiring" OR "editor needed" OR "seeking") '
                 '("video editor" OR "short form editor" OR "reels editor" OR "tiktok editor" OR '
                 '"podcast editor" OR "repurpose") (budget OR paid OR rate OR retainer OR asap OR deadline) '
                 f'{NEGATIVES} -salary -apply',
        'source_pack': 'WIDE_WEB',
    },
    {
        'name': 'Agency Overflow (buyer intent)',
        'query': '(agency OR "for my client" OR clients OR "white label") ("need" OR "looking for" OR hiring '
                 'OR outsource) (editor OR "video editor" OR "short form" OR reels OR tiktok) '
                 f'(budget OR retainer OR paid OR deadline) {NEGATIVES}',
        'source_pack': 'PROFESSIONAL',
    },
    {
        'name': 'Podcast Repurpose (buyer intent)',
        'query': '(podcast OR episode) (repurpose OR clips OR shorts) ("looking for" OR "need" OR hiring OR '
                 f'outsource) (editor OR "video editor") (paid OR budget OR rate OR retainer) {NEGATIVES}',
        'source_pack': 'FORUMS',
    },
    {
        'name': 'Urgent / Deadline (buyer intent)',
        'query': '(urgent OR asap OR deadline OR "this week" OR "today") ("looking for" OR "need" OR hiring) '
                 f'("video editor" OR editor) (paid OR budget OR rate) {NEGATIVES} -salary -apply',
        'source_pack': 'WIDE_WEB',
    },
    {
        'name': 'Community Hiring Posts (forums/social)',
        'query': '("editor needed" OR "looking for an editor" OR "hiring" OR "need someone to edit") '
                 '(shorts OR reels OR tiktok OR podcast) (paid OR budget OR rate OR $) '
                 '-job -jobs -apply -portfolio -"for hire" -ziprecruiter -indeed',
        'source_pack': 'SOCIAL',
    },
    {
        'name': 'Specific deliverable: captions/subtitles',
        'query': '(captions OR subtitles) ("looking for" OR "need" OR hiring OR outsource) '
                 f'(editor OR "video editor") (paid OR budget OR rate) {NEGATIVES}',
        'source_pack': 'WIDE_WEB',
    },
]

TEMPLATES = [
    {
        'name': 'DM_1 Generic',
        'body': 'Hey {name}, saw your post about {pain_1}. I help turn long-form into high-retention short '
                'clips (captions + hooks). Happy to do a quick sample on one clip so you can judge the style.'
                '\n\nIf this is timely, what deadline are you working with? {order_link}',
    },
    {
        'name': 'DM_1 Agency',
        'buyer_type': 'AGENCY',
        'body': "Hey {name}, sounds like you're handling client overflow ({pain_1}). I support agencies with "
                'reliable short-form editing capacity (48-hour standard / 12-hour rush).'
                '\n\nPricing and a sample workflow: {order_link}',
    },
    {
        'name': 'DM_1 Podcaster',
        'buyer_type': 'PODCASTER',
        'service_tag': 'PODCAST_REPURPOSE',
        'body': "Hey {name}, if you're repurposing podcast episodes into clips, I can take the full pipeline: "
                'selection, subtitles, hooks and platform-ready exports.'
                '\n\nHow many clips a week are you aiming for right now? {order_link}',
    },
    {
        'name': 'DM_1 Deadline',
        'pain_tag': 'PAIN_DEADLINE',
        'service_tag': 'SHORT_FORM',
        'body': 'Hey {name}, saw you need {service} on a deadline. 12-hour rush is available. '
                'Send the footage here and I will turn it around: {order_link}',
    },
]


def seed_queries(session):
    curated = set()
    for q in QUERIES:
        curated.add(q['name'])
        row = session.get(Query, q['name'])
        if row is None:
            session.add(Query(id=q['name'], enabled=True, **q))
        else:
            row.name = q['name']
            row.query = q['query']
            row.source_pack = q['source_pack']
            row.enabled = True

    disabled = 0
    for row in session.query(Query).all():
        if row.id in curated or row.id.startswith('CANDIDATE:'):
            continue
        if row.enabled:
            row.enabled = False
            disabled += 1
    print(f'  Queries: {len(QUERIES)} curated, {disabled} others disabled')


def seed_templates(session):
    for t in TEMPLATES:
        row = session.get(Template, t['name'])
        if row is None:
            session.add(Template(id=t['name'], enabled=True, **t))
        else:
            for key, value in t.items():
                setattr(row, key, value)
    print(f'  Templates: {len(TEMPLATES)}')


def seed_weights(session):
    if session.query(ScoringWeightsRecord).first() is None:
        session.add(ScoringWeightsRecord())
        print('  Scoring weights: initial row created')


def clear_seeded_data(session):
    session.query(ScoringWeightsRecord).delete()
    session.query(Template).delete()
    session.query(Query).delete()
    session.commit()
    print('Cleared queries, templates and scoring weights.')


def main():
    parser = argparse.ArgumentParser(description='Seed starter queries and templates')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before seeding')
    args = parser.parse_args()

    # Ensure tables exist (for SQLite local dev)
    init_db()

    session = get_session()
    try:
        if args.clear:
            clear_seeded_data(session)

        print('Seeding...')
        seed_queries(session)
        seed_templates(session)
        seed_weights(session)
        session.commit()
        print('\nDone! POST /api/runs to start a batch.')

    except Exception as e:
        session.rollback()
        print(f'Error: {e}')
        raise
    finally:
        session.close()


if __name__ == '__main__':
    main()
