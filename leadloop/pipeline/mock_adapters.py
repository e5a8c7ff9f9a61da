"""
Mock search provider: canned results for local runs and demos.

Selected with SEARCH_PROVIDER=mock. Returns a realistic mix of buyer posts,
freelancer self-promotion, job-board listings and how-to articles so every
branch of the run (reject, review, outreach-ready) shows up end to end.
"""
import logging
from typing import List

from leadloop.services.search import SearchProvider, SearchResult, register_provider

logger = logging.getLogger('pipeline.mock')


MOCK_RESULTS = [
    {
        'link': 'https://www.reddit.com/r/podcasting/comments/1ab2cd3/need_a_video_editor_asap/?utm_source=share',
        'title': 'Need a video editor ASAP for podcast clips',
        'snippet': 'Looking for an editor to turn our weekly podcast episode into shorts. '
                   'Budget is $400/week, hiring this week. Need someone to edit with captions.',
        'date': '2025-01-14',
    },
    {
        'link': 'https://growthcollective.io/forum/t/hiring-shorts-editor/812#reply-4',
        'title': 'Hiring: shorts editor for agency clients (white label)',
        'snippet': 'Our agency is hiring a shorts editor. Paid retainer, captions and reels editor experience. '
                   'Need an editor who can deliver same day.',
        'date': '2025-01-12',
    },
    {
        'link': 'https://x.com/creatormaya/status/1790012345678?s=20',
        'title': 'Maya on X',
        'snippet': 'Anyone know a good tiktok editor? Looking for an editor, editing takes me forever and I am '
                   'swamped. Budget ready.',
        'date': '2025-01-11',
    },
    {
        'link': 'https://editsbyjon.com/services',
        'title': 'Video editor for hire | Jon Edits',
        'snippet': 'Available for work. Check my portfolio and showreel, DM me to book a call. '
                   'My services include shorts and reels.',
        'date': '2024-12-30',
    },
    {
        'link': 'https://www.upwork.com/freelance-jobs/apply/Video-Editor-Shorts_~01ab',
        'title': 'Video Editor for Shorts - Upwork',
        'snippet': 'Need an editor for 20 shorts. Fixed price.',
        'date': '2025-01-10',
    },
    {
        'link': 'https://www.linkedin.com/jobs/view/3801234567',
        'title': 'Video Editor - Full-time',
        'snippet': 'Apply now. Job description: responsibilities include editing. Salary competitive.',
        'date': '2025-01-09',
    },
    {
        'link': 'https://blog.example-saas.com/where-to-find-creative-talent',
        'title': 'Where to find creative talent in 2025',
        'snippet': 'A pricing guide: what to look for, how much does it cost, and tips for hiring creatives.',
        'date': '2024-11-02',
    },
    {
        'link': 'https://www.facebook.com/groups/coachesunite/posts/99123',
        'title': 'Coaches Unite',
        'snippet': 'Hiring an appointment setter for my coaching offer, commission plus base. DM if interested.',
        'date': '2025-01-08',
    },
]


@register_provider
class MockSearchProvider(SearchProvider):
    name = 'mock'

    def search(self, query: str, num: int = 10) -> List[SearchResult]:
        logger.info("[MOCK] search %r → %d canned results", query, min(num, len(MOCK_RESULTS)))
        return [SearchResult(source='MOCK', **item) for item in MOCK_RESULTS[:num]]
