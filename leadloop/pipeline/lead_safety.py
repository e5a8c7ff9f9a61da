"""
Lead safety: cheap pre-score rejection of results that are never buyers.

Checked in order, first hit wins:
  JOB_BOARD        job-board / ATS host
  JOB_TEXT         job-posting boilerplate in title or snippet
  INFORMATIONAL    how-to / guide content (or YouTube) without a concrete editor ask
  SELLER_PLATFORM  portfolio or marketplace host
  SELLER_INTENT    self-promotion with no buyer phrasing
  ROLE_MISMATCH    hiring, but for a non-editing role
"""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

JOB_HOSTS = {
    'linkedin.com', 'www.linkedin.com',
    'ziprecruiter.com', 'www.ziprecruiter.com',
    'monster.com', 'www.monster.com',
    'careerbuilder.com', 'www.careerbuilder.com',
    'simplyhired.com', 'www.simplyhired.com',
    'jobrapido.com', 'www.jobrapido.com',
    'jooble.org', 'www.jooble.org',
    'indeed.com', 'www.indeed.com',
    'glassdoor.com', 'www.glassdoor.com',
    'greenhouse.io', 'boards.greenhouse.io',
    'lever.co', 'jobs.lever.co',
    'workable.com', 'jobs.workable.com',
    'ashbyhq.com', 'jobs.ashbyhq.com',
}

JOB_TEXT_HINTS = [
    'apply now',
    'job description',
    'full-time',
    'part-time',
    'salary',
    'compensation',
    'requirements',
    'responsibilities',
    'equal opportunity employer',
]

INFO_INTENT_HINTS = [
    'how to find',
    'how to hire',
    'guide to hiring',
    'tips for hiring',
    'where to find',
    'best way to hire',
    'when to hire',
    'what to look for',
    'how much does it cost',
    'pricing guide',
]

INFO_HOSTS = {'youtube.com', 'www.youtube.com'}

BUYER_INTENT_HINTS = [
    'looking for',
    'need an editor',
    'need editor',
    'need a video editor',
    'editor needed',
    'hiring',
    'hire',
    'seeking',
    'anyone recommend',
    'recommend an editor',
    'can someone edit',
    'need someone to edit',
    'looking to outsource',
    'outsourcing',
    'budget',
]

EDITING_ROLE_HINTS = [
    'editor',
    'video editor',
    'shorts editor',
    'reels editor',
    'tiktok editor',
    'podcast editor',
    'post production',
    'capcut',
    'premiere',
    'after effects',
]

NON_EDITING_ROLE_HINTS = [
    'affiliate',
    'growth specialist',
    'media buyer',
    'ads manager',
    'appointment setter',
    'setter',
    'closer',
    'virtual assistant',
    'va',
    'social media manager',
    'smm',
    'community manager',
    'brand ambassador',
    'ugc creator',
    'content creator',
    'thumbnail designer',
    'scriptwriter',
    'copywriter',
]

SELLER_INTENT_HINTS = [
    'for hire',
    'available for work',
    'available for hire',
    'open for work',
    'my services',
    'i offer',
    'i can edit',
    'dm me',
    'message me',
    'contact me',
    'portfolio',
    'showreel',
    'reel available',
    'rates start',
    'starting at $',
    'book a call',
]

SELLER_HOSTS = {
    'behance.net', 'www.behance.net',
    'dribbble.com', 'www.dribbble.com',
    'upwork.com', 'www.upwork.com',
    'fiverr.com', 'www.fiverr.com',
}

_HIRINGISH = re.compile(r'\bhiring\b|\bhire\b|\blooking for\b|\bseeking\b')


@dataclass
class LeadRejection:
    rejected: bool
    reason: Optional[str] = None


def _any(text, hints):
    return any(h in text for h in hints)


def reject_job_lead(url: str, title: Optional[str] = None, snippet: Optional[str] = None) -> LeadRejection:
    """Unparsable URLs pass through; the canonicalizer rejects them later."""
    try:
        parts = urlsplit(url or '')
        host = (parts.hostname or '').lower()
    except ValueError:
        return LeadRejection(False)
    if not parts.scheme or not host:
        return LeadRejection(False)

    if host in JOB_HOSTS:
        return LeadRejection(True, 'JOB_BOARD')

    text = f"{title or ''}\n{snippet or ''}".lower()
    if _any(text, JOB_TEXT_HINTS):
        return LeadRejection(True, 'JOB_TEXT')

    buyer = _any(text, BUYER_INTENT_HINTS)
    editing_role = _any(text, EDITING_ROLE_HINTS)
    informational = _any(text, INFO_INTENT_HINTS)

    if (host in INFO_HOSTS or informational) and not (buyer and editing_role):
        return LeadRejection(True, 'INFORMATIONAL')

    if host in SELLER_HOSTS:
        return LeadRejection(True, 'SELLER_PLATFORM')

    if _any(text, SELLER_INTENT_HINTS) and not buyer:
        return LeadRejection(True, 'SELLER_INTENT')

    if _HIRINGISH.search(text) and _any(text, NON_EDITING_ROLE_HINTS) and not editing_role:
        return LeadRejection(True, 'ROLE_MISMATCH')

    return LeadRejection(False)
