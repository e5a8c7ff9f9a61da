"""
Outreach templates: contextual choice through the bandit, then rendering.

A template's score is a flat 10, +30 for each of buyer type / service tag /
pain tag that matches the lead, + win rate × 10, + UCB1 × 5. The bandit turns
those scores into a softmax draw, so the returned probability is the template
propensity stored on the outreach attempt.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Any
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from leadloop.config import (
    ORDER_PAGE_URL, UTM_SOURCE_DEFAULT, UTM_MEDIUM_DEFAULT, UTM_CAMPAIGN_DEFAULT,
)
from leadloop.services.bandit import Arm, Selection, select_one, ucb1

logger = logging.getLogger('pipeline.outreach')

CONTEXT_BASE = 10
CONTEXT_MATCH_BONUS = 30
WIN_RATE_SCALE = 10
UCB_SCALE = 5

_PLACEHOLDER = re.compile(r'\{(\w+)\}')


@dataclass
class TemplateContext:
    buyer_type: Optional[str] = None
    pain_tags: List[str] = field(default_factory=list)
    service_tags: List[str] = field(default_factory=list)
    name: Optional[str] = None
    order_page_url: Optional[str] = ORDER_PAGE_URL
    utm_source: str = UTM_SOURCE_DEFAULT
    utm_medium: str = UTM_MEDIUM_DEFAULT
    utm_campaign: str = UTM_CAMPAIGN_DEFAULT

    @classmethod
    def for_lead(cls, lead):
        return cls(
            buyer_type=lead.buyer_type,
            pain_tags=list(lead.pain_tags or []),
            service_tags=list(lead.service_tags or []),
        )


def template_score(template: Any, ctx: TemplateContext, total_sends: int) -> float:
    s = CONTEXT_BASE
    if ctx.buyer_type and template.buyer_type and template.buyer_type == ctx.buyer_type:
        s += CONTEXT_MATCH_BONUS
    if template.service_tag and template.service_tag in ctx.service_tags:
        s += CONTEXT_MATCH_BONUS
    if template.pain_tag and template.pain_tag in ctx.pain_tags:
        s += CONTEXT_MATCH_BONUS

    sent = max(0, template.times_sent or 0)
    wins = max(0, template.won_count or 0)
    win_rate = wins / sent if sent > 0 else 0
    s += win_rate * WIN_RATE_SCALE
    s += ucb1(wins, sent, max(1, total_sends)) * UCB_SCALE
    return s


def pick_template(templates: List[Any], ctx: TemplateContext, rng=None) -> Selection:
    """Draw one enabled template; raises NoEligibleItemsError when none are enabled."""
    enabled = [t for t in templates if t.enabled]
    arms = [Arm(item=t, trials=max(0, t.times_sent or 0), wins=max(0, t.won_count or 0)) for t in enabled]
    selection = select_one(
        arms,
        rng=rng,
        scorer=lambda arm, total: template_score(arm.item, ctx, total),
        kind='templates',
    )
    logger.debug("Picked template %s (p=%.4f)", selection.item.id, selection.probability)
    return selection


def add_utm(url: str, source: str, medium: str, campaign: str) -> str:
    parts = urlsplit(url)
    params = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
              if k not in ('utm_source', 'utm_medium', 'utm_campaign')]
    params += [('utm_source', source), ('utm_medium', medium), ('utm_campaign', campaign)]
    return urlunsplit((parts.scheme, parts.netloc, parts.path or '/', urlencode(params), parts.fragment))


def render_template(body: str, ctx: TemplateContext) -> str:
    """Fill {name} {pain_1} {service} {order_link}; unknown placeholders stay as written."""
    order_link = ''
    if ctx.order_page_url:
        order_link = add_utm(ctx.order_page_url, ctx.utm_source, ctx.utm_medium, ctx.utm_campaign)

    values = {
        'name': ctx.name or 'there',
        'pain_1': ctx.pain_tags[0] if ctx.pain_tags else 'that',
        'service': ctx.service_tags[0] if ctx.service_tags else 'short-form editing',
        'order_link': order_link,
    }
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), body or '')
