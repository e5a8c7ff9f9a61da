"""
Template model: an outreach message template and its bandit counters.
"""
import uuid

from sqlalchemy import Column, Integer, Float, Boolean, Text, DateTime
from sqlalchemy.sql import func

from leadloop.database import Base
from leadloop.services.counterfactual import ips_mean


class Template(Base):
    __tablename__ = 'templates'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    body = Column(Text, nullable=False)  # {name} {pain_1} {service} {order_link} placeholders
    buyer_type = Column(Text, nullable=True)   # AGENCY / PODCASTER
    service_tag = Column(Text, nullable=True)  # PODCAST_REPURPOSE / SHORT_FORM / CAPTIONS
    pain_tag = Column(Text, nullable=True)     # PAIN_SWAMPED / PAIN_DEADLINE / PAIN_NO_VIEWS
    enabled = Column(Boolean, nullable=False, default=True)

    times_sent = Column(Integer, nullable=False, default=0)
    won_count = Column(Integer, nullable=False, default=0)
    ips_reward_sum = Column(Float, nullable=False, default=0.0)
    ips_weight_sum = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def ips_mean(self):
        return ips_mean(self.ips_reward_sum or 0.0, self.ips_weight_sum or 0.0)

    def to_stats(self):
        return {
            'id': self.id,
            'name': self.name,
            'enabled': self.enabled,
            'times_sent': self.times_sent,
            'won_count': self.won_count,
            'ips_mean': self.ips_mean,
        }
