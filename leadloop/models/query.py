"""
Query model: a saved search query and its bandit counters.

runs_count / won_count are the bandit trials / wins. ips_reward_sum and
ips_weight_sum accumulate inverse-propensity-weighted rewards so the unbiased
mean reward is ips_reward_sum / ips_weight_sum. Counters are only ever
changed through atomic increments in services.db.
"""
import uuid

from sqlalchemy import Column, Integer, Float, Boolean, Text, DateTime
from sqlalchemy.sql import func

from leadloop.database import Base
from leadloop.services.counterfactual import ips_mean


class Query(Base):
    __tablename__ = 'queries'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    query = Column(Text, nullable=False)
    source_pack = Column(Text, default='WIDE_WEB')  # FORUMS / SOCIAL / PROFESSIONAL / WIDE_WEB
    enabled = Column(Boolean, nullable=False, default=True)

    runs_count = Column(Integer, nullable=False, default=0)
    leads_count = Column(Integer, nullable=False, default=0)
    qualified_count = Column(Integer, nullable=False, default=0)
    won_count = Column(Integer, nullable=False, default=0)
    lost_count = Column(Integer, nullable=False, default=0)
    ips_reward_sum = Column(Float, nullable=False, default=0.0)
    ips_weight_sum = Column(Float, nullable=False, default=0.0)

    last_run_at = Column(DateTime(timezone=True), nullable=True)
    last_win_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def ips_mean(self):
        """Unbiased mean reward of leads this query produced; 0.0 before any outcome."""
        return ips_mean(self.ips_reward_sum or 0.0, self.ips_weight_sum or 0.0)

    def to_stats(self):
        return {
            'id': self.id,
            'name': self.name,
            'enabled': self.enabled,
            'runs_count': self.runs_count,
            'won_count': self.won_count,
            'lost_count': self.lost_count,
            'ips_mean': self.ips_mean,
        }
