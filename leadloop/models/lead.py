"""
Lead model: one row per unique canonical URL, deduplicated by canonical_hash.
"""
import uuid

from sqlalchemy import Column, Integer, Float, Boolean, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from leadloop.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    canonical_hash = Column(Text, nullable=False, unique=True)
    canonical_url = Column(Text, nullable=False)
    source = Column(Text, default='')
    source_url = Column(Text, default='')
    title = Column(Text, nullable=True)
    snippet = Column(Text, nullable=True)
    published_at = Column(Text, nullable=True)  # provider date string, kept as-is

    # Score breakdown
    score = Column(Integer, default=0)
    intent_depth = Column(Integer, default=0)
    urgency_velocity = Column(Integer, default=0)
    budget_signals = Column(Integer, default=0)
    fit_precision = Column(Integer, default=0)
    buyer_type = Column(Text, nullable=True)
    pain_tags = Column(JSON, default=list)
    service_tags = Column(JSON, default=list)
    rush_12_hour_eligible = Column(Boolean, default=False)

    # Intent verdict
    intent_class = Column(Text, nullable=True)
    intent_confidence = Column(Float, nullable=True)

    status = Column(Text, nullable=False, default='NEW')
    rejected_reason = Column(Text, nullable=True)
    meta = Column(JSON, default=dict)  # proof lines, buyer/seller scores, emails, socials

    entity_id = Column(Text, ForeignKey('entities.id'), nullable=True)
    query_id = Column(Text, ForeignKey('queries.id'), nullable=True)
    run_id = Column(Text, ForeignKey('search_runs.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def feature_vector(self):
        """The four sub-scores the weight learner tunes against."""
        return {
            'intent_depth': self.intent_depth or 0,
            'urgency_velocity': self.urgency_velocity or 0,
            'budget_signals': self.budget_signals or 0,
            'fit_precision': self.fit_precision or 0,
        }
