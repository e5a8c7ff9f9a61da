"""
OutreachAttempt model: one immutable allocation decision.

query_prob and template_prob are the propensities observed when the choice
was made; overall_prob is their product, frozen at insert time. The outcome
columns are written exactly once when the WON/LOST event arrives.
"""
import uuid

from sqlalchemy import Column, Float, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from leadloop.database import Base


class OutreachAttempt(Base):
    __tablename__ = 'outreach_attempts'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, index=True)
    query_id = Column(Text, ForeignKey('queries.id'), nullable=True)
    template_id = Column(Text, ForeignKey('templates.id'), nullable=True)
    query_prob = Column(Float, nullable=False)
    template_prob = Column(Float, nullable=False)
    overall_prob = Column(Float, nullable=False)
    message = Column(Text, nullable=True)
    meta = Column(JSON, default=dict)
    outcome = Column(Text, nullable=True)  # WON / LOST
    outcome_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
