"""
ScoringWeights model: append-only history of scoring weights.

Rows are never updated. The current weights are the most recently created
row; every outcome appends a new one so past propensities stay attributable
to the weights they were recorded under.
"""
from sqlalchemy import Column, Integer, Float, Text, DateTime
from sqlalchemy.sql import func

from leadloop.database import Base


class ScoringWeightsRecord(Base):
    __tablename__ = 'scoring_weights'

    id = Column(Integer, primary_key=True, autoincrement=True)
    intent_weight = Column(Float, nullable=False, default=1.0)
    urgency_weight = Column(Float, nullable=False, default=1.0)
    budget_weight = Column(Float, nullable=False, default=1.0)
    fit_weight = Column(Float, nullable=False, default=1.0)
    source_attempt_id = Column(Text, nullable=True)  # outcome that produced this row
    created_at = Column(DateTime(timezone=True), server_default=func.now())
