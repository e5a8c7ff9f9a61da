"""
SearchRun model: one row per query pass (the per-query run record).

A failed provider call marks only this row FAILED; the rest of the batch
carries on.
"""
import uuid

from sqlalchemy import Column, Text, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func

from leadloop.database import Base


class SearchRun(Base):
    __tablename__ = 'search_runs'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id = Column(Text, nullable=False, index=True)
    query_id = Column(Text, ForeignKey('queries.id'), nullable=False)
    status = Column(Text, nullable=False, default='RUNNING')
    provider = Column(Text, default='')
    result_count = Column(Integer, default=0)
    lead_count = Column(Integer, default=0)
    qualified_count = Column(Integer, default=0)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
