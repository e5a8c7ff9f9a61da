"""
LeadEvent model: append-only audit trail of what happened to a lead.

Types: QUALIFIED, UPDATED, REJECTED, TEMPLATE_SENT, WON, LOST.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func

from leadloop.database import Base


class LeadEvent(Base):
    __tablename__ = 'lead_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, index=True)
    type = Column(Text, nullable=False)
    meta = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
