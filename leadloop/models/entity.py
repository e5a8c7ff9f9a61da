"""
Entity model: a resolved company/person behind one or more leads.

Created on the first unmatched domain, merged into when new identity signals
show up, never deleted. Leads point at entities; entities do not list leads.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, JSON
from sqlalchemy.sql import func

from leadloop.database import Base


class Entity(Base):
    __tablename__ = 'entities'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(Text, nullable=False, default='COMPANY')  # COMPANY (has a domain) / PERSON (handle only)
    display_name = Column(Text, nullable=True)
    primary_domain = Column(Text, nullable=True, unique=True)
    domains = Column(JSON, default=list)
    emails = Column(JSON, default=list)
    handles = Column(JSON, default=dict)  # platform → handle
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
