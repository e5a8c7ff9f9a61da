"""
ConversionPattern model: win/loss tallies per message pattern, used to seed
query expansion.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from leadloop.database import Base


class ConversionPattern(Base):
    __tablename__ = 'conversion_patterns'

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(Text, nullable=False, unique=True)
    wins = Column(Integer, default=0)
    losses = Column(Integer, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def win_rate(self):
        return (self.wins or 0) / max(1, (self.wins or 0) + (self.losses or 0))
