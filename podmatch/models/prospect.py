"""
ProspectDashboard model — a sales prospect plus the outreach spreadsheet the
matching pipeline appends to.
"""
from sqlalchemy import Column, Text, DateTime, Boolean
from sqlalchemy.sql import func

from podmatch.database import Base


class ProspectDashboard(Base):
    __tablename__ = 'prospect_dashboards'

    id = Column(Text, primary_key=True)
    prospect_name = Column(Text, nullable=False, default='')
    prospect_bio = Column(Text, nullable=True)
    prospect_tagline = Column(Text, nullable=True)
    spreadsheet_id = Column(Text, nullable=True)
    spreadsheet_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
