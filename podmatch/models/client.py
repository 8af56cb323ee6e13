"""
Client model — a paying client whose outreach list lives in a Google Sheet.
"""
from sqlalchemy import Column, Text, DateTime
from sqlalchemy.sql import func

from podmatch.database import Base


class Client(Base):
    __tablename__ = 'clients'

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False, default='')
    bio = Column(Text, nullable=True)
    tagline = Column(Text, nullable=True)
    google_sheet_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
