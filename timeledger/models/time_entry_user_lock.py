from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from timeledger.database import Base


class TimeEntryUserLock(Base):
    """One row per (company, user); locked while that user's entries are written."""

    __tablename__ = "time_entry_user_locks"

    company_id = Column(Integer, primary_key=True)
    user_id = Column(String, primary_key=True)
    locked_at = Column(DateTime, nullable=False, default=datetime.utcnow)
