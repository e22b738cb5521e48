from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from timeledger.database import Base

OPEN_TIMER_PREDICATE = text("status IN ('running', 'paused')")


class TimeEntry(Base):
    __tablename__ = "time_entries"

    time_entry_id = Column(String, primary_key=True, index=True)

    company_id = Column(Integer, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)

    project_id = Column(String, nullable=True, index=True)
    task_id = Column(String, nullable=True, index=True)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)

    status = Column(String, nullable=False, index=True)

    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    billable = Column(Boolean, nullable=False, default=True)
    rate = Column(Numeric(12, 4), nullable=True)

    keyboard_count = Column(Integer, nullable=False, default=0)
    mouse_count = Column(Integer, nullable=False, default=0)
    activity_total = Column(Integer, nullable=False, default=0)
    activity_level = Column(String, nullable=True)

    approval_status = Column(String, nullable=False, default="pending", index=True)
    approver_id = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approval_notes = Column(Text, nullable=True)

    is_edited = Column(Boolean, nullable=False, default=False)
    original_duration = Column(Integer, nullable=True)
    edited_by = Column(String, nullable=True)
    edited_at = Column(DateTime, nullable=True)
    edit_reason = Column(Text, nullable=True)

    manual = Column(Boolean, nullable=False, default=False)
    source = Column(String, nullable=False, default="web")

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    breaks = relationship(
        "TimeEntryBreak",
        order_by="TimeEntryBreak.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("end_time IS NULL OR end_time >= start_time", name="ck_time_entries_end_after_start"),
        CheckConstraint("duration IS NULL OR duration >= 0", name="ck_time_entries_duration_nonnegative"),
        CheckConstraint("status IN ('running', 'paused', 'stopped')", name="ck_time_entries_status"),
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="ck_time_entries_approval_status",
        ),
        Index("ix_time_entries_user_start", "company_id", "user_id", "start_time"),
        Index(
            "uq_time_entries_open_timer",
            "company_id",
            "user_id",
            unique=True,
            postgresql_where=OPEN_TIMER_PREDICATE,
            sqlite_where=OPEN_TIMER_PREDICATE,
        ),
    )
