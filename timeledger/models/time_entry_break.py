from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from timeledger.database import Base


class TimeEntryBreak(Base):
    __tablename__ = "time_entry_breaks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    time_entry_id = Column(
        String,
        ForeignKey("time_entries.time_entry_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)
    type = Column(String, nullable=False, default="short")

    __table_args__ = (
        UniqueConstraint("time_entry_id", "position", name="uq_time_entry_breaks_position"),
    )
