import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String

from timeledger.database import Base


class Employee(Base):
    __tablename__ = "employees"

    employee_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String, nullable=False, default="EMPLOYEE")
    hourly_rate = Column(Numeric(12, 4), nullable=True)
    overtime_rate = Column(Numeric(12, 4), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="ck_employees_hourly_rate_nonnegative"),
        CheckConstraint("overtime_rate IS NULL OR overtime_rate >= 0", name="ck_employees_overtime_rate_nonnegative"),
    )
