from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class EmployeeCreate(BaseModel):
    name: str
    email: Optional[str] = None
    role: Literal["EMPLOYEE", "MANAGER", "ADMIN"] = "EMPLOYEE"
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    overtime_rate: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    company_id: int
    name: str
    email: Optional[str]
    role: str
    hourly_rate: Optional[Decimal]
    overtime_rate: Optional[Decimal]
    currency: str
    is_active: bool
    created_at: datetime
