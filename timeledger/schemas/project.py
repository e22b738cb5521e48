from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    company_id: int
    name: str
    description: Optional[str]
    status: str
    created_at: datetime


class TaskCreate(BaseModel):
    title: str


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: str
    company_id: int
    project_id: str
    title: str
    status: str
    created_at: datetime


class HourTotals(BaseModel):
    count: int
    total_hours: Decimal
    billable_hours: Decimal
    billable_amount: Decimal


class ProjectTotals(HourTotals):
    last_activity: Optional[datetime] = None


class TaskDetail(TaskResponse):
    totals: HourTotals


class ProjectDetailResponse(ProjectResponse):
    totals: ProjectTotals
    tasks: List[TaskDetail]
