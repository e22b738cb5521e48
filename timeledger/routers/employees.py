from typing import List

from fastapi import APIRouter, Depends, HTTPException

from timeledger.core.authorization import require_role
from timeledger.core.roles import Caller, Role
from timeledger.database import SessionLocal
from timeledger.deps.auth import require_auth
from timeledger.models.employee import Employee
from timeledger.schemas.employee import EmployeeCreate, EmployeeResponse

router = APIRouter(prefix="/employees", tags=["Employees"])


@router.post("", response_model=EmployeeResponse)
def create_employee(
    payload: EmployeeCreate,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = Employee(
            company_id=int(caller.company_id),
            name=payload.name,
            email=payload.email,
            role=payload.role,
            hourly_rate=payload.hourly_rate,
            overtime_rate=payload.overtime_rate,
            currency=payload.currency.upper(),
            is_active=True,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@router.get("", response_model=List[EmployeeResponse])
def list_employees(caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        rows = (
            db.query(Employee)
            .filter(Employee.company_id == int(caller.company_id))
            .order_by(Employee.name.asc(), Employee.employee_id.asc())
            .all()
        )
        return rows
    finally:
        db.close()


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(employee_id: str, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        row = (
            db.query(Employee)
            .filter(
                Employee.employee_id == str(employee_id),
                Employee.company_id == int(caller.company_id),
            )
            .first()
        )
        if row is None:
            raise HTTPException(status_code=404, detail="Employee not found")
        return row
    finally:
        db.close()
