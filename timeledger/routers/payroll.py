import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from timeledger.core.authorization import require_role
from timeledger.core.errors import LedgerError
from timeledger.core.roles import Caller, Role
from timeledger.database import SessionLocal
from timeledger.deps.auth import require_auth
from timeledger.deps.ledger import build_ledger, to_http_exception
from timeledger.models.employee import Employee
from timeledger.schemas.payroll import (
    ApproveHoursRequest,
    ApproveHoursResponse,
    DecisionRequest,
    PayrollCalculateRequest,
    PayrollCalculationResponse,
    PayrollHistoryResponse,
    PayrollSummaryResponse,
)
from timeledger.schemas.time_entry import TimeEntryResponse, to_response
from timeledger.services.payroll_service import (
    EmployeeRate,
    calculate_payroll,
    history_window,
    payroll_history,
    payroll_summary,
)
from timeledger.services.time_math import as_utc, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payroll", tags=["Payroll"])


@router.post("/calculate", response_model=PayrollCalculationResponse)
def calculate(
    payload: PayrollCalculateRequest,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        employee = (
            db.query(Employee)
            .filter(
                Employee.employee_id == str(payload.employee_id),
                Employee.company_id == int(caller.company_id),
            )
            .one_or_none()
        )
        if employee is None:
            raise HTTPException(status_code=404, detail="Employee not found")

        rate = payload.hourly_rate if payload.hourly_rate is not None else (employee.hourly_rate or 0)
        overtime_rate = payload.overtime_rate if payload.overtime_rate is not None else employee.overtime_rate

        try:
            entries = build_ledger(db).payroll_entries(
                caller.company_id,
                payload.period_start,
                payload.period_end,
                user_id=employee.employee_id,
            )
            result = calculate_payroll(
                entries,
                period_start=payload.period_start,
                period_end=payload.period_end,
                hourly_rate=rate,
                overtime_rate=overtime_rate,
                bonuses=[b.model_dump() for b in payload.bonuses],
                deductions=[d.model_dump() for d in payload.deductions],
                currency=employee.currency,
                employee_id=employee.employee_id,
            )
        except LedgerError as exc:
            raise to_http_exception(exc) from exc

        logger.info(
            "Payroll calculated",
            extra={
                "employee_id": employee.employee_id,
                "company_id": caller.company_id,
                "total_hours": str(result["hours"]["total"]),
                "net_pay": str(result["net_pay"]),
            },
        )
        result["employee_name"] = employee.name
        return result
    finally:
        db.close()


@router.get("/summary", response_model=PayrollSummaryResponse)
def summary(
    period_start: datetime,
    period_end: datetime,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    if as_utc(period_end) <= as_utc(period_start):
        raise HTTPException(status_code=400, detail="Period end must be after period start")

    db = SessionLocal()
    try:
        employees = (
            db.query(Employee)
            .filter(
                Employee.company_id == int(caller.company_id),
                Employee.is_active.is_(True),
            )
            .all()
        )
        entries = build_ledger(db).payroll_entries(caller.company_id, period_start, period_end)

        return payroll_summary(
            [
                EmployeeRate(
                    employee_id=e.employee_id,
                    name=e.name,
                    hourly_rate=e.hourly_rate,
                    overtime_rate=e.overtime_rate,
                    currency=e.currency,
                )
                for e in employees
            ],
            entries,
            period_start=period_start,
            period_end=period_end,
        )
    finally:
        db.close()


@router.post("/approve_hours", response_model=ApproveHoursResponse)
def approve_hours(
    payload: ApproveHoursRequest,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        results = build_ledger(db).approve_many(caller, payload.time_entry_ids, notes=payload.notes)
        db.commit()
        return results
    except LedgerError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.post("/entries/{time_entry_id}/reject", response_model=TimeEntryResponse)
def reject_entry(
    time_entry_id: str,
    payload: DecisionRequest,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        entry = build_ledger(db).reject(caller, time_entry_id, notes=payload.notes)
        db.commit()
        return to_response(entry)
    except LedgerError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("/employee/{employee_id}", response_model=PayrollHistoryResponse)
def employee_history(
    employee_id: str,
    months: int = Query(default=12, ge=1, le=36),
    as_of: Optional[datetime] = None,
    caller: Caller = Depends(require_auth),
):
    # employees may read their own history only
    if str(caller.user_id) != str(employee_id) and not caller.has_role(Role.MANAGER):
        raise HTTPException(status_code=403, detail="Access denied")

    db = SessionLocal()
    try:
        employee = (
            db.query(Employee)
            .filter(
                Employee.employee_id == str(employee_id),
                Employee.company_id == int(caller.company_id),
            )
            .one_or_none()
        )
        if employee is None:
            raise HTTPException(status_code=404, detail="Employee not found")

        as_of = as_of or utc_now()
        window_start, window_end = history_window(as_of, months)
        entries = build_ledger(db).payroll_entries(
            caller.company_id,
            window_start,
            window_end,
            user_id=employee.employee_id,
        )
        result = payroll_history(entries, hourly_rate=employee.hourly_rate, as_of=as_of, months=months)

        logger.info(
            "Payroll history requested",
            extra={
                "employee_id": employee.employee_id,
                "company_id": caller.company_id,
                "requested_by": caller.user_id,
                "months": months,
            },
        )
        result.update(
            employee_id=employee.employee_id,
            employee_name=employee.name,
            currency=employee.currency,
            hourly_rate=employee.hourly_rate,
        )
        return result
    finally:
        db.close()
