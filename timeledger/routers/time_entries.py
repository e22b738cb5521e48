from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response

from timeledger.core.errors import LedgerError
from timeledger.core.roles import Caller
from timeledger.database import SessionLocal
from timeledger.deps.auth import require_auth
from timeledger.deps.ledger import build_ledger, to_http_exception
from timeledger.schemas.time_entry import (
    ActivityRequest,
    ManualEntryRequest,
    PauseRequest,
    StartTimerRequest,
    TimeEntryListResponse,
    TimeEntryResponse,
    UpdateEntryRequest,
    to_response,
)
from timeledger.services.reporting_service import entry_totals

router = APIRouter(
    prefix="/time_entries",
    tags=["Time Entries"],
)


@router.get("", response_model=TimeEntryListResponse)
def list_time_entries(
    caller: Caller = Depends(require_auth),
    user_id: Optional[str] = None,
    project_id: Optional[str] = None,
    task_id: Optional[str] = None,
    status: Optional[Literal["running", "paused", "stopped"]] = None,
    billable: Optional[bool] = None,
    started_from: Optional[datetime] = None,
    started_to: Optional[datetime] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    db = SessionLocal()
    try:
        ledger = build_ledger(db)
        try:
            rows = ledger.list_entries(
                caller,
                user_id=user_id,
                project_id=project_id,
                task_id=task_id,
                status=status,
                billable=billable,
                started_from=started_from,
                started_to=started_to,
                limit=limit,
                offset=offset,
            )
        except LedgerError as exc:
            raise to_http_exception(exc) from exc

        return {
            "limit": int(limit),
            "offset": int(offset),
            "rows": [to_response(r) for r in rows],
            "totals": entry_totals(rows),
        }
    finally:
        db.close()


@router.get("/current", response_model=Optional[TimeEntryResponse])
def get_current_timer(caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        entry = build_ledger(db).current(caller)
        return None if entry is None else to_response(entry)
    finally:
        db.close()


@router.post("/start", response_model=TimeEntryResponse, status_code=201)
def start_timer(payload: StartTimerRequest, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        entry = build_ledger(db).start(
            caller,
            project_id=payload.project_id,
            task_id=payload.task_id,
            description=payload.description,
            tags=payload.tags,
            billable=payload.billable,
            rate=payload.rate,
            source=payload.source,
        )
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


@router.post("/manual", response_model=TimeEntryResponse, status_code=201)
def create_manual_entry(payload: ManualEntryRequest, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        entry = build_ledger(db).create_manual(
            caller,
            start_time=payload.start_time,
            end_time=payload.end_time,
            project_id=payload.project_id,
            task_id=payload.task_id,
            description=payload.description,
            tags=payload.tags,
            billable=payload.billable,
            rate=payload.rate,
        )
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


@router.get("/{time_entry_id}", response_model=TimeEntryResponse)
def get_time_entry(time_entry_id: str, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        try:
            entry = build_ledger(db).get(caller, time_entry_id)
        except LedgerError as exc:
            raise to_http_exception(exc) from exc
        return to_response(entry)
    finally:
        db.close()


@router.post("/{time_entry_id}/stop", response_model=TimeEntryResponse)
def stop_timer(time_entry_id: str, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        entry = build_ledger(db).stop(caller, time_entry_id)
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


@router.post("/{time_entry_id}/pause", response_model=TimeEntryResponse)
def pause_timer(
    time_entry_id: str,
    payload: Optional[PauseRequest] = None,
    caller: Caller = Depends(require_auth),
):
    break_type = payload.break_type if payload is not None else "short"

    db = SessionLocal()
    try:
        entry = build_ledger(db).pause(caller, time_entry_id, break_type=break_type)
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


@router.post("/{time_entry_id}/resume", response_model=TimeEntryResponse)
def resume_timer(time_entry_id: str, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        entry = build_ledger(db).resume(caller, time_entry_id)
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


@router.post("/{time_entry_id}/activity", response_model=TimeEntryResponse)
def record_activity(
    time_entry_id: str,
    payload: ActivityRequest,
    caller: Caller = Depends(require_auth),
):
    db = SessionLocal()
    try:
        entry = build_ledger(db).record_activity(
            caller,
            time_entry_id,
            keyboard=payload.keyboard,
            mouse=payload.mouse,
        )
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


@router.patch("/{time_entry_id}", response_model=TimeEntryResponse)
def update_time_entry(
    time_entry_id: str,
    payload: UpdateEntryRequest,
    caller: Caller = Depends(require_auth),
):
    fields = payload.model_dump(exclude_unset=True)
    reason = fields.pop("edit_reason", None)

    db = SessionLocal()
    try:
        entry = build_ledger(db).update(caller, time_entry_id, fields, reason=reason)
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


@router.delete("/{time_entry_id}", status_code=204)
def delete_time_entry(time_entry_id: str, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        build_ledger(db).delete(caller, time_entry_id)
        db.commit()
        return Response(status_code=204)
    except LedgerError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
