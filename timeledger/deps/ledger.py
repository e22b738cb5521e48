from fastapi import HTTPException
from sqlalchemy.orm import Session

from timeledger.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from timeledger.services.project_directory import SqlProjectDirectory
from timeledger.services.sql_repository import SqlTimeEntryRepository
from timeledger.services.time_ledger import TimeEntryLedger

_STATUS_BY_ERROR = (
    (ConflictError, 409),
    (InvalidStateError, 409),
    (NotFoundError, 404),
    (ValidationError, 400),
    (AuthorizationError, 403),
)


def build_ledger(db: Session) -> TimeEntryLedger:
    return TimeEntryLedger(
        SqlTimeEntryRepository(db),
        projects=SqlProjectDirectory(db),
    )


def to_http_exception(exc: LedgerError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
