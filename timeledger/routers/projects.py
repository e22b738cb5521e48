from typing import List

from fastapi import APIRouter, Depends, HTTPException

from timeledger.core.authorization import require_role
from timeledger.core.errors import LedgerError
from timeledger.core.roles import Caller, Role
from timeledger.database import SessionLocal
from timeledger.deps.auth import require_auth
from timeledger.deps.ledger import build_ledger, to_http_exception
from timeledger.models.project import Project
from timeledger.models.task import Task
from timeledger.schemas.project import (
    ProjectCreate,
    ProjectDetailResponse,
    ProjectResponse,
    TaskCreate,
    TaskResponse,
)
from timeledger.services.reporting_service import project_report

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.post("", response_model=ProjectResponse)
def create_project(
    payload: ProjectCreate,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = Project(
            company_id=int(caller.company_id),
            name=payload.name,
            description=payload.description,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@router.get("", response_model=List[ProjectResponse])
def list_projects(caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        return (
            db.query(Project)
            .filter(Project.company_id == int(caller.company_id))
            .order_by(Project.name.asc(), Project.project_id.asc())
            .all()
        )
    finally:
        db.close()


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(project_id: str, caller: Caller = Depends(require_auth)):
    db = SessionLocal()
    try:
        project = (
            db.query(Project)
            .filter(
                Project.project_id == str(project_id),
                Project.company_id == int(caller.company_id),
            )
            .first()
        )
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")

        tasks = (
            db.query(Task)
            .filter(Task.project_id == project.project_id, Task.company_id == int(caller.company_id))
            .order_by(Task.created_at.asc(), Task.task_id.asc())
            .all()
        )
        try:
            entries = build_ledger(db).project_entries(caller, project.project_id)
        except LedgerError as exc:
            raise to_http_exception(exc) from exc

        report = project_report(entries, [t.task_id for t in tasks])
        body = ProjectResponse.model_validate(project).model_dump()
        body["totals"] = report["totals"]
        body["tasks"] = [
            {**TaskResponse.model_validate(t).model_dump(), "totals": report["tasks"][t.task_id]}
            for t in tasks
        ]
        return body
    finally:
        db.close()


@router.post("/{project_id}/tasks", response_model=TaskResponse)
def create_task(
    project_id: str,
    payload: TaskCreate,
    caller: Caller = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        project = (
            db.query(Project)
            .filter(
                Project.project_id == str(project_id),
                Project.company_id == int(caller.company_id),
            )
            .first()
        )
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")

        row = Task(
            company_id=int(caller.company_id),
            project_id=project.project_id,
            title=payload.title,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()
