from typing import Optional, Protocol

from sqlalchemy.orm import Session

from timeledger.models.project import Project
from timeledger.models.task import Task


class ProjectDirectory(Protocol):
    def project_in_company(self, company_id: int, project_id: str) -> bool: ...

    def task_in_company(self, company_id: int, task_id: str, project_id: Optional[str] = None) -> bool: ...


class SqlProjectDirectory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def project_in_company(self, company_id: int, project_id: str) -> bool:
        row = (
            self.db.query(Project.project_id)
            .filter(
                Project.project_id == str(project_id),
                Project.company_id == int(company_id),
            )
            .first()
        )
        return row is not None

    def task_in_company(self, company_id: int, task_id: str, project_id: Optional[str] = None) -> bool:
        q = self.db.query(Task.task_id).filter(
            Task.task_id == str(task_id),
            Task.company_id == int(company_id),
        )
        if project_id is not None:
            q = q.filter(Task.project_id == str(project_id))
        return q.first() is not None
