import os
import tempfile

_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ["ENV"] = "test"

_TEST_DB_DIR = tempfile.mkdtemp(prefix="timeledger-tests-")
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///" + os.path.join(_TEST_DB_DIR, "test.db"),
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from timeledger import database
from timeledger import models  # noqa: F401
from timeledger.models.employee import Employee
from timeledger.models.project import Project
from timeledger.models.task import Task
from timeledger.services.repository import InMemoryTimeEntryRepository
from timeledger.services.time_ledger import TimeEntryLedger


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


def _truncate_all() -> None:
    with database.engine.begin() as conn:
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database():
    database.configure_database()
    database.Base.metadata.create_all(bind=database.engine)
    yield
    database.engine.dispose()


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _truncate_all()
    yield
    _truncate_all()


@pytest.fixture
def clock():
    # 2024-01-01 is a Monday
    return FakeClock(datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository():
    return InMemoryTimeEntryRepository()


@pytest.fixture
def ledger(repository, clock):
    return TimeEntryLedger(repository, clock=clock)


@pytest.fixture
def employee_factory():
    def _create(company_id: int = 1, name: str = "Employee", hourly_rate=None, overtime_rate=None,
                role: str = "EMPLOYEE", currency: str = "USD", is_active: bool = True):
        db = database.SessionLocal()
        try:
            row = Employee(
                company_id=company_id,
                name=name,
                role=role,
                hourly_rate=None if hourly_rate is None else Decimal(str(hourly_rate)),
                overtime_rate=None if overtime_rate is None else Decimal(str(overtime_rate)),
                currency=currency,
                is_active=is_active,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create


@pytest.fixture
def project_factory():
    def _create(company_id: int = 1, name: str = "Project"):
        db = database.SessionLocal()
        try:
            row = Project(company_id=company_id, name=name)
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create


@pytest.fixture
def task_factory():
    def _create(company_id: int, project_id: str, title: str = "Task"):
        db = database.SessionLocal()
        try:
            row = Task(company_id=company_id, project_id=project_id, title=title)
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create
