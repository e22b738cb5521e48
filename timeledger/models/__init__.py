from timeledger.models.employee import Employee
from timeledger.models.project import Project
from timeledger.models.task import Task
from timeledger.models.time_entry import TimeEntry
from timeledger.models.time_entry_break import TimeEntryBreak
from timeledger.models.time_entry_user_lock import TimeEntryUserLock

__all__ = [
    "Employee",
    "Project",
    "Task",
    "TimeEntry",
    "TimeEntryBreak",
    "TimeEntryUserLock",
]
