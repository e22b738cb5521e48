from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from timeledger.services.entities import TimeEntryRecord
from timeledger.services.time_math import billable_amount, hours, money


def entry_totals(entries: Iterable[TimeEntryRecord]) -> Dict[str, Any]:
    """
    Totals over a page of entries.

    Running entries have no duration yet and contribute nothing.
    """
    count = 0
    total_seconds = 0
    billable_seconds = 0
    amount = Decimal("0")

    for entry in entries:
        count += 1
        duration = int(entry.duration or 0)
        total_seconds += duration
        if entry.billable:
            billable_seconds += duration
        amount += billable_amount(duration, entry.billable, entry.rate)

    return {
        "count": count,
        "total_hours": money(hours(total_seconds)),
        "billable_hours": money(hours(billable_seconds)),
        "billable_amount": money(amount),
    }


def project_report(entries: Iterable[TimeEntryRecord], task_ids: Iterable[str]) -> Dict[str, Any]:
    """Project totals plus per-task totals; tasks without entries report zeros."""
    entries = list(entries)
    by_task: Dict[str, List[TimeEntryRecord]] = defaultdict(list)
    for entry in entries:
        if entry.task_id is not None:
            by_task[entry.task_id].append(entry)

    finished = [e.end_time for e in entries if e.end_time is not None]
    totals = entry_totals(entries)
    totals["last_activity"] = max(finished) if finished else None

    return {
        "totals": totals,
        "tasks": {task_id: entry_totals(by_task.get(task_id, [])) for task_id in task_ids},
    }
