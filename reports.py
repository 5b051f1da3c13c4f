"""
Reporting

Pure functions over collections that are already loaded in memory. Nothing
here touches the record store; every call recomputes from the lists it is
given.

Missing numeric fields count as 0. Percentages round half up (the same
result as the browser's Math.round for non-negative values).
"""

import math
from collections import Counter
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

PROJECT_STATUSES = ("planning", "active", "on-hold", "completed")
TASK_STATUSES = ("pending", "in-progress", "completed")
PRIORITIES = ("low", "medium", "high")


def _num(value: Any):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def percentage(part, total) -> int:
    if not total:
        return 0
    return math.floor(part / total * 100 + 0.5)


def utilization(used_hours, allocated_hours) -> int:
    return percentage(_num(used_hours), _num(allocated_hours))


def resource_cost(resources: Iterable[Dict[str, Any]]):
    return sum(_num(r.get("usedHours")) * _num(r.get("hourlyRate")) for r in resources)


def count_by(records: Iterable[Dict[str, Any]], field: str, keys: Iterable[str] = ()) -> Dict[str, int]:
    """Count records per value of `field`; every key in `keys` is present even at 0."""
    counts = Counter(r.get(field) for r in records)
    out = {k: 0 for k in keys}
    for k, v in counts.items():
        if k is not None:
            out[k] = v
    return out


def parse_date(value: Any) -> Optional[date]:
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def overdue_tasks(tasks: Iterable[Dict[str, Any]], today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Tasks due before today that are not completed, most overdue first."""
    today = today or date.today()
    out = []
    for task in tasks:
        due = parse_date(task.get("dueDate"))
        if due is None or task.get("status") == "completed" or due >= today:
            continue
        out.append({**task, "daysOverdue": (today - due).days})
    out.sort(key=lambda t: t["daysOverdue"], reverse=True)
    return out


def dashboard_stats(projects: List[Dict[str, Any]], tasks: List[Dict[str, Any]],
                    resources: List[Dict[str, Any]]) -> Dict[str, Any]:
    total_budget = sum(_num(p.get("budget")) for p in projects)
    budget_spent = sum(_num(p.get("budgetSpent")) for p in projects)
    return {
        "totalProjects": len(projects),
        "activeProjects": sum(1 for p in projects if p.get("status") == "active"),
        "totalTasks": len(tasks),
        "completedTasks": sum(1 for t in tasks if t.get("status") == "completed"),
        "inProgressTasks": sum(1 for t in tasks if t.get("status") == "in-progress"),
        "totalResources": len(resources),
        "totalBudget": total_budget,
        "budgetSpent": budget_spent,
        "budgetUtilization": percentage(budget_spent, total_budget),
    }


def project_progress(project_id: str, tasks: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    project_tasks = [t for t in tasks if t.get("projectId") == project_id]
    counts = count_by(project_tasks, "status", TASK_STATUSES)
    total = len(project_tasks)
    return {
        "projectId": project_id,
        "totalTasks": total,
        "completedTasks": counts["completed"],
        "inProgressTasks": counts["in-progress"],
        "pendingTasks": counts["pending"],
        "progressPercentage": percentage(counts["completed"], total),
    }


def project_status_report(projects: List[Dict[str, Any]]) -> Dict[str, Any]:
    counts = count_by(projects, "status", PROJECT_STATUSES)
    total = len(projects)
    return {
        "totalProjects": total,
        "statusCounts": counts,
        "statusPercentages": {k: percentage(v, total) for k, v in counts.items()},
    }


def task_report(tasks: List[Dict[str, Any]], today: Optional[date] = None) -> Dict[str, Any]:
    statuses = count_by(tasks, "status", TASK_STATUSES)
    return {
        "totalTasks": len(tasks),
        "completedTasks": statuses["completed"],
        "inProgressTasks": statuses["in-progress"],
        "pendingTasks": statuses["pending"],
        "priorityCounts": count_by(tasks, "priority", PRIORITIES),
        "overdueTasks": overdue_tasks(tasks, today),
    }


def resource_report(resources: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Hour totals plus one utilization row per allocated user."""
    total_allocated = sum(_num(r.get("allocatedHours")) for r in resources)
    total_used = sum(_num(r.get("usedHours")) for r in resources)

    per_user: Dict[str, Dict[str, Any]] = {}
    for r in resources:
        row = per_user.setdefault(r.get("userId"), {
            "userId": r.get("userId"),
            "userName": r.get("userName"),
            "totalAllocated": 0,
            "totalUsed": 0,
            "totalCost": 0,
        })
        row["totalAllocated"] += _num(r.get("allocatedHours"))
        row["totalUsed"] += _num(r.get("usedHours"))
        row["totalCost"] += _num(r.get("usedHours")) * _num(r.get("hourlyRate"))

    users = [{**row, "utilization": percentage(row["totalUsed"], row["totalAllocated"])}
             for row in per_user.values()]
    users.sort(key=lambda row: row["utilization"], reverse=True)

    return {
        "totalResources": len(resources),
        "totalAllocatedHours": total_allocated,
        "totalUsedHours": total_used,
        "averageUtilization": percentage(total_used, total_allocated),
        "totalCost": resource_cost(resources),
        "users": users,
    }


def _budget_row(project: Dict[str, Any]) -> Dict[str, Any]:
    budget = _num(project.get("budget"))
    spent = _num(project.get("budgetSpent"))
    return {
        "id": project.get("id"),
        "name": project.get("name"),
        "status": project.get("status"),
        "budget": budget,
        "spent": spent,
        "remaining": budget - spent,
        "utilization": percentage(spent, budget),
        "overBudget": spent > budget,
    }


def budget_report(projects: List[Dict[str, Any]]) -> Dict[str, Any]:
    rows = sorted((_budget_row(p) for p in projects), key=lambda row: row["budget"], reverse=True)
    total_budget = sum(row["budget"] for row in rows)
    total_spent = sum(row["spent"] for row in rows)
    return {
        "totalBudget": total_budget,
        "totalSpent": total_spent,
        "totalRemaining": total_budget - total_spent,
        "utilization": percentage(total_spent, total_budget),
        "projects": rows,
    }


def project_report(project: Dict[str, Any], tasks: List[Dict[str, Any]], resources: List[Dict[str, Any]],
                   today: Optional[date] = None) -> Dict[str, Any]:
    project_id = project.get("id")
    project_tasks = [t for t in tasks if t.get("projectId") == project_id]
    project_resources = [r for r in resources if r.get("projectId") == project_id]
    budget = _budget_row(project)
    return {
        "project": project,
        "progress": project_progress(project_id, project_tasks),
        "resourceCount": len(project_resources),
        "resourceCost": resource_cost(project_resources),
        "budgetRemaining": budget["remaining"],
        "budgetPercentage": budget["utilization"],
        "overdueTasks": overdue_tasks(project_tasks, today),
    }
