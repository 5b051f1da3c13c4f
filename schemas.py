"""
Request Schemas

Pydantic models for the JSON bodies accepted by the API. Each model
mirrors one collection file under the data directory:
- ProjectIn -> "projects.json"
- TaskIn -> "tasks.json"
- ResourceIn -> "resources.json"

Every field is optional because POST and PUT both take partial records.
Keys are camelCase on the wire; fields not declared here are kept as-is
and merged into the stored record.
"""

import math
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ProjectStatus = Literal["planning", "active", "on-hold", "completed"]
TaskStatus = Literal["pending", "in-progress", "completed"]
ResourceStatus = Literal["planned", "active", "completed"]
Priority = Literal["low", "medium", "high"]


def _check_range(start: Optional[date], end: Optional[date], end_name: str) -> None:
    if start and end and end < start:
        raise ValueError(f"{end_name} must not be before startDate")


def _finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_finite(v) for v in value.values())
    if isinstance(value, list):
        return all(_finite(v) for v in value)
    return True


class JsonModel(BaseModel):
    """Unknown keys are kept, but nothing json.dump cannot write back gets in."""

    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    @model_validator(mode="after")
    def check_extra_numbers(self):
        if not _finite(self.model_extra or {}):
            raise ValueError("numbers must be finite")
        return self


class RecordIn(JsonModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Only the keys the caller actually sent, camelCased, JSON-ready."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class Milestone(JsonModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    due_date: Optional[date] = None
    status: Optional[str] = None


class Risk(JsonModel):
    description: Optional[str] = None
    severity: Optional[str] = None
    status: Optional[str] = None


class ProjectIn(RecordIn):
    name: Optional[str] = Field(None, description="Project name")
    description: Optional[str] = Field(None, description="Project description")
    status: Optional[ProjectStatus] = Field(None, description="planning, active, on-hold, completed")
    priority: Optional[Priority] = Field(None, description="low, medium, high")
    start_date: Optional[date] = Field(None, description="Planned or actual start date")
    end_date: Optional[date] = Field(None, description="Planned or actual end date")
    budget: Optional[float] = Field(None, ge=0, description="Total budget")
    budget_spent: Optional[float] = Field(None, description="Spent so far, may exceed budget")
    department: Optional[str] = None
    project_manager: Optional[str] = Field(None, description="Owning manager's user id")
    team_members: Optional[List[str]] = Field(None, description="Team member user ids")
    milestones: Optional[List[Milestone]] = None
    risks: Optional[List[Risk]] = None

    @model_validator(mode="after")
    def check_dates(self):
        _check_range(self.start_date, self.end_date, "endDate")
        return self


class TaskIn(RecordIn):
    project_id: Optional[str] = Field(None, description="Owning project id, not checked")
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = Field(None, description="pending, in-progress, completed")
    priority: Optional[Priority] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    assigned_to: Optional[str] = Field(None, description="Assignee user id")
    created_by: Optional[str] = Field(None, description="Creator user id")
    tags: Optional[List[str]] = None
    dependencies: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_dates(self):
        _check_range(self.start_date, self.due_date, "dueDate")
        return self


class ResourceIn(RecordIn):
    project_id: Optional[str] = None
    user_id: Optional[str] = None
    role: Optional[str] = Field(None, description="Free-text role on the project")
    allocated_hours: Optional[float] = None
    used_hours: Optional[float] = None
    hourly_rate: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[ResourceStatus] = Field(None, description="planned, active, completed")

    @model_validator(mode="after")
    def check_dates(self):
        _check_range(self.start_date, self.end_date, "endDate")
        return self


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
