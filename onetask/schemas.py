"""
Wire schemas for the backend API.

Request bodies are built from domain models and serialized with
``model_dump(exclude_none=True)``; dates are already wire-formatted
strings at this point. ChatResponse is the structured chat answer.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from onetask.date_normalizer import format_optional_wire_date, format_wire_date
from onetask.models import Goal, Habit, Project, Task


class WireModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def to_body(self) -> dict:
        return self.model_dump(exclude_none=True, mode="json")


# === Tasks ===

class CreateTaskRequest(WireModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    priority: str
    status: str
    project_id: Optional[str] = None
    tags: List[str] = []
    user_id: str

    @classmethod
    def from_task(cls, task: Task, user_id: str) -> "CreateTaskRequest":
        return cls(
            title=task.title,
            description=task.description,
            due_date=format_optional_wire_date(task.due_date),
            priority=task.priority.value,
            status=task.status.value,
            project_id=task.project_id,
            tags=list(task.tags),
            user_id=user_id,
        )


class UpdateTaskRequest(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    completed_at: Optional[str] = None
    project_id: Optional[str] = None
    tags: Optional[List[str]] = None

    @classmethod
    def from_task(cls, task: Task) -> "UpdateTaskRequest":
        return cls(
            title=task.title,
            description=task.description,
            due_date=format_optional_wire_date(task.due_date),
            priority=task.priority.value,
            status=task.status.value,
            completed_at=format_optional_wire_date(task.completed_at),
            project_id=task.project_id,
            tags=list(task.tags),
        )


# === Habits ===

class CreateHabitRequest(WireModel):
    title: str
    description: Optional[str] = None
    frequency: str
    target_count: int
    tags: List[str] = []
    status: str
    reminder_time: Optional[str] = None
    user_id: str

    @classmethod
    def from_habit(cls, habit: Habit, user_id: str) -> "CreateHabitRequest":
        return cls(
            title=habit.title,
            description=habit.description,
            frequency=habit.frequency.value,
            target_count=habit.target_count,
            tags=list(habit.tags),
            status=habit.status.value,
            reminder_time=habit.reminder_time,
            user_id=user_id,
        )


class UpdateHabitRequest(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    frequency: Optional[str] = None
    target_count: Optional[int] = None
    tags: Optional[List[str]] = None
    status: Optional[str] = None
    reminder_time: Optional[str] = None

    @classmethod
    def from_habit(cls, habit: Habit) -> "UpdateHabitRequest":
        return cls(
            title=habit.title,
            description=habit.description,
            frequency=habit.frequency.value,
            target_count=habit.target_count,
            tags=list(habit.tags),
            status=habit.status.value,
            reminder_time=habit.reminder_time,
        )


# === Goals ===

class CreateYearlyGoalRequest(WireModel):
    title: str
    description: Optional[str] = None
    target_year: int
    key_metrics: List[str] = []
    user_id: str


class CreateQuarterlyGoalRequest(WireModel):
    title: str
    description: Optional[str] = None
    target_quarter: int
    target_year: int
    key_metrics: List[str] = []
    yearly_goal_id: Optional[str] = None
    user_id: str


class CreateWeeklyGoalRequest(WireModel):
    title: str
    description: Optional[str] = None
    week_start_date: str
    key_metrics: List[str] = []
    quarterly_goal_id: Optional[str] = None
    user_id: str


class UpdateGoalRequest(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    week_start_date: Optional[str] = None
    target_quarter: Optional[int] = None
    target_year: Optional[int] = None
    key_metrics: Optional[List[str]] = None
    progress_percentage: Optional[float] = None
    status: Optional[str] = None

    @classmethod
    def from_goal(cls, goal: Goal) -> "UpdateGoalRequest":
        return cls(
            title=goal.title,
            description=goal.description,
            week_start_date=format_optional_wire_date(goal.week_start_date),
            target_quarter=goal.target_quarter,
            target_year=goal.target_year,
            key_metrics=list(goal.key_metrics),
            progress_percentage=goal.progress_percentage,
            status=goal.status.value,
        )


# === Projects ===

class CreateProjectRequest(WireModel):
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    tags: List[str] = []
    user_id: str

    @classmethod
    def from_project(cls, project: Project, user_id: str) -> "CreateProjectRequest":
        return cls(
            title=project.title,
            description=project.description,
            status=project.status.value,
            priority=project.priority.value,
            start_date=format_optional_wire_date(project.start_date),
            end_date=format_optional_wire_date(project.end_date),
            tags=list(project.tags),
            user_id=user_id,
        )


class UpdateProjectRequest(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    tags: Optional[List[str]] = None
    progress_percentage: Optional[float] = None

    @classmethod
    def from_project(cls, project: Project) -> "UpdateProjectRequest":
        return cls(
            title=project.title,
            description=project.description,
            status=project.status.value,
            priority=project.priority.value,
            start_date=format_optional_wire_date(project.start_date),
            end_date=format_optional_wire_date(project.end_date),
            tags=list(project.tags),
            progress_percentage=project.progress_percentage,
        )


# === Chat ===

class ChatRequest(WireModel):
    prompt: str
    user_id: str


class ChatResponse(BaseModel):
    """Structured chat answer; unknown fields from the service are ignored."""
    model_config = ConfigDict(extra="ignore")

    response: str
    user_id: Optional[str] = None
    timestamp: Optional[str] = None
    interview_complete: Optional[bool] = None
    current_question: Optional[int] = None

    @classmethod
    def wrap_text(cls, text: str, user_id: str, now: Optional[datetime] = None) -> "ChatResponse":
        """Wrap a plain-text answer in the standard response shape."""
        return cls(
            response=text,
            user_id=user_id,
            timestamp=format_wire_date(now or datetime.now().astimezone()),
            interview_complete=False,
            current_question=None,
        )
