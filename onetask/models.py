"""
Core Data Models for the OneTask client.
Defines tasks, habits, goals and projects as returned by the backend API.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from onetask.date_normalizer import parse_optional_date
from onetask.exceptions import GoalTypeError


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class HabitStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class HabitFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class GoalType(str, Enum):
    WEEKLY = "weekly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # naive values are system local time
    if value.tzinfo is None:
        return value.astimezone()
    return value


def _clamp_percentage(value: Any) -> float:
    return max(0.0, min(100.0, float(value or 0.0)))


def _str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return [str(item) for item in value]


@dataclass
class Task:
    """A single to-do item."""
    title: str
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)  # ordered, duplicates allowed
    project_id: Optional[str] = None
    weekly_goal_id: Optional[str] = None
    habit_id: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        self.status = TaskStatus(self.status)
        self.priority = TaskPriority(self.priority)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Due date strictly in the past and not completed."""
        if self.due_date is None or self.status == TaskStatus.COMPLETED:
            return False
        now = _aware(now or _utcnow())
        return _aware(self.due_date) < now

    def set_status(self, status: TaskStatus, now: Optional[datetime] = None) -> None:
        """
        Change status, keeping completed_at consistent.

        completed_at is stamped only on a transition into COMPLETED and
        cleared when the task leaves COMPLETED.
        """
        status = TaskStatus(status)
        if status == TaskStatus.COMPLETED and self.status != TaskStatus.COMPLETED:
            self.completed_at = now or _utcnow()
        elif status != TaskStatus.COMPLETED:
            self.completed_at = None
        self.status = status

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description"),
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            priority=TaskPriority(data.get("priority", TaskPriority.MEDIUM.value)),
            due_date=parse_optional_date(data.get("due_date")),
            completed_at=parse_optional_date(data.get("completed_at")),
            tags=_str_list(data.get("tags")),
            project_id=data.get("project_id"),
            weekly_goal_id=data.get("weekly_goal_id"),
            habit_id=data.get("habit_id"),
            estimated_hours=data.get("estimated_hours"),
            actual_hours=data.get("actual_hours"),
            created_at=parse_optional_date(data.get("created_at")),
            updated_at=parse_optional_date(data.get("updated_at")),
            user_id=data.get("user_id"),
        )


@dataclass
class Habit:
    """A recurring behaviour with streak tracking."""
    title: str
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    status: HabitStatus = HabitStatus.ACTIVE
    frequency: HabitFrequency = HabitFrequency.DAILY
    target_count: int = 1
    current_count: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_completions: int = 0
    reminder_time: Optional[str] = None  # "07:30"
    tags: List[str] = field(default_factory=list)
    last_completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        self.status = HabitStatus(self.status)
        self.frequency = HabitFrequency(self.frequency)
        if int(self.target_count) < 1:
            raise ValueError(f"target_count must be >= 1, got {self.target_count}")
        self.target_count = int(self.target_count)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Habit":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description"),
            status=HabitStatus(data.get("status", HabitStatus.ACTIVE.value)),
            frequency=HabitFrequency(data.get("frequency", HabitFrequency.DAILY.value)),
            target_count=int(data.get("target_count", 1)),
            current_count=int(data.get("current_count", 0)),
            current_streak=int(data.get("current_streak", 0)),
            longest_streak=int(data.get("longest_streak", 0)),
            total_completions=int(data.get("total_completions", 0)),
            reminder_time=data.get("reminder_time"),
            tags=_str_list(data.get("tags")),
            last_completed_at=parse_optional_date(data.get("last_completed_at")),
            created_at=parse_optional_date(data.get("created_at")),
            updated_at=parse_optional_date(data.get("updated_at")),
            user_id=data.get("user_id"),
        )


@dataclass
class Goal:
    """
    A weekly, quarterly or yearly goal.

    Exactly one type-specific date slot is populated:
    weekly -> week_start_date, quarterly -> (target_quarter, target_year),
    yearly -> target_year. Fields of other goal types are dropped on
    construction; a missing field for the goal's own type is rejected.
    """
    title: str
    goal_type: GoalType
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    status: GoalStatus = GoalStatus.NOT_STARTED
    week_start_date: Optional[datetime] = None
    target_quarter: Optional[int] = None
    target_year: Optional[int] = None
    progress_percentage: float = 0.0
    key_metrics: List[str] = field(default_factory=list)
    quarterly_goal_id: Optional[str] = None
    yearly_goal_id: Optional[str] = None
    task_ids: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        self.goal_type = GoalType(self.goal_type)
        self.status = GoalStatus(self.status)
        self.progress_percentage = _clamp_percentage(self.progress_percentage)

        if self.goal_type == GoalType.WEEKLY:
            self.target_quarter = None
            self.target_year = None
            if self.week_start_date is None:
                raise GoalTypeError("weekly", "week_start_date")
        elif self.goal_type == GoalType.QUARTERLY:
            self.week_start_date = None
            if self.target_quarter is None or self.target_year is None:
                raise GoalTypeError("quarterly", "target_quarter and target_year")
            if not 1 <= int(self.target_quarter) <= 4:
                raise ValueError(f"target_quarter must be 1-4, got {self.target_quarter}")
        else:
            self.week_start_date = None
            self.target_quarter = None
            if self.target_year is None:
                raise GoalTypeError("yearly", "target_year")

    @property
    def is_active(self) -> bool:
        return self.status == GoalStatus.IN_PROGRESS

    @staticmethod
    def infer_type(data: Dict[str, Any]) -> GoalType:
        if data.get("goal_type"):
            return GoalType(data["goal_type"])
        if data.get("week_start_date"):
            return GoalType.WEEKLY
        if data.get("target_quarter") is not None:
            return GoalType.QUARTERLY
        return GoalType.YEARLY

    @classmethod
    def from_dict(cls, data: Dict[str, Any], goal_type: Optional[GoalType] = None) -> "Goal":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            goal_type=goal_type or cls.infer_type(data),
            description=data.get("description"),
            status=GoalStatus(data.get("status", GoalStatus.NOT_STARTED.value)),
            week_start_date=parse_optional_date(data.get("week_start_date")),
            target_quarter=data.get("target_quarter"),
            target_year=data.get("target_year"),
            progress_percentage=data.get("progress_percentage", 0.0),
            key_metrics=_str_list(data.get("key_metrics")),
            quarterly_goal_id=data.get("quarterly_goal_id"),
            yearly_goal_id=data.get("yearly_goal_id"),
            task_ids=_str_list(data.get("task_ids")),
            completed_at=parse_optional_date(data.get("completed_at")),
            created_at=parse_optional_date(data.get("created_at")),
            updated_at=parse_optional_date(data.get("updated_at")),
            user_id=data.get("user_id"),
        )


@dataclass
class Project:
    """A group of related tasks."""
    title: str
    id: str = field(default_factory=new_id)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: TaskPriority = TaskPriority.MEDIUM
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    progress_percentage: float = 0.0
    tags: List[str] = field(default_factory=list)
    task_ids: List[str] = field(default_factory=list)
    yearly_goal_id: Optional[str] = None
    quarterly_goal_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        self.status = ProjectStatus(self.status)
        self.priority = TaskPriority(self.priority)
        self.progress_percentage = _clamp_percentage(self.progress_percentage)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description"),
            status=ProjectStatus(data.get("status", ProjectStatus.PLANNING.value)),
            priority=TaskPriority(data.get("priority", TaskPriority.MEDIUM.value)),
            start_date=parse_optional_date(data.get("start_date")),
            end_date=parse_optional_date(data.get("end_date")),
            progress_percentage=data.get("progress_percentage", 0.0),
            tags=_str_list(data.get("tags")),
            task_ids=_str_list(data.get("task_ids")),
            yearly_goal_id=data.get("yearly_goal_id"),
            quarterly_goal_id=data.get("quarterly_goal_id"),
            completed_at=parse_optional_date(data.get("completed_at")),
            created_at=parse_optional_date(data.get("created_at")),
            updated_at=parse_optional_date(data.get("updated_at")),
            user_id=data.get("user_id"),
        )
