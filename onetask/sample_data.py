"""
Bundled demo data, shown before the first successful sync and after sign-out.
"""
from datetime import datetime, timedelta
from typing import Optional

from onetask.api_client import SyncSnapshot
from onetask.models import (
    Goal,
    GoalType,
    Habit,
    HabitFrequency,
    Project,
    ProjectStatus,
    Task,
    TaskPriority,
    TaskStatus,
)


def load_sample_data(now: Optional[datetime] = None) -> SyncSnapshot:
    """Fresh copies of the demo collections (ids differ on every call)."""
    now = now or datetime.now().astimezone()

    tasks = [
        Task(
            title="Review project proposals",
            description="Review and provide feedback on Q1 project proposals",
            status=TaskStatus.PENDING,
            priority=TaskPriority.HIGH,
            due_date=now,
            created_at=now,
        ),
        Task(
            title="Call team meeting",
            description="Weekly sync with development team",
            status=TaskStatus.COMPLETED,
            priority=TaskPriority.MEDIUM,
            due_date=now,
            completed_at=now,
            created_at=now,
        ),
        Task(
            title="Update documentation",
            description="Update API documentation with latest changes",
            status=TaskStatus.PENDING,
            priority=TaskPriority.LOW,
            due_date=now + timedelta(days=1),
            created_at=now,
        ),
    ]

    habits = [
        Habit(title="Morning exercise", description="30 minutes of exercise", frequency=HabitFrequency.DAILY),
        Habit(title="Read for 30 minutes", description="Daily reading habit", frequency=HabitFrequency.DAILY),
    ]

    goals = [
        Goal(
            title="Complete mobile app",
            description="Finish 1TaskAssistant mobile app",
            goal_type=GoalType.YEARLY,
            target_year=now.year,
        ),
        Goal(
            title="Learn SwiftUI",
            description="Master SwiftUI framework",
            goal_type=GoalType.YEARLY,
            target_year=now.year,
        ),
    ]

    projects = [
        Project(title="1TaskAssistant Mobile", description="iOS companion app", status=ProjectStatus.ACTIVE),
        Project(title="Learning SwiftUI", description="Master iOS development", status=ProjectStatus.ACTIVE),
    ]

    return SyncSnapshot(tasks=tasks, habits=habits, goals=goals, projects=projects)
