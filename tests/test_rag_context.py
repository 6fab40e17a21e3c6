from datetime import datetime, timedelta, timezone

import pytest

from onetask.config_manager import AppConfig
from onetask.exceptions import ConfigError
from onetask.models import (
    Goal,
    GoalStatus,
    GoalType,
    Habit,
    HabitStatus,
    Project,
    ProjectStatus,
    Task,
    TaskPriority,
    TaskStatus,
)
from onetask.rag_context import build_rag_context

NOW = datetime(2025, 8, 13, 9, 0, tzinfo=timezone.utc)
CFG = AppConfig()


def _build(tasks=(), habits=(), goals=(), projects=(), app_config=CFG):
    return build_rag_context(
        list(tasks), list(habits), list(goals), list(projects),
        now=NOW, timezone="UTC", app_config=app_config,
    )


def _tasks(count: int, status: TaskStatus, prefix: str = "Task"):
    return [
        Task(id=f"{prefix}-{status.value}-{i}", title=f"{prefix} {i:06d}", status=status)
        for i in range(count)
    ]


def test_single_pending_task_end_to_end():
    task = Task(
        id="t1",
        title="Ship report",
        priority=TaskPriority.HIGH,
        due_date=datetime(2025, 8, 13, 17, 0, tzinfo=timezone.utc),
    )

    summary = _build(tasks=[task]).summary

    assert "TASKS (1 total):" in summary
    assert "  - Ship report [Priority: high] (due: 2025-08-13T17:00:00Z)" in summary
    assert summary.count("Ship report") == 1
    assert "SUMMARY:" in summary
    assert "Total Tasks: 1 (0 completed, 0 overdue)" in summary
    assert "Context generated: 2025-08-13T09:00:00Z (UTC)" in summary
    for header in ("PROJECTS", "GOALS", "HABITS"):
        assert header not in summary


def test_ten_thousand_tasks_enumerate_at_most_the_limits():
    tasks = _tasks(5000, TaskStatus.PENDING) + _tasks(4000, TaskStatus.IN_PROGRESS) + _tasks(
        1000, TaskStatus.COMPLETED
    )

    summary = _build(tasks=tasks).summary
    lines = summary.splitlines()

    assert "TASKS (10000 total):" in lines
    assert len([line for line in lines if line.startswith("  - ")]) == 5 + 3
    assert lines.count("  ... and 4995 more pending tasks") == 1
    assert lines.count("  ... and 3997 more in progress") == 1
    completed_line = next(line for line in lines if "Recently Completed" in line)
    assert completed_line.count(",") == 2


def test_summary_size_does_not_grow_with_record_count():
    small = _build(tasks=_tasks(6, TaskStatus.PENDING)).summary
    huge = _build(tasks=_tasks(100_000, TaskStatus.PENDING)).summary

    assert len(huge) - len(small) < 100
    assert len(huge) < 2000


def test_all_empty_collections_emit_no_data_guidance():
    ctx = _build()

    assert ctx.summary
    assert "NO DATA YET" in ctx.summary
    assert "TASKS" not in ctx.summary
    assert ctx.metadata.is_empty


def test_sections_appear_in_fixed_order():
    summary = _build(
        tasks=[Task(title="t")],
        habits=[Habit(title="h")],
        goals=[Goal(title="g", goal_type=GoalType.YEARLY, target_year=2025)],
        projects=[Project(title="p")],
    ).summary

    positions = [summary.index(h) for h in ("TASKS", "PROJECTS", "GOALS", "HABITS", "SUMMARY:")]
    assert positions == sorted(positions)
    assert "\n\nPROJECTS" in summary


def test_empty_sections_are_omitted():
    summary = _build(habits=[Habit(title="Meditate")]).summary
    assert summary.startswith("HABITS (1 total):")
    assert "TASKS" not in summary


def test_project_lines_show_task_progress_and_description():
    tasks = [
        Task(id="t1", title="a", status=TaskStatus.COMPLETED),
        Task(id="t2", title="b"),
        Task(id="t3", title="c", status=TaskStatus.COMPLETED, project_id="p1"),
    ]
    projects = [
        Project(id="p1", title="Website", status=ProjectStatus.ACTIVE,
                description="Relaunch", task_ids=["t1", "t2"]),
        Project(id="p2", title="Garden", description=""),
    ]

    ctx = _build(tasks=tasks, projects=projects)

    assert "• Website [Status: active] (2/3 tasks complete)" in ctx.summary
    assert "  Description: Relaunch" in ctx.summary
    assert "• Garden [Status: planning]\n" in ctx.summary
    assert ctx.projects[0].tasks_count == 3
    assert ctx.projects[0].completed_tasks_count == 2


def test_project_overflow_line():
    projects = [Project(title=f"P{i}") for i in range(7)]
    assert "... and 2 more projects" in _build(projects=projects).summary


def test_goal_lines_show_progress_only_when_started():
    goals = [
        Goal(title="Run", goal_type=GoalType.YEARLY, target_year=2025, progress_percentage=42.7,
             status=GoalStatus.IN_PROGRESS, description="Half marathon"),
        Goal(title="Read", goal_type=GoalType.YEARLY, target_year=2025),
    ]

    summary = _build(goals=goals).summary

    assert "• Run [Status: in_progress] (42% complete)" in summary
    assert "  Half marathon" in summary
    assert "• Read [Status: not_started]\n" in summary


def test_habit_lines_show_progress_and_streak():
    habits = [
        Habit(title="Meditate", target_count=2, current_count=1, current_streak=4),
        Habit(title="Stretch"),
    ]

    summary = _build(habits=habits).summary

    assert "• Meditate [Progress: 1/2] (streak: 4)" in summary
    assert "• Stretch [Progress: 0/1]\n" in summary


def test_metadata_counts_cover_full_collections():
    tasks = [
        Task(title="late", due_date=NOW - timedelta(days=1)),
        Task(title="done late", status=TaskStatus.COMPLETED, due_date=NOW - timedelta(days=1)),
        Task(title="later", due_date=NOW + timedelta(days=1)),
    ]
    habits = [Habit(title="a"), Habit(title="b", status=HabitStatus.PAUSED)]
    goals = [
        Goal(title="g1", goal_type=GoalType.YEARLY, target_year=2025, status=GoalStatus.IN_PROGRESS),
        Goal(title="g2", goal_type=GoalType.YEARLY, target_year=2025),
    ]
    projects = [Project(title="p1", status=ProjectStatus.ACTIVE), Project(title="p2")]

    ctx = _build(tasks, habits, goals, projects)
    meta = ctx.metadata

    assert (meta.total_tasks, meta.completed_tasks, meta.overdue_tasks) == (3, 1, 1)
    assert (meta.active_habits, meta.total_habits) == (1, 2)
    assert (meta.active_goals, meta.total_goals) == (1, 2)
    assert (meta.active_projects, meta.total_projects) == (1, 2)
    assert "Total Tasks: 3 (1 completed, 1 overdue)" in ctx.summary
    assert "Active Projects: 1/2" in ctx.summary
    assert "Active Goals: 1/2" in ctx.summary
    assert "Active Habits: 1/2" in ctx.summary


def test_structured_payload_is_capped_but_counts_are_not():
    ctx = _build(tasks=_tasks(30, TaskStatus.PENDING), app_config=AppConfig(MAX_STRUCTURED_ITEMS=10))

    assert len(ctx.tasks) == 10
    assert ctx.metadata.total_tasks == 30


def test_limits_come_from_config():
    cfg = AppConfig(PENDING_TASK_LIMIT=2)
    summary = _build(tasks=_tasks(4, TaskStatus.PENDING), app_config=cfg).summary
    assert "  ... and 2 more pending tasks" in summary


def test_to_dict_is_json_friendly():
    task = Task(id="t1", title="Ship report", due_date=NOW, tags=["work"])
    data = _build(tasks=[task]).to_dict()

    assert data["tasks"][0]["due_date"] == "2025-08-13T09:00:00Z"
    assert data["tasks"][0]["tags"] == ["work"]
    assert data["metadata"]["user_timezone"] == "UTC"
    assert "summary" in data


def test_unknown_timezone_is_a_config_error():
    with pytest.raises(ConfigError):
        build_rag_context([], [], [], [], timezone="Mars/Olympus_Mons")


def test_default_now_is_aware():
    ctx = build_rag_context([Task(title="x")], [], [], [])
    assert ctx.metadata.context_generated_at.endswith("Z")
