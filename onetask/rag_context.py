"""
RAG Context Builder.

Turns the in-memory task, habit, goal and project collections into:
- a bounded natural-language summary injected into chat prompts
- a structured record (capped projections plus aggregate metadata)

The summary enumerates at most a fixed number of items per section and
folds the rest into "... and N more" lines, so its size does not grow
with the number of records.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from onetask.config_manager import AppConfig, config as default_config
from onetask.date_normalizer import format_optional_wire_date, format_wire_date
from onetask.exceptions import ConfigError
from onetask.logger import get_logger
from onetask.models import (
    Goal,
    GoalStatus,
    Habit,
    HabitStatus,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
)

logger = get_logger("rag_context")

BULLET = "•"

NO_DATA_GUIDANCE = (
    "NO DATA YET:\n"
    f"{BULLET} The user has not added any tasks, projects, goals or habits yet.\n"
    f"{BULLET} Do not invent items. Offer to help them create a first task, habit, goal or project."
)


# === Projections ===

@dataclass
class TaskSnapshot:
    id: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    due_date: Optional[str]
    project_id: Optional[str]
    tags: List[str]
    created_at: Optional[str]
    completed_at: Optional[str]


@dataclass
class HabitSnapshot:
    id: str
    title: str
    description: Optional[str]
    frequency: str
    target_count: int
    current_count: int
    status: str
    tags: List[str]
    streak_count: int
    last_completed_at: Optional[str]


@dataclass
class GoalSnapshot:
    id: str
    title: str
    description: Optional[str]
    goal_type: str
    status: str
    progress_percentage: float
    key_metrics: List[str]


@dataclass
class ProjectSnapshot:
    id: str
    title: str
    description: Optional[str]
    status: str
    priority: str
    created_at: Optional[str]
    tasks_count: int
    completed_tasks_count: int


@dataclass
class ContextMetadata:
    """Aggregate counts over the full collections, not the capped projections."""
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    total_habits: int = 0
    active_habits: int = 0
    total_goals: int = 0
    active_goals: int = 0
    total_projects: int = 0
    active_projects: int = 0
    context_generated_at: str = ""
    user_timezone: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.total_tasks or self.total_habits or self.total_goals or self.total_projects)


@dataclass
class RAGContext:
    """Read-only snapshot of the user's productivity state."""
    tasks: List[TaskSnapshot] = field(default_factory=list)
    habits: List[HabitSnapshot] = field(default_factory=list)
    goals: List[GoalSnapshot] = field(default_factory=list)
    projects: List[ProjectSnapshot] = field(default_factory=list)
    metadata: ContextMetadata = field(default_factory=ContextMetadata)
    summary: str = ""
    # every project, goal and habit title, uncapped; used for mention tags
    titles: Dict[str, List[str]] = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("titles")
        return data


# === Helpers ===

def resolve_timezone(name: Optional[str]) -> Tuple[Optional[ZoneInfo], str]:
    """
    Resolve a zone name to (tzinfo, identifier).

    With no name the system local zone is used; its tzinfo is returned as
    None and the identifier is the local abbreviation.
    """
    if name:
        try:
            return ZoneInfo(name), name
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone {name!r}: {e}")
    return None, datetime.now().astimezone().tzname() or "UTC"


class _ProjectTaskIndex:
    """Task counts per project from task_ids and task.project_id links."""

    def __init__(self, tasks: Sequence[Task]):
        self._status_by_id: Dict[str, TaskStatus] = {}
        self._ids_by_project: Dict[str, set] = {}
        for task in tasks:
            self._status_by_id[task.id] = task.status
            if task.project_id:
                self._ids_by_project.setdefault(task.project_id, set()).add(task.id)

    def counts(self, project: Project) -> Tuple[int, int]:
        ids = set(project.task_ids) | self._ids_by_project.get(project.id, set())
        completed = sum(1 for tid in ids if self._status_by_id.get(tid) == TaskStatus.COMPLETED)
        return len(ids), completed


def _snapshot_task(task: Task) -> TaskSnapshot:
    return TaskSnapshot(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status.value,
        priority=task.priority.value,
        due_date=format_optional_wire_date(task.due_date),
        project_id=task.project_id,
        tags=list(task.tags),
        created_at=format_optional_wire_date(task.created_at),
        completed_at=format_optional_wire_date(task.completed_at),
    )


def _snapshot_habit(habit: Habit) -> HabitSnapshot:
    return HabitSnapshot(
        id=habit.id,
        title=habit.title,
        description=habit.description,
        frequency=habit.frequency.value,
        target_count=habit.target_count,
        current_count=habit.current_count,
        status=habit.status.value,
        tags=list(habit.tags),
        streak_count=habit.current_streak,
        last_completed_at=format_optional_wire_date(habit.last_completed_at),
    )


def _snapshot_goal(goal: Goal) -> GoalSnapshot:
    return GoalSnapshot(
        id=goal.id,
        title=goal.title,
        description=goal.description,
        goal_type=goal.goal_type.value,
        status=goal.status.value,
        progress_percentage=goal.progress_percentage,
        key_metrics=list(goal.key_metrics),
    )


def _snapshot_project(project: Project, index: _ProjectTaskIndex) -> ProjectSnapshot:
    total, completed = index.counts(project)
    return ProjectSnapshot(
        id=project.id,
        title=project.title,
        description=project.description,
        status=project.status.value,
        priority=project.priority.value,
        created_at=format_optional_wire_date(project.created_at),
        tasks_count=total,
        completed_tasks_count=completed,
    )


# === Summary sections ===

def _more_line(total: int, shown: int, label: str, indent: str = "") -> List[str]:
    if total > shown:
        return [f"{indent}... and {total - shown} more {label}"]
    return []


def render_tasks_section(tasks: Sequence[Task], cfg: AppConfig) -> Optional[str]:
    if not tasks:
        return None

    pending = [t for t in tasks if t.status == TaskStatus.PENDING]
    in_progress = [t for t in tasks if t.status == TaskStatus.IN_PROGRESS]
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]

    lines = [f"TASKS ({len(tasks)} total):"]

    if pending:
        lines.append(f"{BULLET} Pending Tasks ({len(pending)}):")
        for task in pending[:cfg.PENDING_TASK_LIMIT]:
            due = f" (due: {format_wire_date(task.due_date)})" if task.due_date else ""
            lines.append(f"  - {task.title} [Priority: {task.priority.value}]{due}")
        lines += _more_line(len(pending), cfg.PENDING_TASK_LIMIT, "pending tasks", "  ")

    if in_progress:
        lines.append(f"{BULLET} In Progress ({len(in_progress)}):")
        for task in in_progress[:cfg.IN_PROGRESS_TASK_LIMIT]:
            lines.append(f"  - {task.title}")
        lines += _more_line(len(in_progress), cfg.IN_PROGRESS_TASK_LIMIT, "in progress", "  ")

    if completed:
        titles = ", ".join(t.title for t in completed[:cfg.COMPLETED_TASK_LIMIT])
        lines.append(f"{BULLET} Recently Completed ({len(completed)}): {titles}")

    return "\n".join(lines)


def render_projects_section(
    projects: Sequence[Project],
    index: _ProjectTaskIndex,
    cfg: AppConfig
) -> Optional[str]:
    if not projects:
        return None

    lines = [f"PROJECTS ({len(projects)} total):"]
    for project in projects[:cfg.PROJECT_LIMIT]:
        total, completed = index.counts(project)
        tasks_info = f" ({completed}/{total} tasks complete)" if total > 0 else ""
        lines.append(f"{BULLET} {project.title} [Status: {project.status.value}]{tasks_info}")
        if project.description:
            lines.append(f"  Description: {project.description}")
    lines += _more_line(len(projects), cfg.PROJECT_LIMIT, "projects")
    return "\n".join(lines)


def render_goals_section(goals: Sequence[Goal], cfg: AppConfig) -> Optional[str]:
    if not goals:
        return None

    lines = [f"GOALS ({len(goals)} total):"]
    for goal in goals[:cfg.GOAL_LIMIT]:
        progress = f" ({int(goal.progress_percentage)}% complete)" if goal.progress_percentage > 0 else ""
        lines.append(f"{BULLET} {goal.title} [Status: {goal.status.value}]{progress}")
        if goal.description:
            lines.append(f"  {goal.description}")
    lines += _more_line(len(goals), cfg.GOAL_LIMIT, "goals")
    return "\n".join(lines)


def render_habits_section(habits: Sequence[Habit], cfg: AppConfig) -> Optional[str]:
    if not habits:
        return None

    lines = [f"HABITS ({len(habits)} total):"]
    for habit in habits[:cfg.HABIT_LIMIT]:
        streak = f" (streak: {habit.current_streak})" if habit.current_streak > 0 else ""
        lines.append(
            f"{BULLET} {habit.title} [Progress: {habit.current_count}/{habit.target_count}]{streak}"
        )
    lines += _more_line(len(habits), cfg.HABIT_LIMIT, "habits")
    return "\n".join(lines)


def render_totals_section(meta: ContextMetadata) -> str:
    return "\n".join([
        "SUMMARY:",
        f"{BULLET} Total Tasks: {meta.total_tasks} "
        f"({meta.completed_tasks} completed, {meta.overdue_tasks} overdue)",
        f"{BULLET} Active Projects: {meta.active_projects}/{meta.total_projects}",
        f"{BULLET} Active Goals: {meta.active_goals}/{meta.total_goals}",
        f"{BULLET} Active Habits: {meta.active_habits}/{meta.total_habits}",
        f"{BULLET} Context generated: {meta.context_generated_at} ({meta.user_timezone})",
    ])


def render_summary(
    tasks: Sequence[Task],
    habits: Sequence[Habit],
    goals: Sequence[Goal],
    projects: Sequence[Project],
    meta: ContextMetadata,
    cfg: AppConfig,
    index: Optional[_ProjectTaskIndex] = None,
) -> str:
    """
    Render the prompt summary.

    Section order is Tasks, Projects, Goals, Habits, Summary; sections for
    empty collections are left out. With no data at all a guidance block
    replaces the per-collection sections.
    """
    if meta.is_empty:
        return "\n\n".join([
            NO_DATA_GUIDANCE,
            f"Context generated: {meta.context_generated_at} ({meta.user_timezone})",
        ])

    index = index or _ProjectTaskIndex(tasks)
    sections: Iterable[Optional[str]] = (
        render_tasks_section(tasks, cfg),
        render_projects_section(projects, index, cfg),
        render_goals_section(goals, cfg),
        render_habits_section(habits, cfg),
        render_totals_section(meta),
    )
    return "\n\n".join(s for s in sections if s)


# === Entry point ===

def build_metadata(
    tasks: Sequence[Task],
    habits: Sequence[Habit],
    goals: Sequence[Goal],
    projects: Sequence[Project],
    now: datetime,
    timezone_name: str,
) -> ContextMetadata:
    return ContextMetadata(
        total_tasks=len(tasks),
        completed_tasks=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
        overdue_tasks=sum(1 for t in tasks if t.is_overdue(now)),
        total_habits=len(habits),
        active_habits=sum(1 for h in habits if h.status == HabitStatus.ACTIVE),
        total_goals=len(goals),
        active_goals=sum(1 for g in goals if g.status == GoalStatus.IN_PROGRESS),
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
        context_generated_at=format_wire_date(now),
        user_timezone=timezone_name,
    )


def build_rag_context(
    tasks: Sequence[Task],
    habits: Sequence[Habit],
    goals: Sequence[Goal],
    projects: Sequence[Project],
    now: Optional[datetime] = None,
    timezone: Optional[str] = None,
    app_config: Optional[AppConfig] = None,
) -> RAGContext:
    """
    Build the RAG context for the given collections.

    Args:
        tasks, habits, goals, projects: Full in-memory collections
        now: Reference instant for overdue checks and the timestamp
        timezone: IANA zone identifier; defaults to config TIMEZONE,
            then the system local zone
        app_config: Limits and defaults; the module config when omitted

    Returns:
        RAGContext with summary, capped projections and metadata
    """
    cfg = app_config or default_config
    tzinfo, tz_name = resolve_timezone(timezone or cfg.TIMEZONE)
    if now is None:
        now = datetime.now(tzinfo) if tzinfo else datetime.now().astimezone()

    index = _ProjectTaskIndex(tasks)
    meta = build_metadata(tasks, habits, goals, projects, now, tz_name)
    summary = render_summary(tasks, habits, goals, projects, meta, cfg, index)

    cap = cfg.MAX_STRUCTURED_ITEMS
    context = RAGContext(
        tasks=[_snapshot_task(t) for t in tasks[:cap]],
        habits=[_snapshot_habit(h) for h in habits[:cap]],
        goals=[_snapshot_goal(g) for g in goals[:cap]],
        projects=[_snapshot_project(p, index) for p in projects[:cap]],
        metadata=meta,
        summary=summary,
        titles={
            "project": [p.title for p in projects],
            "goal": [g.title for g in goals],
            "habit": [h.title for h in habits],
        },
    )
    logger.debug(
        f"Built context: {meta.total_tasks} tasks, {meta.total_habits} habits, "
        f"{meta.total_goals} goals, {meta.total_projects} projects, {len(summary)} chars"
    )
    return context


def empty_context(now: Optional[datetime] = None, timezone: Optional[str] = None,
                  app_config: Optional[AppConfig] = None) -> RAGContext:
    """Context used when fresh data could not be fetched."""
    return build_rag_context([], [], [], [], now=now, timezone=timezone, app_config=app_config)
