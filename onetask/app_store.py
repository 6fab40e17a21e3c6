"""
Application State Store.

Explicit, injected state container for the current session. Holds the
domain collections, the signed-in identity, the loading flag and the last
surfaced error. Collections change only through the store's methods and
only after the awaited API call completes; every change is announced to
subscribers as a StoreEvent.
"""
import dataclasses
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from onetask.api_client import OneTaskAPIClient, SyncSnapshot
from onetask.config_manager import AppConfig, config as default_config
from onetask.exceptions import APIError, AuthError, OneTaskError
from onetask.logger import get_logger
from onetask.models import (
    Goal,
    GoalStatus,
    GoalType,
    Habit,
    HabitStatus,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
)
from onetask.rag_context import RAGContext, build_rag_context
from onetask.sample_data import load_sample_data

logger = get_logger("app_store")

T = TypeVar("T")


class StoreEventType(str, Enum):
    TASKS_CHANGED = "tasks_changed"
    HABITS_CHANGED = "habits_changed"
    GOALS_CHANGED = "goals_changed"
    PROJECTS_CHANGED = "projects_changed"
    USER_CHANGED = "user_changed"
    LOADING_CHANGED = "loading_changed"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"
    ERROR_REPORTED = "error_reported"
    ERROR_CLEARED = "error_cleared"


@dataclass
class StoreEvent:
    type: StoreEventType
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UserIdentity:
    user_id: str
    display_name: str
    email: str = ""
    is_logged_in: bool = False


StoreListener = Callable[[StoreEvent], None]

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)")


def extract_simple_user_id(compound_id: str) -> str:
    """
    Backend user id from an identity provider account id.

    Provider ids look like "<object-id>.<tenant-id>"; data is stored under
    the part before the first dot.
    """
    return compound_id.split(".", 1)[0]


class AppStore:
    """In-memory state for one session."""

    def __init__(self, api: OneTaskAPIClient, app_config: Optional[AppConfig] = None):
        self.api = api
        self.config = app_config or default_config

        self._tasks: List[Task] = []
        self._habits: List[Habit] = []
        self._goals: List[Goal] = []
        self._projects: List[Project] = []
        self._listeners: List[StoreListener] = []

        self.user = UserIdentity(self.config.DEMO_USER_ID, self.config.DEMO_USER_NAME)
        self.is_loading = False
        self.last_error: Optional[Exception] = None
        self.has_synced = False

        # dashboard goal filters
        self.show_weekly_goals = True
        self.show_quarterly_goals = True
        self.show_yearly_goals = True

        self.api.user_id = self.user.user_id
        if self.config.FALLBACK_TO_SAMPLE_DATA:
            self._replace_all(load_sample_data())

    # === Read access ===

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def habits(self) -> List[Habit]:
        return list(self._habits)

    @property
    def goals(self) -> List[Goal]:
        return list(self._goals)

    @property
    def projects(self) -> List[Project]:
        return list(self._projects)

    # === Events ===

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: StoreEventType, **payload) -> None:
        event = StoreEvent(event_type, payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Store listener failed on {event_type.value}")

    def _set_loading(self, value: bool) -> None:
        if self.is_loading != value:
            self.is_loading = value
            self._emit(StoreEventType.LOADING_CHANGED, is_loading=value)

    def _replace_all(self, snapshot: SyncSnapshot) -> None:
        self._tasks = list(snapshot.tasks)
        self._habits = list(snapshot.habits)
        self._goals = list(snapshot.goals)
        self._projects = list(snapshot.projects)
        self._emit(StoreEventType.TASKS_CHANGED, count=len(self._tasks))
        self._emit(StoreEventType.HABITS_CHANGED, count=len(self._habits))
        self._emit(StoreEventType.GOALS_CHANGED, count=len(self._goals))
        self._emit(StoreEventType.PROJECTS_CHANGED, count=len(self._projects))

    # === Sync ===

    async def sync_from_backend(self) -> bool:
        """
        Reload every collection from the backend.

        The health endpoint gates the sync: when the backend is unreachable
        the current (possibly sample) data is kept silently. A failed sync
        keeps the current data and reports the error.

        Returns:
            True if the collections were replaced
        """
        if self.is_loading:
            logger.info("Sync already in progress, skipping")
            return False

        self._set_loading(True)
        self.dismiss_error()
        try:
            try:
                await self.api.check_health()
            except APIError as e:
                logger.warning(f"Backend unavailable, keeping current data: {e}")
                self._emit(StoreEventType.SYNC_FAILED, reason="health", error=str(e))
                return False

            try:
                snapshot = await self.api.sync_all()
            except APIError as e:
                self.report_error(e)
                self._emit(StoreEventType.SYNC_FAILED, reason="sync", error=str(e))
                return False
        finally:
            self._set_loading(False)

        self._replace_all(snapshot)
        self.has_synced = True
        self._emit(StoreEventType.SYNC_COMPLETED)
        return True

    # === CRUD plumbing ===

    async def _create(
        self,
        items: List[T],
        call: Callable[[T], Awaitable[T]],
        item: T,
        event: StoreEventType,
    ) -> Optional[T]:
        try:
            created = await call(item)
        except APIError as e:
            self.report_error(e)
            return None
        items.append(created)
        self._emit(event, id=created.id)
        return created

    async def _update(
        self,
        items: List[T],
        call: Callable[[T], Awaitable[T]],
        item: T,
        event: StoreEventType,
    ) -> Optional[T]:
        try:
            updated = await call(item)
        except APIError as e:
            self.report_error(e)
            return None
        self._replace_item(items, updated)
        self._emit(event, id=updated.id)
        return updated

    async def _delete(
        self,
        items: List[Any],
        call: Callable[[str], Awaitable[bool]],
        item_id: str,
        event: StoreEventType,
    ) -> bool:
        try:
            await call(item_id)
        except APIError as e:
            self.report_error(e)
            return False
        items[:] = [i for i in items if i.id != item_id]
        self._emit(event, id=item_id)
        return True

    @staticmethod
    def _replace_item(items: List[Any], item: Any) -> bool:
        for idx, existing in enumerate(items):
            if existing.id == item.id:
                items[idx] = item
                return True
        return False

    # === Tasks ===

    async def add_task(self, task: Task) -> Optional[Task]:
        return await self._create(self._tasks, self.api.create_task, task, StoreEventType.TASKS_CHANGED)

    async def update_task(self, task: Task) -> Task:
        """
        Optimistic update: the local copy changes first, then the backend.

        A backend failure is logged only; the local edit stays.
        """
        if self._replace_item(self._tasks, task):
            self._emit(StoreEventType.TASKS_CHANGED, id=task.id)

        try:
            updated = await self.api.update_task(task)
        except APIError as e:
            logger.warning(f"Task update for {task.id} not saved to backend: {e}")
            return task

        if self._replace_item(self._tasks, updated):
            self._emit(StoreEventType.TASKS_CHANGED, id=updated.id)
        return updated

    async def set_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        now: Optional[datetime] = None
    ) -> Task:
        """Change a task's status, stamping or clearing completed_at."""
        current = next((t for t in self._tasks if t.id == task_id), None)
        if current is None:
            raise KeyError(task_id)
        changed = dataclasses.replace(current, tags=list(current.tags))
        changed.set_status(status, now)
        return await self.update_task(changed)

    async def delete_task(self, task_id: str) -> bool:
        return await self._delete(self._tasks, self.api.delete_task, task_id, StoreEventType.TASKS_CHANGED)

    # === Habits ===

    async def add_habit(self, habit: Habit) -> Optional[Habit]:
        return await self._create(self._habits, self.api.create_habit, habit, StoreEventType.HABITS_CHANGED)

    async def update_habit(self, habit: Habit) -> Optional[Habit]:
        return await self._update(self._habits, self.api.update_habit, habit, StoreEventType.HABITS_CHANGED)

    async def delete_habit(self, habit_id: str) -> bool:
        return await self._delete(self._habits, self.api.delete_habit, habit_id, StoreEventType.HABITS_CHANGED)

    # === Goals ===

    async def add_goal(self, goal: Goal) -> Optional[Goal]:
        return await self._create(self._goals, self.api.create_goal, goal, StoreEventType.GOALS_CHANGED)

    async def update_goal(self, goal: Goal) -> Optional[Goal]:
        return await self._update(self._goals, self.api.update_yearly_goal, goal, StoreEventType.GOALS_CHANGED)

    async def delete_goal(self, goal_id: str) -> bool:
        return await self._delete(self._goals, self.api.delete_yearly_goal, goal_id, StoreEventType.GOALS_CHANGED)

    # === Projects ===

    async def add_project(self, project: Project) -> Optional[Project]:
        return await self._create(self._projects, self.api.create_project, project, StoreEventType.PROJECTS_CHANGED)

    async def update_project(self, project: Project) -> Optional[Project]:
        return await self._update(self._projects, self.api.update_project, project, StoreEventType.PROJECTS_CHANGED)

    async def delete_project(self, project_id: str) -> bool:
        return await self._delete(
            self._projects, self.api.delete_project, project_id, StoreEventType.PROJECTS_CHANGED
        )

    # === Identity ===

    async def sign_in(
        self,
        account_id: str,
        display_name: Optional[str] = None,
        email: str = "",
        token: Optional[str] = None,
        sync: bool = True,
    ) -> None:
        """
        Adopt an identity from the auth provider, then sync.

        Without a token the session continues unauthenticated.
        """
        user_id = extract_simple_user_id(account_id)
        self.user = UserIdentity(user_id, display_name or "User", email, is_logged_in=True)
        self.api.user_id = user_id
        if token:
            self.api.set_auth_token(token)
        else:
            logger.warning(f"No access token for {user_id}, continuing without one")
        logger.info(f"Signed in as {user_id}")
        self._emit(StoreEventType.USER_CHANGED, user_id=user_id)

        if sync:
            await self.sync_from_backend()

    async def sign_in_demo(self, sync: bool = True) -> None:
        await self.sign_in(self.config.DEMO_USER_ID, self.config.DEMO_USER_NAME, sync=sync)

    def sign_out(self) -> None:
        """Back to the demo user and the bundled sample data."""
        self.user = UserIdentity(self.config.DEMO_USER_ID, self.config.DEMO_USER_NAME)
        self.api.user_id = self.user.user_id
        self.api.clear_auth_token()
        self.has_synced = False
        self._emit(StoreEventType.USER_CHANGED, user_id=self.user.user_id)
        self._replace_all(load_sample_data())

    @property
    def first_name(self) -> str:
        # "Jane Doe (Demo)" -> "Jane"
        name = _PARENTHETICAL.sub("", self.user.display_name).strip()
        parts = name.split()
        return parts[0].capitalize() if parts else "User"

    # === Dashboard views ===

    def todays_tasks(self, now: Optional[datetime] = None) -> List[Task]:
        """Pending tasks due today or earlier, plus pending tasks with no due date."""
        now = now or datetime.now().astimezone()
        result = []
        for task in self._tasks:
            if task.status != TaskStatus.PENDING:
                continue
            if task.due_date is None or task.due_date.astimezone(now.tzinfo).date() <= now.date():
                result.append(task)
        return result

    def active_habits(self) -> List[Habit]:
        return [h for h in self._habits if h.status == HabitStatus.ACTIVE]

    def active_goals(self) -> List[Goal]:
        """Goals not yet completed whose type is switched on in the filters."""
        visible = {
            GoalType.WEEKLY: self.show_weekly_goals,
            GoalType.QUARTERLY: self.show_quarterly_goals,
            GoalType.YEARLY: self.show_yearly_goals,
        }
        return [g for g in self._goals if g.status != GoalStatus.COMPLETED and visible[g.goal_type]]

    def active_projects(self) -> List[Project]:
        return [p for p in self._projects if p.status != ProjectStatus.COMPLETED]

    # === Errors ===

    def report_error(self, error: Exception) -> None:
        """Surface an error to the UI."""
        self.last_error = error
        if isinstance(error, OneTaskError):
            message = error.get_user_message()
        else:
            message = str(error)
        logger.error(f"Reported error: {message}")
        self._emit(StoreEventType.ERROR_REPORTED, message=message)

    def report_auth_error(self, error: AuthError) -> bool:
        """
        Surface an auth error unless its code is a known platform quirk.

        Returns:
            True if the error was surfaced
        """
        if not error.is_actionable:
            logger.warning(f"Suppressed non-actionable auth error: {error.message}")
            return False
        self.report_error(error)
        return True

    def dismiss_error(self) -> None:
        if self.last_error is not None:
            self.last_error = None
            self._emit(StoreEventType.ERROR_CLEARED)

    # === Context ===

    def build_context(self, now: Optional[datetime] = None) -> RAGContext:
        return build_rag_context(
            self._tasks, self._habits, self._goals, self._projects,
            now=now, app_config=self.config,
        )
