"""
REST client for the OneTask backend.

Thin typed wrapper over ``httpx.AsyncClient``: every call either returns
decoded domain models or raises one of the APIError subclasses. No
retries happen at this layer.
"""
import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from onetask.config_manager import AppConfig, config as default_config
from onetask.date_normalizer import format_wire_date
from onetask.exceptions import (
    DecodeFailureError,
    HttpStatusError,
    InvalidRequestError,
    NoResponseBodyError,
    TransportError,
)
from onetask.logger import get_logger
from onetask.models import Goal, GoalType, Habit, Project, Task
from onetask.schemas import (
    CreateHabitRequest,
    CreateProjectRequest,
    CreateQuarterlyGoalRequest,
    CreateTaskRequest,
    CreateWeeklyGoalRequest,
    CreateYearlyGoalRequest,
    UpdateGoalRequest,
    UpdateHabitRequest,
    UpdateProjectRequest,
    UpdateTaskRequest,
)

logger = get_logger("api_client")

T = TypeVar("T")

# Entity endpoints relative to the base URL
TASKS = "tasks"
HABITS = "habits"
YEARLY_GOALS = "yearly-goals"
QUARTERLY_GOALS = "quarterly-goals"
WEEKLY_GOALS = "weekly-goals"
PROJECTS = "projects"
HEALTH = "health"

DELETE_SUCCESS_CODES = (200, 204)


@dataclass
class SyncSnapshot:
    """Every collection for one user, fetched together."""
    tasks: List[Task] = field(default_factory=list)
    habits: List[Habit] = field(default_factory=list)
    goals: List[Goal] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)


def validate_base_url(base_url: str) -> httpx.URL:
    """Reject base URLs that cannot address an HTTP service."""
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidRequestError(f"malformed base URL {base_url!r}: {e}")
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidRequestError(f"base URL must be absolute http(s), got {base_url!r}")
    return url


class OneTaskAPIClient:
    """
    Async client for the task, habit, goal and project endpoints.

    Reads, updates and deletes are scoped with a ``user_id`` query
    parameter; writes send JSON bodies. A bearer token is attached when
    one is set.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_id: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        app_config: Optional[AppConfig] = None,
    ):
        cfg = app_config or default_config
        self.base_url = (base_url or cfg.BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else cfg.REQUEST_TIMEOUT_SECONDS
        self._user_id = user_id or cfg.DEMO_USER_ID
        self._auth_token = auth_token
        self._client = httpx.AsyncClient(transport=transport, timeout=self.timeout)

    async def __aenter__(self) -> "OneTaskAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # === Identity ===

    @property
    def user_id(self) -> str:
        return self._user_id

    @user_id.setter
    def user_id(self, value: str) -> None:
        self._user_id = value

    @property
    def auth_token(self) -> Optional[str]:
        return self._auth_token

    def set_auth_token(self, token: Optional[str]) -> None:
        self._auth_token = token

    def clear_auth_token(self) -> None:
        self._auth_token = None

    # === Request plumbing ===

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    def _url(self, endpoint: str) -> str:
        validate_base_url(self.base_url)
        return f"{self.base_url}/{endpoint}"

    def _scoped(self) -> Dict[str, str]:
        return {"user_id": self._user_id}

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        url = self._url(endpoint)

        content = None
        if body is not None:
            try:
                content = json.dumps(body)
            except (TypeError, ValueError) as e:
                raise InvalidRequestError(f"cannot encode body: {e}", endpoint)

        logger.debug(f"{method} {endpoint} params={params}")
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                content=content,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {endpoint} timed out after {self.timeout}s")
            raise TransportError(e, endpoint, timeout_seconds=self.timeout)
        except httpx.TransportError as e:
            logger.warning(f"{method} {endpoint} transport failure: {e}")
            raise TransportError(e, endpoint)

        logger.debug(f"{method} {endpoint} -> {response.status_code}")
        return response

    def _json(self, response: httpx.Response, endpoint: str) -> Any:
        if not response.is_success:
            raise HttpStatusError(response.status_code, endpoint)
        if not response.content.strip():
            raise NoResponseBodyError(endpoint)
        try:
            return response.json()
        except ValueError as e:
            raise DecodeFailureError(str(e), endpoint)

    def _decode_one(self, data: Any, factory: Callable[[Dict[str, Any]], T], endpoint: str) -> T:
        if not isinstance(data, dict):
            raise DecodeFailureError(f"expected an object, got {type(data).__name__}", endpoint)
        try:
            return factory(data)
        except (KeyError, TypeError, ValueError) as e:
            # ValueError covers DateParseError and GoalTypeError
            raise DecodeFailureError(f"{type(e).__name__}: {e}", endpoint)

    def _decode_list(self, data: Any, factory: Callable[[Dict[str, Any]], T], endpoint: str) -> List[T]:
        if not isinstance(data, list):
            raise DecodeFailureError(f"expected a list, got {type(data).__name__}", endpoint)
        return [self._decode_one(item, factory, endpoint) for item in data]

    async def _get_list(self, endpoint: str, factory: Callable[[Dict[str, Any]], T]) -> List[T]:
        response = await self._send("GET", endpoint, params=self._scoped())
        return self._decode_list(self._json(response, endpoint), factory, endpoint)

    async def _write(
        self,
        method: str,
        endpoint: str,
        body: Dict[str, Any],
        factory: Callable[[Dict[str, Any]], T],
        scoped: bool,
    ) -> T:
        params = self._scoped() if scoped else None
        response = await self._send(method, endpoint, params=params, body=body)
        return self._decode_one(self._json(response, endpoint), factory, endpoint)

    async def _delete(self, collection: str, item_id: str) -> bool:
        endpoint = self._item(collection, item_id)
        response = await self._send("DELETE", endpoint, params=self._scoped())
        if response.status_code not in DELETE_SUCCESS_CODES:
            raise HttpStatusError(response.status_code, endpoint)
        return True

    @staticmethod
    def _item(collection: str, item_id: str) -> str:
        return f"{collection}/{quote(str(item_id), safe='')}"

    # === Health ===

    async def check_health(self) -> bool:
        """Connectivity gate used before a bulk sync."""
        response = await self._send("GET", HEALTH)
        if not response.is_success:
            raise HttpStatusError(response.status_code, HEALTH)
        return True

    # === Tasks ===

    async def get_tasks(self) -> List[Task]:
        return await self._get_list(TASKS, Task.from_dict)

    async def create_task(self, task: Task) -> Task:
        body = CreateTaskRequest.from_task(task, self._user_id).to_body()
        return await self._write("POST", TASKS, body, Task.from_dict, scoped=False)

    async def update_task(self, task: Task) -> Task:
        body = UpdateTaskRequest.from_task(task).to_body()
        return await self._write("PUT", self._item(TASKS, task.id), body, Task.from_dict, scoped=True)

    async def delete_task(self, task_id: str) -> bool:
        return await self._delete(TASKS, task_id)

    # === Habits ===

    async def get_habits(self) -> List[Habit]:
        return await self._get_list(HABITS, Habit.from_dict)

    async def create_habit(self, habit: Habit) -> Habit:
        body = CreateHabitRequest.from_habit(habit, self._user_id).to_body()
        return await self._write("POST", HABITS, body, Habit.from_dict, scoped=False)

    async def update_habit(self, habit: Habit) -> Habit:
        body = UpdateHabitRequest.from_habit(habit).to_body()
        return await self._write("PUT", self._item(HABITS, habit.id), body, Habit.from_dict, scoped=True)

    async def delete_habit(self, habit_id: str) -> bool:
        return await self._delete(HABITS, habit_id)

    # === Goals ===

    @staticmethod
    def _goal_factory(goal_type: GoalType) -> Callable[[Dict[str, Any]], Goal]:
        return lambda data: Goal.from_dict(data, goal_type)

    async def get_yearly_goals(self) -> List[Goal]:
        return await self._get_list(YEARLY_GOALS, self._goal_factory(GoalType.YEARLY))

    async def get_quarterly_goals(self) -> List[Goal]:
        return await self._get_list(QUARTERLY_GOALS, self._goal_factory(GoalType.QUARTERLY))

    async def get_weekly_goals(self) -> List[Goal]:
        return await self._get_list(WEEKLY_GOALS, self._goal_factory(GoalType.WEEKLY))

    async def get_all_goals(self) -> List[Goal]:
        """Yearly, then quarterly, then weekly goals; any failure fails the join."""
        yearly, quarterly, weekly = await asyncio.gather(
            self.get_yearly_goals(),
            self.get_quarterly_goals(),
            self.get_weekly_goals(),
        )
        return yearly + quarterly + weekly

    async def create_yearly_goal(self, goal: Goal) -> Goal:
        body = CreateYearlyGoalRequest(
            title=goal.title,
            description=goal.description,
            target_year=goal.target_year,
            key_metrics=list(goal.key_metrics),
            user_id=self._user_id,
        ).to_body()
        return await self._write(
            "POST", YEARLY_GOALS, body, self._goal_factory(GoalType.YEARLY), scoped=False
        )

    async def create_quarterly_goal(self, goal: Goal) -> Goal:
        body = CreateQuarterlyGoalRequest(
            title=goal.title,
            description=goal.description,
            target_quarter=goal.target_quarter,
            target_year=goal.target_year,
            key_metrics=list(goal.key_metrics),
            yearly_goal_id=goal.yearly_goal_id,
            user_id=self._user_id,
        ).to_body()
        return await self._write(
            "POST", QUARTERLY_GOALS, body, self._goal_factory(GoalType.QUARTERLY), scoped=False
        )

    async def create_weekly_goal(self, goal: Goal) -> Goal:
        body = CreateWeeklyGoalRequest(
            title=goal.title,
            description=goal.description,
            week_start_date=format_wire_date(goal.week_start_date),
            key_metrics=list(goal.key_metrics),
            quarterly_goal_id=goal.quarterly_goal_id,
            user_id=self._user_id,
        ).to_body()
        return await self._write(
            "POST", WEEKLY_GOALS, body, self._goal_factory(GoalType.WEEKLY), scoped=False
        )

    async def create_goal(self, goal: Goal) -> Goal:
        """Create through the endpoint matching the goal's type."""
        if goal.goal_type == GoalType.WEEKLY:
            return await self.create_weekly_goal(goal)
        if goal.goal_type == GoalType.QUARTERLY:
            return await self.create_quarterly_goal(goal)
        return await self.create_yearly_goal(goal)

    async def update_yearly_goal(self, goal: Goal) -> Goal:
        body = UpdateGoalRequest.from_goal(goal).to_body()
        return await self._write(
            "PUT",
            self._item(YEARLY_GOALS, goal.id),
            body,
            lambda data: Goal.from_dict(data, goal.goal_type),
            scoped=True,
        )

    async def delete_yearly_goal(self, goal_id: str) -> bool:
        return await self._delete(YEARLY_GOALS, goal_id)

    # === Projects ===

    async def get_projects(self) -> List[Project]:
        return await self._get_list(PROJECTS, Project.from_dict)

    async def create_project(self, project: Project) -> Project:
        body = CreateProjectRequest.from_project(project, self._user_id).to_body()
        return await self._write("POST", PROJECTS, body, Project.from_dict, scoped=False)

    async def update_project(self, project: Project) -> Project:
        body = UpdateProjectRequest.from_project(project).to_body()
        return await self._write(
            "PUT", self._item(PROJECTS, project.id), body, Project.from_dict, scoped=True
        )

    async def delete_project(self, project_id: str) -> bool:
        return await self._delete(PROJECTS, project_id)

    # === Bulk ===

    async def sync_all(self) -> SyncSnapshot:
        """Fetch all six collections concurrently."""
        tasks, habits, goals, projects = await asyncio.gather(
            self.get_tasks(),
            self.get_habits(),
            self.get_all_goals(),
            self.get_projects(),
        )
        logger.info(
            f"Synced {len(tasks)} tasks, {len(habits)} habits, "
            f"{len(goals)} goals, {len(projects)} projects for {self._user_id}"
        )
        return SyncSnapshot(tasks=tasks, habits=habits, goals=goals, projects=projects)
