"""Client-side state for the task manager front-end.

The browser UI keeps its session, theme and dashboard state here. Each piece
is an explicit object handed to the parts that need it:

* ``LocalStorage`` persists small values between runs (token, user, theme).
* ``SessionContext`` and ``ThemeContext`` wrap that storage.
* ``ApiClient`` talks to the REST API and signs every request with the session token.
* ``Dashboard`` owns filter/sort/page selections, the open form and the current page of tasks.
* ``TaskApp`` wires them together, with ``start()`` and ``logout()`` as the
  only places the session is set up or torn down.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple, Union

import httpx

from config import get_client_settings

logger = logging.getLogger(__name__)

STATUSES = ("Pending", "In Progress", "Done")
SORT_OPTIONS = ("deadline", "createdAt", "status")


# --- Persistent storage ---

class LocalStorage:
    """String key/value store saved as a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._data: Dict[str, str] = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                data = None
            if isinstance(data, dict):
                self._data = data
            else:
                logger.warning("Ignoring unreadable storage file %s", self.path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data), encoding="utf-8")


class ThemeContext:
    def __init__(self, storage: LocalStorage):
        self.storage = storage
        # Light mode unless dark was saved
        self.dark_mode = storage.get("darkMode") == "true"

    def toggle(self) -> bool:
        self.dark_mode = not self.dark_mode
        self.storage.set("darkMode", "true" if self.dark_mode else "false")
        return self.dark_mode


class SessionContext:
    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    def load(self) -> bool:
        token = self.storage.get("token")
        user_data = self.storage.get("user")
        if token and user_data:
            try:
                self.token, self.user = token, json.loads(user_data)
            except ValueError:
                logger.warning("Discarding corrupt cached user")
                self.clear()
        return self.is_authenticated

    def start(self, token: str, user: Dict[str, Any]) -> None:
        self.token, self.user = token, user
        self.storage.set("token", token)
        self.storage.set("user", json.dumps(user))

    def clear(self) -> None:
        self.token, self.user = None, None
        self.storage.remove("token")
        self.storage.remove("user")


# --- HTTP ---

class ApiError(Exception):
    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401


class SessionAuth(httpx.Auth):
    """Adds the current session's bearer token to each outgoing request."""

    def __init__(self, session: SessionContext):
        self.session = session

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.session.token:
            request.headers["Authorization"] = f"Bearer {self.session.token}"
        yield request


class ApiClient:
    def __init__(self, session: SessionContext, base_url: Optional[str] = None, http: Optional[httpx.Client] = None):
        self.session = session
        self.http = http or httpx.Client(base_url=base_url or get_client_settings().api_url)
        self._auth = SessionAuth(session)

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.http.request(method, url, auth=self._auth, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiError(None, "Could not reach the server") from exc
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning("%s %s -> %s", method, url, response.status_code)
            raise ApiError(response.status_code, message or response.reason_phrase)
        return body

    def signup(self, email: str, password: str, name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"email": email, "password": password}
        if name:
            payload["name"] = name
        return self._request("POST", "/auth/signup", json=payload)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/login", json={"email": email, "password": password})

    def list_tasks(
        self,
        status: Optional[str] = None,
        sort_by: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = {"status": status, "sortBy": sort_by, "page": page, "limit": limit}
        return self._request("GET", "/tasks", params={k: v for k, v in params.items() if v})

    def create_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/tasks", json=task)

    def update_task(self, task_id: str, task: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/tasks/{task_id}", json=task)

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/tasks/{task_id}")

    def close(self) -> None:
        self.http.close()


# --- UI state ---

@dataclass
class Notification:
    level: str
    message: str


class Notifier:
    """Collects the transient toasts shown to the user."""

    def __init__(self):
        self.messages: List[Notification] = []

    def success(self, message: str) -> None:
        self._push("success", message)

    def error(self, message: str) -> None:
        self._push("error", message)

    def _push(self, level: str, message: str) -> None:
        logger.debug("%s: %s", level, message)
        self.messages.append(Notification(level, message))

    @property
    def last(self) -> Optional[Notification]:
        return self.messages[-1] if self.messages else None


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_overdue(task: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return task["status"] != "Done" and _parse_datetime(task["deadline"]) < now


def is_due_today(task: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    # "Today" is the user's local calendar day
    today = (now or datetime.now(timezone.utc)).astimezone().date()
    return task["status"] != "Done" and _parse_datetime(task["deadline"]).astimezone().date() == today


@dataclass
class TaskForm:
    title: str = ""
    description: str = ""
    status: str = "Pending"
    deadline: datetime = field(default_factory=lambda: datetime.now(timezone.utc) + timedelta(days=1))
    task_id: Optional[str] = None

    @classmethod
    def for_task(cls, task: Dict[str, Any]) -> "TaskForm":
        return cls(
            title=task["title"],
            description=task.get("description", ""),
            status=task["status"],
            deadline=_parse_datetime(task["deadline"]),
            task_id=task["_id"],
        )

    @property
    def is_edit(self) -> bool:
        return self.task_id is not None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "deadline": self.deadline.isoformat(),
        }


class Dashboard:
    """Task list with its filter, sort and page selections.

    Changing any selection fetches the list again. A failed call leaves the
    previous list in place and shows an error; a 401 calls ``on_unauthorized``.
    """

    def __init__(
        self,
        api: ApiClient,
        notifier: Notifier,
        on_unauthorized: Optional[Callable[[], None]] = None,
        page_size: Optional[int] = None,
    ):
        self.api = api
        self.notifier = notifier
        self.on_unauthorized = on_unauthorized
        self.page_size = page_size or get_client_settings().page_size

        self.tasks: List[Dict[str, Any]] = []
        self.status_filter = ""
        self.sort_by = "deadline"
        self.current_page = 1
        self.total_pages = 1
        self.total_tasks = 0
        self.form: Optional[TaskForm] = None

    def refresh(self) -> bool:
        try:
            data = self.api.list_tasks(
                status=self.status_filter or None,
                sort_by=self.sort_by,
                page=self.current_page,
                limit=self.page_size,
            )
        except ApiError as exc:
            self._failed(exc, "Failed to load tasks")
            return False
        self.tasks = data["tasks"]
        self.total_pages = data["pagination"]["totalPages"]
        self.total_tasks = data["pagination"]["totalTasks"]
        return True

    def set_status_filter(self, status: str) -> None:
        self.status_filter = status if status in STATUSES else ""
        self.current_page = 1
        self.refresh()

    def set_sort(self, sort_by: str) -> None:
        self.sort_by = sort_by if sort_by in SORT_OPTIONS else "deadline"
        self.current_page = 1
        self.refresh()

    def go_to_page(self, page: int) -> None:
        self.current_page = max(1, min(page, max(self.total_pages, 1)))
        self.refresh()

    def reset_filters(self) -> None:
        self.status_filter = ""
        self.sort_by = "deadline"
        self.current_page = 1
        self.refresh()

    def open_new_form(self) -> TaskForm:
        self.form = TaskForm()
        return self.form

    def open_edit_form(self, task: Dict[str, Any]) -> TaskForm:
        self.form = TaskForm.for_task(task)
        return self.form

    def close_form(self) -> None:
        self.form = None

    def save_form(self) -> bool:
        """Submit the open form; it stays open with its values if the save fails."""
        if self.form is None:
            return False
        try:
            if self.form.is_edit:
                self.api.update_task(self.form.task_id, self.form.to_payload())
                self.notifier.success("Task updated successfully!")
            else:
                self.api.create_task(self.form.to_payload())
                self.notifier.success("Task created successfully!")
        except ApiError as exc:
            self._failed(exc, exc.message or "Failed to save task")
            return False
        self.close_form()
        self.refresh()
        return True

    def delete_task(self, task_id: str, confirm: Callable[[str], bool]) -> bool:
        if not confirm("Are you sure you want to delete this task?"):
            return False
        try:
            self.api.delete_task(task_id)
        except ApiError as exc:
            self._failed(exc, "Failed to delete task")
            return False
        self.notifier.success("Task deleted successfully!")
        self.refresh()
        return True

    def _failed(self, exc: ApiError, message: str) -> None:
        self.notifier.error(message)
        if exc.unauthorized and self.on_unauthorized is not None:
            self.on_unauthorized()


class TaskApp:
    LOGIN = "login"
    DASHBOARD = "dashboard"

    def __init__(
        self,
        storage: LocalStorage,
        http: Optional[httpx.Client] = None,
        base_url: Optional[str] = None,
        page_size: Optional[int] = None,
    ):
        self.storage = storage
        self.theme = ThemeContext(storage)
        self.session = SessionContext(storage)
        self.notifier = Notifier()
        self.api = ApiClient(self.session, base_url=base_url, http=http)
        self.page_size = page_size
        self.route = self.LOGIN
        self.dashboard: Optional[Dashboard] = None

    def start(self) -> str:
        if self.session.load():
            self._open_dashboard()
        else:
            self.route = self.LOGIN
        return self.route

    def signup(self, email: str, password: str, name: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        return self._authenticate(lambda: self.api.signup(email, password, name), "Signup failed")

    def login(self, email: str, password: str) -> Tuple[bool, Optional[str]]:
        return self._authenticate(lambda: self.api.login(email, password), "Login failed")

    def logout(self) -> None:
        self.session.clear()
        self.dashboard = None
        self.route = self.LOGIN

    def close(self) -> None:
        self.api.close()

    def _authenticate(self, call: Callable[[], Dict[str, Any]], fallback: str) -> Tuple[bool, Optional[str]]:
        try:
            data = call()
        except ApiError as exc:
            return False, exc.message or fallback
        self.session.start(data["token"], data["user"])
        self._open_dashboard()
        return True, None

    def _open_dashboard(self) -> None:
        self.route = self.DASHBOARD
        self.dashboard = Dashboard(self.api, self.notifier, on_unauthorized=self.logout, page_size=self.page_size)
        self.dashboard.refresh()
