import inspect
import logging
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import httpx

from taskhub.client.cache import ResourceCache
from taskhub.client.decorators import cached, invalidates
from taskhub.client.listener import RealtimeListener

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A non-2xx response; ``message`` is the server-provided text."""

    def __init__(self, status: int, message: str, details: Any = None):
        self.status = status
        self.message = message
        self.details = details
        super().__init__(f"{status}: {message}")


def task_filters(status=None, priority=None, sort_by=None) -> dict[str, str]:
    params = {"status": status, "priority": priority, "sortBy": sort_by}
    return {k: v for k, v in sorted(params.items()) if v}


def tasks_key(status=None, priority=None, sort_by=None) -> str:
    params = task_filters(status, priority, sort_by)
    return f"/tasks?{urlencode(params)}" if params else "/tasks"


class TaskHubClient:
    """
    Async client for the TaskHub REST API.

    Reads are served through a ResourceCache; mutations invalidate the keys
    they affect. A 401 on any request other than login or registration ends
    the session: the token and cache are dropped and ``on_unauthorized`` is
    called. Failed requests are never retried.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        cache: ResourceCache | None = None,
        on_unauthorized: Optional[Callable[[], Any]] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.cache = cache or ResourceCache()
        self.on_unauthorized = on_unauthorized
        self._http = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    # ---- transport ----

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
        credential_check: bool = False,
    ):
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        response = await self._http.request(
            method, path, json=json, params=params, headers=headers
        )

        if response.is_error:
            await self._raise_for(response, credential_check=credential_check)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _raise_for(self, response: httpx.Response, *, credential_check: bool = False):
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("message") if isinstance(body, dict) else None
        message = message or f"HTTP error! status: {response.status_code}"
        details = body.get("errors") if isinstance(body, dict) else None

        logger.error(
            "API error %s %s %s: %s",
            response.status_code,
            response.request.method,
            response.request.url,
            body or response.text,
        )

        # a rejected login or registration leaves the current session alone
        if response.status_code == 401 and not credential_check:
            await self._end_session()
        raise ApiError(response.status_code, message, details)

    async def _end_session(self):
        self.token = None
        self.cache.clear()
        if self.on_unauthorized is not None:
            outcome = self.on_unauthorized()
            if inspect.isawaitable(outcome):
                await outcome

    # ---- auth ----

    async def register(self, email: str, password: str, name: str) -> dict:
        data = await self._request(
            "POST",
            "/auth/register",
            json={"email": email, "password": password, "name": name},
            credential_check=True,
        )
        self.token = data["token"]
        self.cache.clear()
        return data["user"]

    async def login(self, email: str, password: str) -> dict:
        data = await self._request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            credential_check=True,
        )
        self.token = data["token"]
        self.cache.clear()
        return data["user"]

    async def logout(self) -> None:
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self.token = None
            self.cache.clear()

    @cached(lambda self: "/auth/me")
    async def me(self) -> dict:
        return (await self._request("GET", "/auth/me"))["user"]

    @invalidates("/auth/me", "/users", "/tasks")
    async def update_profile(self, name: str) -> dict:
        return (await self._request("PATCH", "/auth/profile", json={"name": name}))["user"]

    @cached(lambda self: "/users")
    async def users(self) -> list[dict]:
        return await self._request("GET", "/users")

    # ---- tasks ----

    @cached(lambda self, *args, **kwargs: tasks_key(*args, **kwargs))
    async def tasks(
        self, status: str | None = None, priority: str | None = None, sort_by: str | None = None
    ) -> list[dict]:
        params = task_filters(status, priority, sort_by)
        return (await self._request("GET", "/tasks", params=params))["tasks"]

    @cached(lambda self, task_id: f"/tasks/{task_id}")
    async def task(self, task_id: str) -> dict:
        return (await self._request("GET", f"/tasks/{task_id}"))["task"]

    @cached(lambda self: "/tasks/dashboard/stats")
    async def dashboard(self) -> dict:
        return await self._request("GET", "/tasks/dashboard/stats")

    @invalidates("/tasks", "/notifications")
    async def create_task(self, **fields) -> dict:
        return (await self._request("POST", "/tasks", json=fields))["task"]

    @invalidates("/tasks", "/notifications")
    async def update_task(self, task_id: str, **fields) -> dict:
        return (await self._request("PATCH", f"/tasks/{task_id}", json=fields))["task"]

    @invalidates("/tasks")
    async def delete_task(self, task_id: str) -> dict:
        return await self._request("DELETE", f"/tasks/{task_id}")

    # ---- notifications ----

    @cached(lambda self: "/notifications")
    async def notifications(self) -> list[dict]:
        return (await self._request("GET", "/notifications"))["notifications"]

    async def unread_count(self) -> int:
        return sum(1 for n in await self.notifications() if not n["read"])

    @invalidates("/notifications")
    async def mark_as_read(self, notification_id: str) -> dict:
        data = await self._request("PATCH", f"/notifications/{notification_id}/read")
        return data["notification"]

    @invalidates("/notifications")
    async def delete_notification(self, notification_id: str) -> None:
        await self._request("DELETE", f"/notifications/{notification_id}")

    @invalidates("/notifications")
    async def delete_all_notifications(self) -> None:
        await self._request("DELETE", "/notifications")

    # ---- realtime ----

    def events_url(self) -> str:
        """WebSocket URL of the event stream, carrying the session token."""
        url = self.base_url.replace("https://", "wss://", 1).replace("http://", "ws://", 1)
        return f"{url}/ws?{urlencode({'token': self.token or ''})}"

    def listener(self, on_event: Optional[Callable[[str, Any], Any]] = None):
        """A RealtimeListener that revalidates this client's cache."""
        return RealtimeListener(self.cache, self.events_url(), on_event=on_event)
