"""
Small synchronous client for the Taskhub API.

The bearer token lives on an explicit :class:`Session` owned by the client
instead of in some process-wide store. Its lifecycle is:

- ``login()`` / ``register()`` load a session,
- ``validate()`` re-fetches the profile and clears the session if the server
  no longer accepts the token,
- ``logout()`` clears it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class NotAuthenticated(Exception):
    pass


@dataclass
class Session:
    token: Optional[str] = None
    user: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def load(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        self.token = token
        self.user = dict(user or {})

    def clear(self) -> None:
        self.token = None
        self.user = {}


class TaskhubClient:
    def __init__(self, base_url: str = "http://localhost:8000", *, http: Optional[httpx.Client] = None,
                 timeout: float = 10.0):
        self._owns_http = http is None
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.session = Session()

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # -- plumbing --

    def _headers(self, auth: bool) -> Dict[str, str]:
        if not auth:
            return {}
        if not self.session.is_authenticated:
            raise NotAuthenticated("No active session; call login() first")
        return {"Authorization": f"Bearer {self.session.token}"}

    def _request(self, method: str, path: str, *, auth: bool = True, **kwargs) -> Any:
        response = self.http.request(method, path, headers=self._headers(auth), **kwargs)
        if response.is_error:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            raise ApiError(response.status_code, detail)
        return response.json()

    # -- session lifecycle --

    def register(self, first_name: str, last_name: str, email: str, password: str) -> Dict[str, Any]:
        data = self._request(
            "POST",
            "/api/auth/register",
            auth=False,
            json={"firstName": first_name, "lastName": last_name, "email": email, "password": password},
        )
        self.session.load(data["token"], data["user"])
        return data["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", auth=False, json={"email": email, "password": password})
        self.session.load(data["token"], data["user"])
        return data["user"]

    def validate(self) -> bool:
        """Check the stored token against the server; clears the session when rejected."""
        if not self.session.is_authenticated:
            return False
        try:
            self.session.user = self._request("GET", "/api/auth/profile")
        except ApiError as e:
            if e.status_code != 401:
                raise
            logger.info("Session token rejected, clearing session")
            self.session.clear()
            return False
        return True

    def logout(self) -> None:
        self.session.clear()

    def update_profile(self, **fields) -> Dict[str, Any]:
        self.session.user = self._request("PUT", "/api/auth/profile", json=fields)["user"]
        return self.session.user

    def update_settings(self, **fields) -> Dict[str, Any]:
        self.session.user = self._request("PUT", "/api/auth/settings", json=fields)["user"]
        return self.session.user

    # -- tasks --

    def list_tasks(self, **params) -> Dict[str, Any]:
        query = {k: v for k, v in params.items() if v is not None}
        if isinstance(query.get("completed"), bool):
            query["completed"] = "true" if query["completed"] else "false"
        return self._request("GET", "/api/tasks", params=query)

    def get_task(self, task_id) -> Dict[str, Any]:
        return self._request("GET", f"/api/tasks/{task_id}")

    def create_task(self, title: str, **fields) -> Dict[str, Any]:
        return self._request("POST", "/api/tasks", json={"title": title, **fields})["task"]

    def update_task(self, task_id, **fields) -> Dict[str, Any]:
        return self._request("PUT", f"/api/tasks/{task_id}", json=fields)["task"]

    def delete_task(self, task_id) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/tasks/{task_id}")["task"]

    def add_note(self, task_id, content: str) -> Dict[str, Any]:
        return self._request("POST", f"/api/tasks/{task_id}/notes", json={"content": content})["task"]

    def add_attachment(self, task_id, filename: str, url: str) -> Dict[str, Any]:
        return self._request(
            "POST", f"/api/tasks/{task_id}/attachments", json={"filename": filename, "url": url}
        )["task"]

    def stats(self) -> Dict[str, Any]:
        return self._request("GET", "/api/tasks/stats/overview")
