"""HTTP client for the task board API."""

from typing import Any, Dict, Iterable, List, Optional

import httpx

from taskboard.schemas.task import SplitResult, TaskRead
from taskboard.schemas.time_log import TimeGateResult, TimeLogList, TimeLogRead


class BoardApiError(Exception):
    """Error result from the board API, carrying the server's error code."""

    def __init__(self, code: str, message: str, status_code: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{status_code} {code}: {message}")
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    @classmethod
    def from_response(cls, response: httpx.Response) -> "BoardApiError":
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            return cls(
                error.get("code", "unknown"),
                error.get("message", ""),
                response.status_code,
                error.get("details"),
            )
        if isinstance(body, dict) and "detail" in body:
            # Plain HTTPException, e.g. missing principal headers
            code = "unauthorized" if response.status_code == 401 else "http_error"
            return cls(code, str(body["detail"]), response.status_code)
        return cls("http_error", response.text, response.status_code)


class BoardApiClient:
    """
    Async client acting as one principal.

    The principal goes out in the X-User-* headers the upstream auth layer
    would normally set.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        user_id: int,
        role: str,
        permissions: Optional[Iterable[str]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.user_id = user_id
        self.role = role
        self.permissions = list(permissions) if permissions is not None else None
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BoardApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-User-Id": str(self.user_id),
            "X-User-Role": self.role,
        }
        if self.permissions is not None:
            headers["X-User-Permissions"] = ",".join(self.permissions)
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._get_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Make one request. No retries: a failed mutation is the caller's
        signal to resync.

        Raises:
            BoardApiError: For any 4xx/5xx response
        """
        client = self._get_client()
        url = path if path.startswith("/") else f"/{path}"
        response = await client.request(method, url, json=json, params=params)
        if response.is_error:
            raise BoardApiError.from_response(response)
        return response

    # ---- tasks ----

    async def list_tasks(self, **filters: Any) -> List[TaskRead]:
        params = {key: value for key, value in filters.items() if value is not None}
        response = await self.request("GET", "/tasks", params=params)
        return [TaskRead.model_validate(item) for item in response.json()]

    async def get_task(self, task_id: int) -> TaskRead:
        response = await self.request("GET", f"/tasks/{task_id}")
        return TaskRead.model_validate(response.json())

    async def create_task(self, data: Dict[str, Any]) -> TaskRead:
        response = await self.request("POST", "/tasks", json=data)
        return TaskRead.model_validate(response.json())

    async def update_task(self, task_id: int, changes: Dict[str, Any]) -> TaskRead:
        response = await self.request("PATCH", f"/tasks/{task_id}", json=changes)
        return TaskRead.model_validate(response.json())

    async def change_status(self, task_id: int, status: str) -> TaskRead:
        response = await self.request("PATCH", f"/tasks/{task_id}/status", json={"status": str(getattr(status, "value", status))})
        return TaskRead.model_validate(response.json())

    async def archive(self, task_id: int) -> TaskRead:
        response = await self.request("PATCH", f"/tasks/{task_id}/archive")
        return TaskRead.model_validate(response.json())

    async def unarchive(self, task_id: int) -> TaskRead:
        response = await self.request("PATCH", f"/tasks/{task_id}/unarchive")
        return TaskRead.model_validate(response.json())

    async def assign(
        self,
        task_id: int,
        user_ids: List[int],
        role_assignments: Optional[Dict[str, Any]] = None,
    ) -> TaskRead:
        payload = {"user_ids": list(user_ids), "role_assignments": role_assignments or {}}
        response = await self.request("POST", f"/tasks/{task_id}/assign", json=payload)
        return TaskRead.model_validate(response.json())

    async def split(self, task_id: int, subtasks: List[Dict[str, Any]]) -> SplitResult:
        response = await self.request("POST", f"/tasks/{task_id}/split", json={"subtasks": subtasks})
        return SplitResult.model_validate(response.json())

    async def delete_task(self, task_id: int) -> None:
        await self.request("DELETE", f"/tasks/{task_id}")

    # ---- effort ----

    async def log_time(self, task_id: int, hours_spent: float, comment: str = "") -> TimeLogRead:
        payload = {"task_id": task_id, "hours_spent": hours_spent, "comment": comment}
        response = await self.request("POST", "/time-logs", json=payload)
        return TimeLogRead.model_validate(response.json())

    async def list_time_logs(self, task_id: int) -> TimeLogList:
        response = await self.request("GET", f"/time-logs/task/{task_id}")
        return TimeLogList.model_validate(response.json())

    async def time_gate(
        self,
        task_id: int,
        status: str,
        hours_spent: Optional[float] = None,
        comment: str = "",
        log_time: bool = True,
    ) -> TimeGateResult:
        payload = {
            "status": str(getattr(status, "value", status)),
            "log_time": log_time,
            "hours_spent": hours_spent,
            "comment": comment,
        }
        response = await self.request("POST", f"/tasks/{task_id}/time-gate", json=payload)
        return TimeGateResult.model_validate(response.json())
