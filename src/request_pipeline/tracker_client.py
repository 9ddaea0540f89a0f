import threading
import uuid
from abc import ABC, abstractmethod
from typing import Optional, Union

import httpx
from pydantic import BaseModel

from request_pipeline.errors import ServiceError

ASANA_API_URL = "https://app.asana.com/api/1.0"


class TaskSpec(BaseModel):
    title: str
    html_description: str
    project_id: str
    due_date: Optional[str] = None
    custom_fields: dict[str, Union[str, int]] = {}


class TaskRef(BaseModel):
    id: str
    url: str


class TaskService(ABC):
    @abstractmethod
    def create_task(self, spec: TaskSpec) -> TaskRef: ...

    @abstractmethod
    def add_comment(self, task_id: str, text: str) -> None: ...

    @abstractmethod
    def attach_external_link(self, task_id: str, url: str, name: str) -> None: ...


class InMemoryTaskService(TaskService):
    """Local stand-in for the tracker. `fail_create` / `fail_side_effects` simulate outages."""

    def __init__(self, *, fail_create: bool = False, fail_side_effects: bool = False):
        self.fail_create = fail_create
        self.fail_side_effects = fail_side_effects
        self.tasks: dict[str, TaskSpec] = {}
        self.comments: dict[str, list[str]] = {}
        self.links: dict[str, list[tuple[str, str]]] = {}
        self._lock = threading.Lock()

    def create_task(self, spec: TaskSpec) -> TaskRef:
        if self.fail_create:
            raise ServiceError("Asana unavailable (simulated)", service="asana", status_code=503)
        task_id = uuid.uuid4().hex[:16]
        with self._lock:
            self.tasks[task_id] = spec
        return TaskRef(id=task_id, url=f"https://app.asana.com/0/{spec.project_id}/{task_id}")

    def add_comment(self, task_id: str, text: str) -> None:
        if self.fail_side_effects:
            raise ServiceError("Comment rejected (simulated)", service="asana")
        with self._lock:
            self.comments.setdefault(task_id, []).append(text)

    def attach_external_link(self, task_id: str, url: str, name: str) -> None:
        if self.fail_side_effects:
            raise ServiceError("Attachment rejected (simulated)", service="asana")
        with self._lock:
            self.links.setdefault(task_id, []).append((name, url))


class AsanaTaskService(TaskService):
    def __init__(self, access_token: str, *, timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        if not access_token:
            raise ValueError("ASANA_ACCESS_TOKEN environment variable not set")
        self._http = httpx.Client(
            base_url=ASANA_API_URL,
            headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def _post(self, path: str, data: dict) -> dict:
        try:
            resp = self._http.post(path, json={"data": data})
        except httpx.HTTPError as e:
            raise ServiceError(f"Asana request failed: {e}", service="asana") from e

        if resp.is_error:
            try:
                errors = resp.json().get("errors") or [{}]
                message = errors[0].get("message") or resp.reason_phrase
            except ValueError:
                message = resp.reason_phrase
            raise ServiceError(f"Asana API error: {message}", service="asana", status_code=resp.status_code)
        try:
            return resp.json().get("data", {})
        except ValueError as e:
            raise ServiceError(
                f"Asana returned a non-JSON response ({resp.status_code})", service="asana", status_code=resp.status_code
            ) from e

    def create_task(self, spec: TaskSpec) -> TaskRef:
        data = {
            "name": spec.title,
            "html_notes": spec.html_description,
            "projects": [spec.project_id],
            "custom_fields": spec.custom_fields,
        }
        if spec.due_date:
            data["due_on"] = spec.due_date

        result = self._post("/tasks", data)
        task_id = result.get("gid")
        if not task_id:
            raise ServiceError("Asana response missing task gid", service="asana")
        return TaskRef(id=task_id, url=f"https://app.asana.com/0/{spec.project_id}/{task_id}")

    def add_comment(self, task_id: str, text: str) -> None:
        self._post(f"/tasks/{task_id}/stories", {"text": text})

    def attach_external_link(self, task_id: str, url: str, name: str) -> None:
        self._post(
            "/attachments",
            {"parent": task_id, "resource_subtype": "external", "name": name, "url": url},
        )
