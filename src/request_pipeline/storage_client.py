import json
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from request_pipeline.errors import ServiceError

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"


class StoredItem(BaseModel):
    id: str
    url: str


class FolderService(ABC):
    """File-storage operations the folder provisioner relies on."""

    @abstractmethod
    def create_folder(self, name: str, parent_id: str) -> StoredItem: ...

    @abstractmethod
    def find_folder(self, name: str, parent_id: str) -> Optional[StoredItem]: ...

    @abstractmethod
    def upload_file(self, data: bytes, name: str, mime_type: str, parent_id: str) -> StoredItem: ...

    @abstractmethod
    def set_permission(self, folder_id: str, email: str, role: str = "writer") -> None: ...


class InMemoryFolderService(FolderService):
    """
    Local stand-in for the storage service.
    - fail_folders: every folder create/lookup raises (transient outage)
    - fail_uploads: file names whose upload raises
    """

    def __init__(self, *, fail_folders: bool = False, fail_uploads: set[str] | None = None):
        self.fail_folders = fail_folders
        self.fail_uploads = set(fail_uploads or ())
        self.folders: dict[str, dict] = {}
        self.files: dict[str, dict] = {}
        self.permissions: list[tuple[str, str, str]] = []
        self.create_calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _url(self, kind: str, item_id: str) -> str:
        return f"https://drive.example.test/{kind}/{item_id}"

    def _check(self) -> None:
        if self.fail_folders:
            raise ServiceError("Drive unavailable (simulated)", service="drive", status_code=503)

    def create_folder(self, name: str, parent_id: str) -> StoredItem:
        self._check()
        folder_id = uuid.uuid4().hex[:12]
        with self._lock:
            self.folders[folder_id] = {"name": name, "parent": parent_id}
            self.create_calls.append((name, parent_id))
        return StoredItem(id=folder_id, url=self._url("folders", folder_id))

    def find_folder(self, name: str, parent_id: str) -> Optional[StoredItem]:
        self._check()
        with self._lock:
            for folder_id, folder in self.folders.items():
                if folder["name"] == name and folder["parent"] == parent_id:
                    return StoredItem(id=folder_id, url=self._url("folders", folder_id))
        return None

    def upload_file(self, data: bytes, name: str, mime_type: str, parent_id: str) -> StoredItem:
        if name in self.fail_uploads:
            raise ServiceError(f"Upload rejected for {name} (simulated)", service="drive", status_code=500)
        file_id = uuid.uuid4().hex[:12]
        with self._lock:
            self.files[file_id] = {"name": name, "parent": parent_id, "size": len(data), "mime_type": mime_type}
        return StoredItem(id=file_id, url=self._url("files", file_id))

    def set_permission(self, folder_id: str, email: str, role: str = "writer") -> None:
        with self._lock:
            self.permissions.append((folder_id, email, role))

    def children(self, parent_id: str) -> list[str]:
        return [f["name"] for f in self.folders.values() if f["parent"] == parent_id]


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveFolderService(FolderService):
    """Drive v3 REST client. Shared-drive aware; bearer token auth."""

    def __init__(self, access_token: str, *, timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        if not access_token:
            raise ValueError("GOOGLE_DRIVE_ACCESS_TOKEN is not set")
        self._http = httpx.Client(
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceError(f"Drive request failed: {e}", service="drive") from e

        if resp.is_error:
            try:
                message = resp.json().get("error", {}).get("message") or resp.reason_phrase
            except ValueError:
                message = resp.reason_phrase
            raise ServiceError(f"Drive API error: {message}", service="drive", status_code=resp.status_code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ServiceError(
                f"Drive returned a non-JSON response ({resp.status_code})", service="drive", status_code=resp.status_code
            ) from e

    @staticmethod
    def _item(data: dict) -> StoredItem:
        if not data.get("id") or not data.get("webViewLink"):
            raise ServiceError("Drive response missing id or webViewLink", service="drive")
        return StoredItem(id=data["id"], url=data["webViewLink"])

    def create_folder(self, name: str, parent_id: str) -> StoredItem:
        data = self._request(
            "POST",
            f"{DRIVE_API_URL}/files",
            params={"supportsAllDrives": "true", "fields": "id,webViewLink"},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
        )
        return self._item(data)

    def find_folder(self, name: str, parent_id: str) -> Optional[StoredItem]:
        query = (
            f"name = '{_escape_query(name)}' and '{_escape_query(parent_id)}' in parents "
            f"and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        )
        data = self._request(
            "GET",
            f"{DRIVE_API_URL}/files",
            params={
                "q": query,
                "fields": "files(id,name,webViewLink)",
                "pageSize": "10",
                "corpora": "allDrives",
                "supportsAllDrives": "true",
                "includeItemsFromAllDrives": "true",
            },
        )
        # Drive name matching is case-insensitive; keep only exact matches.
        for item in data.get("files", []):
            if item.get("name") == name:
                return self._item(item)
        return None

    def upload_file(self, data: bytes, name: str, mime_type: str, parent_id: str) -> StoredItem:
        boundary = f"request-pipeline-{uuid.uuid4().hex}"
        metadata = json.dumps({"name": name, "parents": [parent_id]})
        body = b"".join(
            [
                f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode(),
                metadata.encode("utf-8"),
                f"\r\n--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode(),
                data,
                f"\r\n--{boundary}--\r\n".encode(),
            ]
        )
        result = self._request(
            "POST",
            f"{DRIVE_UPLOAD_URL}/files",
            params={"uploadType": "multipart", "supportsAllDrives": "true", "fields": "id,webViewLink"},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        return self._item(result)

    def set_permission(self, folder_id: str, email: str, role: str = "writer") -> None:
        self._request(
            "POST",
            f"{DRIVE_API_URL}/files/{folder_id}/permissions",
            params={"supportsAllDrives": "true", "sendNotificationEmail": "false"},
            json={"type": "user", "role": role, "emailAddress": email},
        )
