import base64
import binascii
import logging
import threading
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from request_pipeline import constants
from request_pipeline.errors import PartialUploadError, ServiceError, StepIntegrationError
from request_pipeline.formatters import (
    first_letter_bucket,
    format_file_size,
    generate_folder_name,
    partition_for_client,
    sanitize_filename,
)
from request_pipeline.records import UploadedFile, utcnow
from request_pipeline.schema import Attachment, RequestPayload
from request_pipeline.storage_client import FolderService, StoredItem

logger = logging.getLogger(__name__)


class FolderOutput(BaseModel):
    folder_id: str
    folder_url: str
    uploaded_files: list[UploadedFile] = []


class _KeyedLocks:
    """One lock per (parent, name) so concurrent lookups of the same level serialize."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}

    def get(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())


class FolderProvisioner:
    """
    Builds the storage hierarchy for a submission:

        <partition root> / <first letter> / <client> / <year> / <date - client - title> / {subfolders}

    Every level above the leaf is find-or-create, so repeated submissions for the
    same client and year reuse the same intermediate folders. The leaf is always
    created fresh. Attachments go into the attachments subfolder one at a time;
    a failed file is logged and skipped.
    """

    step = constants.STEP_DRIVE_FOLDER

    def __init__(self, service: FolderService, partition_roots: dict[str, str]):
        missing = [k for k in (constants.PARTITION_A_L, constants.PARTITION_M_Z) if not partition_roots.get(k)]
        if missing:
            raise ValueError(f"Partition root folder not configured: {', '.join(missing)}")
        self.service = service
        self.partition_roots = partition_roots
        self._locks = _KeyedLocks()

    def root_for_client(self, client_name: str) -> str:
        return self.partition_roots[partition_for_client(client_name)]

    def find_or_create(self, name: str, parent_id: str) -> StoredItem:
        with self._locks.get((parent_id, name)):
            existing = self.service.find_folder(name, parent_id)
            if existing is not None:
                logger.debug("Reusing folder %r under %s", name, parent_id)
                return existing
            logger.info("Creating folder %r under %s", name, parent_id)
            return self.service.create_folder(name, parent_id)

    def provision(self, payload: RequestPayload, submitted_at: Optional[datetime] = None) -> FolderOutput:
        submitted_at = submitted_at or utcnow()
        try:
            leaf, attachments_folder = self._build_hierarchy(payload, submitted_at)
        except ServiceError as e:
            raise StepIntegrationError(self.step, f"Google Drive integration failed: {e}") from e

        uploaded = self.upload_attachments(payload.attachments, attachments_folder.id)

        if payload.add_collaborators and payload.collaborators:
            self._share(leaf.id, payload.collaborators)

        return FolderOutput(folder_id=leaf.id, folder_url=leaf.url, uploaded_files=uploaded)

    def _build_hierarchy(self, payload: RequestPayload, submitted_at: datetime) -> tuple[StoredItem, StoredItem]:
        client = sanitize_filename(payload.client_name)
        parent_id = self.root_for_client(payload.client_name)

        for level in (first_letter_bucket(payload.client_name), client, str(submitted_at.year)):
            parent_id = self.find_or_create(level, parent_id).id

        leaf = self.service.create_folder(generate_folder_name(payload, submitted_at), parent_id)
        attachments_folder = leaf
        for name in constants.LEAF_SUBFOLDERS:
            sub = self.service.create_folder(name, leaf.id)
            if name == constants.ATTACHMENTS_SUBFOLDER:
                attachments_folder = sub
        return leaf, attachments_folder

    def upload_attachments(self, attachments: list[Attachment], folder_id: str) -> list[UploadedFile]:
        uploaded: list[UploadedFile] = []
        for attachment in attachments:
            try:
                uploaded.append(self._upload_one(attachment, folder_id))
            except PartialUploadError as e:
                logger.warning("Skipping attachment: %s", e)
            except Exception:
                logger.exception("Skipping attachment %s: unexpected upload error", attachment.name)

        if len(uploaded) < len(attachments):
            logger.warning("Uploaded %d of %d attachments", len(uploaded), len(attachments))
        return uploaded

    def _upload_one(self, attachment: Attachment, folder_id: str) -> UploadedFile:
        if not attachment.base64_data:
            raise PartialUploadError(attachment.name, "no file data supplied")
        encoded = attachment.base64_data
        if encoded.startswith("data:") and "," in encoded:
            encoded = encoded.split(",", 1)[1]
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise PartialUploadError(attachment.name, f"invalid base64 data: {e}") from e

        try:
            item = self.service.upload_file(
                data, sanitize_filename(attachment.name), attachment.mime_type, folder_id
            )
        except ServiceError as e:
            raise PartialUploadError(attachment.name, str(e)) from e
        logger.info("Uploaded %s (%s)", attachment.name, format_file_size(len(data)))
        return UploadedFile(id=item.id, name=attachment.name, url=item.url)

    def _share(self, folder_id: str, emails: list[str]) -> None:
        for email in emails:
            try:
                self.service.set_permission(folder_id, email, "writer")
            except ServiceError as e:
                logger.warning("Could not share folder %s with %s: %s", folder_id, email, e)
